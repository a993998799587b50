"""
Typed records for SDDC Manager certificate operations.

The control plane speaks camelCase JSON; conversion to and from those maps
happens only in the from_api / to_api / to_dict methods here.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InvalidResponse


class OperationKind(Enum):
    """What a pending operation was submitted for."""
    VALIDATION = "validation"
    GENERATION = "generation"


class OperationState(Enum):
    """Coarse state of a polled operation."""
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not OperationState.RUNNING


class ValidationStatus(Enum):
    """Status values of a certificate validation and of its resources."""
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    FAILED_WITH_WARNINGS = "FAILED_WITH_WARNINGS"

    @classmethod
    def parse(cls, value: Any) -> "ValidationStatus":
        """
        Parse a wire status value.

        Raises:
            InvalidResponse: If the value is not a known status
        """
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise InvalidResponse(f"Unknown validation status: {value!r}")


@dataclass(frozen=True)
class PendingOperation:
    """An accepted long-running operation, identified by its remote id."""
    id: str
    kind: OperationKind

    def __post_init__(self):
        if not self.id:
            raise InvalidResponse(
                f"Pending {self.kind.value} operation has an empty id"
            )


@dataclass
class ResponseEnvelope:
    """
    Raw body of a submit call, split by how the control plane answered.

    `sync` holds a 200 body (result available now), `accepted` a 202 body
    (work continues in the background). Either, both or neither may be set.
    """
    sync: Optional[Any] = None
    accepted: Optional[Any] = None


@dataclass
class ResourceValidationResult:
    """Validation outcome of a single resource."""
    resource_fqdn: Optional[str]
    resource_type: Optional[str]
    status: ValidationStatus
    messages: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ResourceValidationResult":
        if not isinstance(data, dict):
            raise InvalidResponse(
                f"Resource validation entry must be an object, got {type(data).__name__}"
            )

        messages: List[str] = []
        if data.get("validationMessage"):
            messages.append(data["validationMessage"])

        error_response = data.get("errorResponse") or {}
        if not isinstance(error_response, dict):
            raise InvalidResponse(
                f"errorResponse of {data.get('resourceFqdn')} must be an object, "
                f"got {type(error_response).__name__}"
            )
        if error_response.get("message"):
            messages.append(error_response["message"])
        nested_errors = error_response.get("nestedErrors") or []
        if not isinstance(nested_errors, list):
            raise InvalidResponse(
                f"nestedErrors must be a list, got {type(nested_errors).__name__}"
            )
        for nested in nested_errors:
            if isinstance(nested, dict) and nested.get("message"):
                messages.append(nested["message"])

        # Resources not yet checked carry no status at all
        raw_status = data.get("validationStatus")
        status = (
            ValidationStatus.IN_PROGRESS
            if raw_status is None
            else ValidationStatus.parse(raw_status)
        )

        return cls(
            resource_fqdn=data.get("resourceFqdn"),
            resource_type=data.get("resourceType"),
            status=status,
            messages=messages,
        )


@dataclass
class ValidationResult:
    """
    A certificate validation task as reported by SDDC Manager.

    The control plane reports progress in executionStatus and, once that
    reads COMPLETED, the outcome in resultStatus. Some releases put the
    outcome straight into executionStatus; both shapes are accepted.
    """
    validation_id: Optional[str]
    overall_status: ValidationStatus
    per_resource_results: List[ResourceValidationResult] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ValidationResult":
        if not isinstance(data, dict):
            raise InvalidResponse(
                f"Validation payload must be an object, got {type(data).__name__}"
            )

        execution_status = data.get("executionStatus")
        if isinstance(execution_status, str) and execution_status.upper() == "COMPLETED":
            overall = ValidationStatus.parse(data.get("resultStatus"))
        else:
            overall = ValidationStatus.parse(execution_status)

        validations = data.get("validations") or []
        if not isinstance(validations, list):
            raise InvalidResponse(
                f"validations must be a list, got {type(validations).__name__}"
            )
        return cls(
            validation_id=data.get("validationId") or None,
            overall_status=overall,
            per_resource_results=[
                ResourceValidationResult.from_api(v) for v in validations
            ],
        )


@dataclass(frozen=True)
class OperationStatus:
    """One polled snapshot of a pending operation."""
    pending_operation_id: str
    state: OperationState
    result: Optional[ValidationResult] = None
    errors: List[str] = field(default_factory=list)


@dataclass
class ResourceCertificateSpec:
    """Desired certificate (or CSR material) for one resource."""
    resource_fqdn: str
    resource_type: Optional[str] = None
    ca_type: Optional[str] = None
    certificate_or_csr_material: Optional[str] = None

    def to_api(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"resourceFqdn": self.resource_fqdn}
        if self.resource_type is not None:
            payload["resourceType"] = self.resource_type
        if self.ca_type is not None:
            payload["caType"] = self.ca_type
        if self.certificate_or_csr_material is not None:
            payload["certificateChain"] = self.certificate_or_csr_material
        return payload


# snake_case attribute -> SDDC Manager JSON key
_CERTIFICATE_FIELDS = {
    "domain": "domain",
    "issued_to": "issuedTo",
    "issued_by": "issuedBy",
    "subject": "subject",
    "subject_alternative_names": "subjectAlternativeName",
    "serial_number": "serialNumber",
    "thumbprint": "thumbprint",
    "thumbprint_algorithm": "thumbprintAlgorithm",
    "public_key": "publicKey",
    "public_key_algorithm": "publicKeyAlgorithm",
    "signature_algorithm": "signatureAlgorithm",
    "key_size": "keySize",
    "pem_encoded": "pemEncoded",
    "not_before": "notBefore",
    "not_after": "notAfter",
    "number_of_days_to_expire": "numberOfDaysToExpire",
    "expiration_status": "expirationStatus",
    "is_installed": "isInstalled",
    "version": "version",
    "certificate_error": "certificateError",
}


@dataclass
class Certificate:
    """
    A certificate known to SDDC Manager.

    Every field may be absent (None) independently of the others; an absent
    field is never replaced by an empty string or zero.
    """
    domain: Optional[str] = None
    issued_to: Optional[str] = None
    issued_by: Optional[str] = None
    subject: Optional[str] = None
    subject_alternative_names: Optional[List[str]] = None
    serial_number: Optional[str] = None
    thumbprint: Optional[str] = None
    thumbprint_algorithm: Optional[str] = None
    public_key: Optional[str] = None
    public_key_algorithm: Optional[str] = None
    signature_algorithm: Optional[str] = None
    key_size: Optional[str] = None
    pem_encoded: Optional[str] = None
    not_before: Optional[str] = None
    not_after: Optional[str] = None
    number_of_days_to_expire: Optional[int] = None
    expiration_status: Optional[str] = None
    is_installed: Optional[bool] = None
    version: Optional[str] = None
    certificate_error: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Certificate":
        if not isinstance(data, dict):
            raise InvalidResponse(
                f"Certificate element must be an object, got {type(data).__name__}"
            )
        values = {attr: data.get(key) for attr, key in _CERTIFICATE_FIELDS.items()}

        sans = values["subject_alternative_names"]
        if sans is not None:
            values["subject_alternative_names"] = list(sans)

        # keySize is a string in the API model but some releases send a number
        if values["key_size"] is not None:
            values["key_size"] = str(values["key_size"])

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """
        Flatten to a snake_case map, keeping None for absent fields.

        Returns:
            Dictionary with one entry per certificate field
        """
        flat = {attr: getattr(self, attr) for attr in _CERTIFICATE_FIELDS}
        if self.subject_alternative_names is not None:
            flat["subject_alternative_names"] = list(self.subject_alternative_names)
        return flat


@dataclass
class Domain:
    """Workload domain summary."""
    id: str
    name: str
    type: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Domain":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            type=data.get("type"),
            status=data.get("status"),
        )
