"""
SDDC Manager certificate operations.

This package contains:
- client: SDDC Manager API transport
- tasks: response resolution and polling of long-running operations
- validation: classification and aggregation of validation outcomes
- queries: certificate listing and lookup
- fingerprint: content-derived identifiers
- operations: the operations exposed to callers
- config_loader: configuration loading and validation
- logger: centralized logging setup
"""

from .logger import setup_logger, get_logger, mask_secret
from .config_loader import (
    load_config,
    load_resource_specs,
    Config,
    ConfigurationError,
    SddcManagerConfig,
    Settings,
)
from .cancellation import CancellationToken, Deadline
from .client import SddcManagerClient
from .errors import (
    CertificateOperationError,
    TransportError,
    AuthenticationError,
    TransportTimeout,
    InvalidResponse,
    OperationCancelled,
    ValidationFailed,
    TaskFailed,
    NotFound,
    EncodingError,
)
from .models import (
    Certificate,
    Domain,
    OperationKind,
    OperationState,
    OperationStatus,
    PendingOperation,
    ResourceCertificateSpec,
    ResponseEnvelope,
    ValidationResult,
    ValidationStatus,
)
from .tasks import Immediate, Pending, PollingWaiter, resolve_generation, resolve_validation
from .validation import ValidationReport, aggregate
from .queries import CertificateQueryEngine
from .fingerprint import fingerprint, certificate_id
from .operations import (
    validate_resource_certificates,
    generate_certificate_for_resource,
    await_task,
    read_certificates,
    find_certificate_for_resource,
    compute_fingerprint,
    flatten_certificates,
    get_domain_by_name,
)

__all__ = [
    # Logger
    "setup_logger",
    "get_logger",
    "mask_secret",
    # Config
    "load_config",
    "load_resource_specs",
    "Config",
    "ConfigurationError",
    "SddcManagerConfig",
    "Settings",
    # Transport
    "SddcManagerClient",
    "CancellationToken",
    "Deadline",
    # Errors
    "CertificateOperationError",
    "TransportError",
    "AuthenticationError",
    "TransportTimeout",
    "InvalidResponse",
    "OperationCancelled",
    "ValidationFailed",
    "TaskFailed",
    "NotFound",
    "EncodingError",
    # Models
    "Certificate",
    "Domain",
    "OperationKind",
    "OperationState",
    "OperationStatus",
    "PendingOperation",
    "ResourceCertificateSpec",
    "ResponseEnvelope",
    "ValidationResult",
    "ValidationStatus",
    # Core
    "Immediate",
    "Pending",
    "PollingWaiter",
    "resolve_generation",
    "resolve_validation",
    "ValidationReport",
    "aggregate",
    "CertificateQueryEngine",
    "fingerprint",
    "certificate_id",
    # Operations
    "validate_resource_certificates",
    "generate_certificate_for_resource",
    "await_task",
    "read_certificates",
    "find_certificate_for_resource",
    "compute_fingerprint",
    "flatten_certificates",
    "get_domain_by_name",
]
