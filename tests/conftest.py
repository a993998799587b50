"""Shared fixtures and fakes for SDDC Manager certificate tests."""

from typing import Any, Dict, List, Optional

import pytest

from sddc_certs.models import Certificate, Domain, ResponseEnvelope, ValidationResult


def validation_payload(
    status: str,
    validation_id: Optional[str] = "V1",
    validations: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Build a CertificateValidationTask body."""
    payload: Dict[str, Any] = {"executionStatus": status, "validations": validations or []}
    if validation_id is not None:
        payload["validationId"] = validation_id
    return payload


def resource_validation(fqdn: str, status: str, message: Optional[str] = None) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "resourceFqdn": fqdn,
        "resourceType": "VCENTER",
        "validationStatus": status,
    }
    if message:
        entry["validationMessage"] = message
    return entry


class FakeSddcManagerClient:
    """
    Scripted stand-in for SddcManagerClient.

    Status queries pop from the scripted lists; an Exception instance in a
    script is raised instead of returned.
    """

    call_timeout = 30

    def __init__(self):
        self.submit_validation_response = ResponseEnvelope(accepted={"validationId": "V1"})
        self.submit_generation_response = ResponseEnvelope(accepted={"id": "T1"})
        self.validation_statuses: List[Any] = []
        self.task_statuses: List[Any] = []
        self.certificates: Any = []
        self.domains: List[Domain] = []
        self.calls: List[tuple] = []

    def _next(self, script: List[Any]) -> Any:
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def submit_validation(self, domain_id, specs, timeout=None):
        self.calls.append(("submit_validation", domain_id, list(specs)))
        return self.submit_validation_response

    def get_validation_status(self, validation_id, timeout=None):
        self.calls.append(("get_validation_status", validation_id))
        return ValidationResult.from_api(self._next(self.validation_statuses))

    def submit_generation(self, domain_id, ca_type, resources, timeout=None):
        self.calls.append(("submit_generation", domain_id, ca_type, resources))
        return self.submit_generation_response

    def get_task(self, task_id, timeout=None):
        self.calls.append(("get_task", task_id))
        return self._next(self.task_statuses)

    def list_certificates(self, domain_id, timeout=None):
        self.calls.append(("list_certificates", domain_id))
        if isinstance(self.certificates, Exception):
            raise self.certificates
        return list(self.certificates)

    def list_domains(self, timeout=None):
        self.calls.append(("list_domains",))
        return list(self.domains)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class SleepRecorder:
    """Injected in place of the interruptible sleep; never actually sleeps."""

    def __init__(self, cancel_after: Optional[int] = None):
        self.calls: List[float] = []
        self.cancel_after = cancel_after

    def __call__(self, seconds, cancellation) -> bool:
        self.calls.append(seconds)
        if self.cancel_after is not None and len(self.calls) >= self.cancel_after:
            cancellation.cancel()
        return cancellation.cancelled


@pytest.fixture
def fake_client() -> FakeSddcManagerClient:
    return FakeSddcManagerClient()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def two_certificates() -> List[Certificate]:
    return [
        Certificate(
            domain="D1",
            issued_to="host-a",
            issued_by="CN=rainpole-CA",
            subject="CN=host-a",
            subject_alternative_names=["host-a"],
            serial_number="01",
            not_after="2027-01-01T00:00:00Z",
            number_of_days_to_expire=74,
            expiration_status="ACTIVE",
        ),
        Certificate(
            domain="D1",
            issued_to="host-b",
            issued_by="CN=rainpole-CA",
            expiration_status="EXPIRING",
        ),
    ]
