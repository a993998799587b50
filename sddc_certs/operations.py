"""
Certificate operations exposed to callers.

Validation and generation submit a request, resolve the answer once, and
poll when the work is still running. Reads are a single round trip.
"""

from typing import Any, Dict, List, Optional

from .cancellation import CancellationToken
from .errors import NotFound, OperationCancelled, TaskFailed, ValidationFailed
from .fingerprint import DEFAULT_ALGORITHM, fingerprint
from .logger import get_logger
from .models import (
    Certificate,
    Domain,
    OperationState,
    OperationStatus,
    ResourceCertificateSpec,
)
from .queries import CertificateQueryEngine
from .tasks import (
    DEFAULT_POLL_INTERVAL,
    Immediate,
    PollingWaiter,
    Sleeper,
    resolve_generation,
    resolve_validation,
    task_status_fetcher,
    validation_status_fetcher,
)
from .validation import aggregate


def _call_timeout(client, cancellation: CancellationToken) -> Optional[float]:
    """Per-call timeout of `client`, capped by what is left of the deadline."""
    base = getattr(client, "call_timeout", None)
    remaining = cancellation.remaining()
    if remaining is None:
        return base
    if base is None:
        return remaining
    return min(base, remaining)


def _ensure_not_cancelled(cancellation: CancellationToken, what: str) -> None:
    if cancellation.cancelled:
        raise OperationCancelled(f"Cancelled before submitting {what}")


def validate_resource_certificates(
    client,
    domain_id: str,
    specs: List[ResourceCertificateSpec],
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancellation: Optional[CancellationToken] = None,
    sleep: Optional[Sleeper] = None,
) -> None:
    """
    Validate resource certificates in a domain and wait for the outcome.

    Args:
        client: SddcManagerClient (or compatible)
        domain_id: Workload domain id
        specs: One spec per resource, passed through unmodified
        poll_interval: Seconds between status checks
        cancellation: Deadline or token bounding the whole wait
        sleep: Interruptible sleep override (tests)

    Raises:
        ValidationFailed: If any resource failed; carries the full report
        OperationCancelled: If the wait was cut short
        TransportError: If a call to SDDC Manager failed
        InvalidResponse: If SDDC Manager answered with an unexpected shape
    """
    logger = get_logger()
    cancellation = cancellation or CancellationToken()
    _ensure_not_cancelled(cancellation, "certificate validation")

    logger.info(f"Validating {len(specs)} resource certificate(s) in domain {domain_id}")
    envelope = client.submit_validation(
        domain_id, specs, timeout=_call_timeout(client, cancellation)
    )
    resolution = resolve_validation(envelope)

    if isinstance(resolution, Immediate):
        result = resolution.result
        logger.debug("Validation finished synchronously")
    else:
        validation_id = resolution.operation.id
        logger.info(f"  Validation {validation_id} accepted, waiting for completion...")
        waiter = PollingWaiter(
            validation_status_fetcher(client),
            sleep=sleep,
            call_timeout=getattr(client, "call_timeout", None),
        )
        status = waiter.wait(validation_id, poll_interval, cancellation)
        result = status.result

    report = aggregate(result)
    if report is not None:
        logger.failure(
            f"Certificate validation {report.validation_id or ''} "
            f"finished with {report.overall_status.value}"
        )
        logger.diagnostics(report.diagnostics())
        raise ValidationFailed(report)

    logger.success(f"Certificate validation passed for domain {domain_id}")


def await_task(
    client,
    task_id: str,
    stop_on_failure: bool = True,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancellation: Optional[CancellationToken] = None,
    sleep: Optional[Sleeper] = None,
) -> OperationStatus:
    """
    Wait for an SDDC Manager task to finish.

    Args:
        client: SddcManagerClient (or compatible)
        task_id: Task id returned by a submit call
        stop_on_failure: Raise on a failed task instead of only logging it

    Returns:
        The terminal task snapshot

    Raises:
        TaskFailed: If the task failed and stop_on_failure is set
        OperationCancelled: If the wait was cut short
    """
    logger = get_logger()
    logger.info(f"  Waiting for task {task_id} to complete...")

    waiter = PollingWaiter(
        task_status_fetcher(client),
        sleep=sleep,
        call_timeout=getattr(client, "call_timeout", None),
    )
    status = waiter.wait(task_id, poll_interval, cancellation)

    if status.state is OperationState.FAILED:
        if stop_on_failure:
            logger.failure(f"Task {task_id} failed")
            logger.diagnostics(status.errors)
            raise TaskFailed(task_id, status.state.value.upper(), status.errors)
        logger.warning(
            f"Task {task_id} failed, continuing: {'; '.join(status.errors) or 'no error reported'}"
        )
    else:
        logger.success(f"Task {task_id} completed")

    return status


def generate_certificate_for_resource(
    client,
    domain_id: str,
    resource_type: str,
    resource_fqdn: str,
    ca_type: str,
    stop_on_failure: bool = True,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancellation: Optional[CancellationToken] = None,
    sleep: Optional[Sleeper] = None,
) -> None:
    """
    Generate a certificate for one resource and wait for the task.

    Raises:
        TaskFailed: If the generation task failed (and stop_on_failure)
        OperationCancelled: If the wait was cut short
        TransportError: If a call to SDDC Manager failed
        InvalidResponse: If the answer carried no task id
    """
    logger = get_logger()
    cancellation = cancellation or CancellationToken()
    _ensure_not_cancelled(cancellation, "certificate generation")

    logger.info(f"Generating {ca_type} certificate for {resource_fqdn} ({resource_type})")
    envelope = client.submit_generation(
        domain_id,
        ca_type,
        [{"fqdn": resource_fqdn, "type": resource_type}],
        timeout=_call_timeout(client, cancellation),
    )
    pending = resolve_generation(envelope)

    await_task(
        client,
        pending.operation.id,
        stop_on_failure=stop_on_failure,
        poll_interval=poll_interval,
        cancellation=cancellation,
        sleep=sleep,
    )


def read_certificates(client, domain_id: str) -> List[Certificate]:
    """All certificates of a domain; empty when there are none."""
    return CertificateQueryEngine(client).list_by_domain(domain_id)


def find_certificate_for_resource(
    client,
    domain_id: str,
    resource_fqdn: str,
) -> Optional[Certificate]:
    """The certificate issued to `resource_fqdn`, or None."""
    return CertificateQueryEngine(client).find_by_resource(domain_id, resource_fqdn)


def compute_fingerprint(ordered_fields: List[str], algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Hex fingerprint of an ordered field list."""
    return fingerprint(ordered_fields, algorithm)


def flatten_certificates(certs: List[Certificate]) -> List[Dict[str, Any]]:
    """Flatten certificates to maps, keeping None for absent fields."""
    logger = get_logger()
    flattened = [cert.to_dict() for cert in certs]
    logger.debug(f"Flattened {len(flattened)} certificate(s)")
    return flattened


def get_domain_by_name(client, name: str) -> Domain:
    """
    Look up a workload domain by name.

    Raises:
        NotFound: If no domain has that name
    """
    for domain in client.list_domains():
        if domain.name == name:
            return domain
    raise NotFound(f"Domain name '{name}' not found")
