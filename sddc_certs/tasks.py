"""
Resolution and polling of long-running SDDC Manager operations.

Submitting a validation or a generation yields either an immediate result
or the id of work still running. The resolver turns the raw response into
Immediate or Pending once; the waiter then polls a Pending operation at a
fixed interval until it reaches a terminal state or the cancellation
token fires.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .cancellation import CancellationToken
from .errors import InvalidResponse, OperationCancelled, TransportTimeout
from .logger import get_logger
from .models import (
    OperationKind,
    OperationState,
    OperationStatus,
    PendingOperation,
    ResponseEnvelope,
    ValidationResult,
)
from .validation import has_validation_failed, has_validation_finished

# Fixed delay between two status queries (seconds)
DEFAULT_POLL_INTERVAL = 10


@dataclass(frozen=True)
class Immediate:
    """The control plane answered with a terminal result straight away."""
    result: Any


@dataclass(frozen=True)
class Pending:
    """The control plane accepted the work; poll `operation` for the outcome."""
    operation: PendingOperation


Resolution = Union[Immediate, Pending]


def resolve_validation(envelope: ResponseEnvelope) -> Resolution:
    """
    Resolve the response of a validation submit.

    The accepted branch wins when present. A synchronous result is
    Immediate once finished and Pending on its own validation id otherwise.

    Raises:
        InvalidResponse: If neither branch yields a result or an id
    """
    if envelope.accepted is not None:
        accepted = envelope.accepted
        validation_id = accepted.get("validationId") if isinstance(accepted, dict) else None
        if not validation_id:
            raise InvalidResponse("Accepted validation response carries no validationId")
        return Pending(PendingOperation(validation_id, OperationKind.VALIDATION))

    if envelope.sync is not None:
        result = ValidationResult.from_api(envelope.sync)
        if has_validation_finished(result):
            return Immediate(result)
        if not result.validation_id:
            raise InvalidResponse(
                "Unfinished validation response carries no validationId to poll"
            )
        return Pending(PendingOperation(result.validation_id, OperationKind.VALIDATION))

    raise InvalidResponse("Validation response carries neither a result nor a task")


def resolve_generation(envelope: ResponseEnvelope) -> Pending:
    """
    Resolve the response of a generation submit to its task.

    Both answer shapes carry a task; the accepted one is preferred.

    Raises:
        InvalidResponse: If no branch carries a task id
    """
    for body in (envelope.accepted, envelope.sync):
        if body is None:
            continue
        task_id = body.get("id") if isinstance(body, dict) else None
        if not task_id:
            raise InvalidResponse("Certificate generation response carries no task id")
        return Pending(PendingOperation(task_id, OperationKind.GENERATION))

    raise InvalidResponse("Certificate generation response carries no task")


# (operation_id, per-call timeout or None) -> fresh snapshot
StatusFetcher = Callable[[str, Optional[float]], OperationStatus]

# (seconds, cancellation) -> True if cancelled while sleeping
Sleeper = Callable[[float, CancellationToken], bool]


def _interruptible_sleep(seconds: float, cancellation: CancellationToken) -> bool:
    return cancellation.wait(seconds)


class PollingWaiter:
    """
    Polls an operation until it is terminal.

    There is no cap on the number of polls; the cancellation token passed
    to wait() is the only bound. A per-call timeout is retried at the
    normal interval while a deadline bounds the wait; otherwise it
    propagates like every other transport error.
    """

    def __init__(
        self,
        fetch_status: StatusFetcher,
        sleep: Optional[Sleeper] = None,
        call_timeout: Optional[float] = None,
    ):
        """
        Args:
            fetch_status: Queries one status snapshot
            sleep: Interruptible sleep, injectable for tests
            call_timeout: Upper bound for a single status query
        """
        self._fetch_status = fetch_status
        self._sleep = sleep or _interruptible_sleep
        self._call_timeout = call_timeout
        self.logger = get_logger()

    def _query_timeout(self, cancellation: CancellationToken) -> Optional[float]:
        remaining = cancellation.remaining()
        if remaining is None:
            return self._call_timeout
        if self._call_timeout is None:
            return remaining
        return min(self._call_timeout, remaining)

    def wait(
        self,
        operation_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        cancellation: Optional[CancellationToken] = None,
    ) -> OperationStatus:
        """
        Block until the operation is terminal.

        Args:
            operation_id: Id of the pending operation
            poll_interval: Seconds between two queries
            cancellation: Signal that aborts the wait

        Returns:
            The first terminal snapshot

        Raises:
            OperationCancelled: If the signal fires before a terminal state
            TransportError: If a status query fails; a timeout only when no
                deadline bounds the wait
        """
        cancellation = cancellation or CancellationToken()
        started = time.monotonic()
        attempt = 0

        while True:
            if cancellation.cancelled:
                raise OperationCancelled(
                    f"Stopped waiting for {operation_id} after {attempt} status check(s)",
                    operation_id,
                )

            attempt += 1
            try:
                status = self._fetch_status(operation_id, self._query_timeout(cancellation))
            except TransportTimeout as e:
                if cancellation.cancelled:
                    raise OperationCancelled(
                        f"Deadline reached while checking {operation_id}: {e}",
                        operation_id,
                    ) from e
                # Without a deadline nothing bounds the retries
                if cancellation.remaining() is None:
                    raise
                self.logger.warning(f"Status check {attempt} for {operation_id} timed out, retrying")
            else:
                # A reply that arrives after cancellation is discarded
                if cancellation.cancelled:
                    raise OperationCancelled(
                        f"Cancelled while checking {operation_id}", operation_id
                    )

                elapsed = int(time.monotonic() - started)
                self.logger.debug(
                    f"[Check {attempt}] {operation_id} is {status.state.value} "
                    f"(elapsed: {elapsed}s)"
                )
                if status.state.is_terminal:
                    return status

            if self._sleep(poll_interval, cancellation):
                raise OperationCancelled(
                    f"Cancelled while waiting for {operation_id} after {attempt} status check(s)",
                    operation_id,
                )


def validation_status_fetcher(client) -> StatusFetcher:
    """Build a fetcher that polls a certificate validation on `client`."""

    def fetch(validation_id: str, timeout: Optional[float]) -> OperationStatus:
        result = client.get_validation_status(validation_id, timeout=timeout)
        if not has_validation_finished(result):
            state = OperationState.RUNNING
        elif has_validation_failed(result):
            state = OperationState.FAILED
        else:
            state = OperationState.SUCCEEDED
        return OperationStatus(validation_id, state, result=result)

    return fetch


_TASK_STATES = {
    "pending": OperationState.RUNNING,
    "in_progress": OperationState.RUNNING,
    "in progress": OperationState.RUNNING,
    "running": OperationState.RUNNING,
    "successful": OperationState.SUCCEEDED,
    "succeeded": OperationState.SUCCEEDED,
    "completed": OperationState.SUCCEEDED,
    "failed": OperationState.FAILED,
    "cancelled": OperationState.FAILED,
    "canceled": OperationState.FAILED,
}


def task_errors(task: Dict[str, Any]) -> List[str]:
    """Collect error messages of a task and its subtasks, in order."""
    messages: List[str] = []
    for error in task.get("errors") or []:
        message = error.get("message") if isinstance(error, dict) else str(error)
        if message:
            messages.append(message)
    for subtask in task.get("subTasks") or []:
        if isinstance(subtask, dict):
            messages.extend(task_errors(subtask))
    return messages


def task_status_fetcher(client) -> StatusFetcher:
    """Build a fetcher that polls an SDDC Manager task on `client`."""

    def fetch(task_id: str, timeout: Optional[float]) -> OperationStatus:
        task = client.get_task(task_id, timeout=timeout)
        raw_status = task.get("status") if isinstance(task, dict) else None
        state = _TASK_STATES.get(str(raw_status).strip().lower())
        if raw_status is None or state is None:
            raise InvalidResponse(f"Task {task_id} has unknown status {raw_status!r}")
        errors = task_errors(task) if state is OperationState.FAILED else []
        return OperationStatus(task_id, state, errors=errors)

    return fetch
