"""
Classification and aggregation of certificate validation outcomes.

SDDC Manager reports one overall status plus one status per resource.
Only IN_PROGRESS is non-terminal; FAILED and FAILED_WITH_WARNINGS both
block the operation.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .models import ResourceValidationResult, ValidationResult, ValidationStatus

TERMINAL_STATUSES = frozenset({
    ValidationStatus.SUCCEEDED,
    ValidationStatus.FAILED,
    ValidationStatus.FAILED_WITH_WARNINGS,
})

FAILING_STATUSES = frozenset({
    ValidationStatus.FAILED,
    ValidationStatus.FAILED_WITH_WARNINGS,
})


def has_validation_finished(result: ValidationResult) -> bool:
    """True once the validation has reached a terminal status."""
    return result.overall_status in TERMINAL_STATUSES


def has_validation_failed(result: ValidationResult) -> bool:
    """
    True if the validation outcome blocks the operation.

    A failing resource counts even when the overall status still reads
    SUCCEEDED, so a partial failure is never reported as success.
    """
    if result.overall_status in FAILING_STATUSES:
        return True
    return any(r.status in FAILING_STATUSES for r in result.per_resource_results)


@dataclass(frozen=True)
class ResourceFailure:
    """One failing resource, with its messages as reported."""
    resource_fqdn: Optional[str]
    resource_type: Optional[str]
    status: ValidationStatus
    messages: List[str]

    def describe(self) -> str:
        target = self.resource_fqdn or "<unknown resource>"
        if self.resource_type:
            target += f" ({self.resource_type})"
        detail = "; ".join(self.messages) if self.messages else "no message reported"
        return f"{target}: {self.status.value}: {detail}"


@dataclass
class ValidationReport:
    """
    Structured outcome of a failed validation.

    `failures` lists every failing resource; `results` keeps the complete
    per-resource set, successes included, in the order reported.
    """
    validation_id: Optional[str]
    overall_status: ValidationStatus
    failures: List[ResourceFailure] = field(default_factory=list)
    results: List[ResourceValidationResult] = field(default_factory=list)

    def diagnostics(self) -> List[str]:
        """One line per failing resource, or a single status line if none is named."""
        if self.failures:
            return [f.describe() for f in self.failures]
        return [
            f"validation finished with status {self.overall_status.value} "
            f"without naming a failing resource"
        ]


def aggregate(result: ValidationResult) -> Optional[ValidationReport]:
    """
    Turn a terminal validation result into a report.

    Args:
        result: Validation result, normally terminal

    Returns:
        None when the validation passed, otherwise a ValidationReport
    """
    if not has_validation_failed(result):
        return None

    failures = [
        ResourceFailure(
            resource_fqdn=r.resource_fqdn,
            resource_type=r.resource_type,
            status=r.status,
            messages=list(r.messages),
        )
        for r in result.per_resource_results
        if r.status in FAILING_STATUSES
    ]

    return ValidationReport(
        validation_id=result.validation_id,
        overall_status=result.overall_status,
        failures=failures,
        results=list(result.per_resource_results),
    )
