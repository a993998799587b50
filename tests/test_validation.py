"""Tests for validation outcome classification and aggregation."""

import pytest

from sddc_certs.errors import InvalidResponse, ValidationFailed
from sddc_certs.models import ValidationResult, ValidationStatus
from sddc_certs.validation import aggregate, has_validation_failed, has_validation_finished

from conftest import resource_validation, validation_payload


def result_of(status, validations=None) -> ValidationResult:
    return ValidationResult.from_api(validation_payload(status, validations=validations))


class TestPredicates:

    @pytest.mark.parametrize("status, finished", [
        ("IN_PROGRESS", False),
        ("SUCCEEDED", True),
        ("FAILED", True),
        ("FAILED_WITH_WARNINGS", True),
    ])
    def test_finished(self, status, finished):
        assert has_validation_finished(result_of(status)) is finished

    @pytest.mark.parametrize("status, failed", [
        ("SUCCEEDED", False),
        ("FAILED", True),
        ("FAILED_WITH_WARNINGS", True),
    ])
    def test_failed_by_overall_status(self, status, failed):
        assert has_validation_failed(result_of(status)) is failed

    def test_failing_resource_fails_a_succeeded_validation(self):
        result = result_of("SUCCEEDED", [
            resource_validation("a", "SUCCEEDED"),
            resource_validation("b", "FAILED_WITH_WARNINGS", "weak key"),
        ])

        assert has_validation_failed(result)

    def test_completed_execution_reads_result_status(self):
        result = ValidationResult.from_api({
            "validationId": "V1",
            "executionStatus": "COMPLETED",
            "resultStatus": "FAILED",
        })

        assert has_validation_finished(result)
        assert has_validation_failed(result)

    def test_unknown_status_is_invalid(self):
        with pytest.raises(InvalidResponse):
            result_of("HALF_DONE")


class TestMalformedResults:

    @pytest.mark.parametrize("validations", [
        ["not-an-object"],
        [None],
        {"resourceFqdn": "a"},
        "a",
    ])
    def test_malformed_validations_are_invalid(self, validations):
        with pytest.raises(InvalidResponse):
            ValidationResult.from_api({"executionStatus": "FAILED", "validations": validations})

    @pytest.mark.parametrize("error_response", ["boom", ["boom"], 42])
    def test_non_object_error_response_is_invalid(self, error_response):
        entry = resource_validation("a", "FAILED")
        entry["errorResponse"] = error_response

        with pytest.raises(InvalidResponse):
            result_of("FAILED", [entry])

    def test_non_list_nested_errors_are_invalid(self):
        entry = resource_validation("a", "FAILED")
        entry["errorResponse"] = {"message": "bad", "nestedErrors": "boom"}

        with pytest.raises(InvalidResponse):
            result_of("FAILED", [entry])


class TestAggregate:

    def test_passing_validation_yields_no_report(self):
        result = result_of("SUCCEEDED", [resource_validation("a", "SUCCEEDED")])

        assert aggregate(result) is None

    def test_only_failing_resource_is_reported_with_messages_intact(self):
        result = ValidationResult.from_api(validation_payload("FAILED", validations=[
            resource_validation("host-1", "SUCCEEDED"),
            {
                "resourceFqdn": "host-2",
                "resourceType": "NSXT_MANAGER",
                "validationStatus": "FAILED",
                "validationMessage": "Certificate chain is incomplete",
                "errorResponse": {
                    "message": "Issuer not trusted",
                    "nestedErrors": [{"message": "Missing root CA"}],
                },
            },
            resource_validation("host-3", "SUCCEEDED"),
        ]))

        report = aggregate(result)

        assert report is not None
        assert report.validation_id == "V1"
        assert report.overall_status is ValidationStatus.FAILED
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert failure.resource_fqdn == "host-2"
        assert failure.messages == [
            "Certificate chain is incomplete",
            "Issuer not trusted",
            "Missing root CA",
        ]
        assert [r.resource_fqdn for r in report.results] == ["host-1", "host-2", "host-3"]

    def test_every_failing_resource_is_reported_in_order(self):
        result = result_of("FAILED", [
            resource_validation("a", "FAILED", "expired"),
            resource_validation("b", "SUCCEEDED"),
            resource_validation("c", "FAILED_WITH_WARNINGS", "SAN mismatch"),
        ])

        report = aggregate(result)

        assert [f.resource_fqdn for f in report.failures] == ["a", "c"]
        assert report.diagnostics() == [
            "a (VCENTER): FAILED: expired",
            "c (VCENTER): FAILED_WITH_WARNINGS: SAN mismatch",
        ]

    def test_failed_overall_without_failing_resource_still_reports(self):
        report = aggregate(result_of("FAILED"))

        assert report.failures == []
        assert report.diagnostics() == [
            "validation finished with status FAILED without naming a failing resource"
        ]

    def test_resource_without_status_is_not_a_failure(self):
        result = ValidationResult.from_api(validation_payload("FAILED", validations=[
            {"resourceFqdn": "pending-host"},
            resource_validation("bad-host", "FAILED", "expired"),
        ]))

        report = aggregate(result)

        assert result.per_resource_results[0].status is ValidationStatus.IN_PROGRESS
        assert [f.resource_fqdn for f in report.failures] == ["bad-host"]

    def test_validation_failed_message_lists_every_failure(self):
        report = aggregate(result_of("FAILED", [
            resource_validation("a", "FAILED", "expired"),
            resource_validation("b", "FAILED"),
        ]))

        error = ValidationFailed(report)

        lines = str(error).splitlines()
        assert lines[0] == "Certificate validation V1 finished with status FAILED: 2 resource(s) failed"
        assert lines[1:] == [
            "  - a (VCENTER): FAILED: expired",
            "  - b (VCENTER): FAILED: no message reported",
        ]
        assert error.report is report
