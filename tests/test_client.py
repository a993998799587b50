"""Tests for the SDDC Manager API client."""

from unittest.mock import MagicMock

import pytest
import requests

from sddc_certs.client import SddcManagerClient, normalize_base_url
from sddc_certs.errors import (
    AuthenticationError,
    InvalidResponse,
    TransportError,
    TransportTimeout,
)
from sddc_certs.models import ResourceCertificateSpec, ValidationStatus


def make_response(status_code, body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.content = text.encode()
        response.text = text
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.content = b"{...}"
        response.json.return_value = body
    return response


TOKEN = make_response(200, {"accessToken": "tok-1", "refreshToken": {"id": "r"}})


@pytest.fixture
def session():
    return MagicMock()


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(session, clock):
    return SddcManagerClient(
        "sddc.example.com", "admin@local", "secret", call_timeout=30, session=session, clock=clock
    )


def sent(session, index):
    """(method, url, kwargs) of the index-th request on the mocked session."""
    call = session.request.call_args_list[index]
    return call.args[0], call.args[1], call.kwargs


class TestNormalizeBaseUrl:

    @pytest.mark.parametrize("host, expected", [
        ("sddc.example.com", "https://sddc.example.com"),
        ("https://sddc.example.com/", "https://sddc.example.com"),
        ("  https://10.0.0.4  ", "https://10.0.0.4"),
    ])
    def test_normalize(self, host, expected):
        assert normalize_base_url(host) == expected


class TestAuthentication:

    def test_first_call_requests_token(self, client, session):
        session.request.side_effect = [TOKEN, make_response(200, {"elements": []})]

        client.list_domains()

        method, url, kwargs = sent(session, 0)
        assert (method, url) == ("POST", "https://sddc.example.com/v1/tokens")
        assert kwargs["json"] == {"username": "admin@local", "password": "secret"}
        _, _, kwargs = sent(session, 1)
        assert kwargs["headers"] == {"Authorization": "Bearer tok-1"}

    def test_token_is_reused(self, client, session):
        session.request.side_effect = [
            TOKEN,
            make_response(200, {"elements": []}),
            make_response(200, {"elements": []}),
        ]

        client.list_domains()
        client.list_domains()

        assert session.request.call_count == 3

    def test_expired_token_is_renewed_once(self, client, session):
        session.request.side_effect = [
            TOKEN,
            make_response(401, {"message": "token expired"}),
            make_response(200, {"accessToken": "tok-2"}),
            make_response(200, {"elements": []}),
        ]

        assert client.list_domains() == []

        _, _, kwargs = sent(session, 3)
        assert kwargs["headers"] == {"Authorization": "Bearer tok-2"}

    def test_second_401_is_an_authentication_error(self, client, session):
        session.request.side_effect = [
            TOKEN,
            make_response(401, {"message": "token expired"}),
            make_response(200, {"accessToken": "tok-2"}),
            make_response(401, {"message": "still no"}),
        ]

        with pytest.raises(AuthenticationError):
            client.list_domains()

    def test_rejected_credentials(self, client, session):
        session.request.side_effect = [make_response(401, {"message": "bad password"})]

        with pytest.raises(AuthenticationError) as exc_info:
            client.list_domains()

        assert exc_info.value.remote_message == "bad password"

    def test_token_response_without_token_is_invalid(self, client, session):
        session.request.side_effect = [make_response(200, {"refreshToken": {}})]

        with pytest.raises(InvalidResponse):
            client.authenticate()


class TestErrorMapping:

    def test_timeout_maps_to_transport_timeout(self, client, session):
        session.request.side_effect = [TOKEN, requests.exceptions.ReadTimeout("read timed out")]

        with pytest.raises(TransportTimeout):
            client.get_task("T1")

    def test_connection_error_maps_to_transport_error(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransportError) as exc_info:
            client.get_task("T1")

        assert not isinstance(exc_info.value, TransportTimeout)

    def test_http_error_keeps_status_and_remote_message(self, client, session):
        session.request.side_effect = [
            TOKEN,
            make_response(500, {"errorCode": "X", "message": "Internal failure"}),
        ]

        with pytest.raises(TransportError) as exc_info:
            client.get_task("T1")

        assert exc_info.value.status_code == 500
        assert exc_info.value.remote_message == "Internal failure"
        assert "Internal failure" in str(exc_info.value)

    def test_non_json_body_is_invalid(self, client, session):
        session.request.side_effect = [TOKEN, make_response(200, text="<html>")]

        with pytest.raises(InvalidResponse):
            client.get_task("T1")

    def test_per_call_timeout_is_passed_through(self, client, session):
        session.request.side_effect = [TOKEN, make_response(200, {"id": "T1"})]

        client.get_task("T1", timeout=7)

        _, _, kwargs = sent(session, 1)
        assert kwargs["timeout"] == 7

    def test_default_call_timeout(self, client, session):
        session.request.side_effect = [TOKEN, make_response(200, {"id": "T1"})]

        client.get_task("T1")

        _, _, kwargs = sent(session, 1)
        assert kwargs["timeout"] == 30


class TestCallBudget:

    @staticmethod
    def slow(clock, seconds, responses):
        """Session side effect where every request takes `seconds` on the clock."""
        pending = list(responses)

        def request(*args, **kwargs):
            clock.now += seconds
            return pending.pop(0)

        return request

    def test_token_request_draws_from_call_budget(self, client, session, clock):
        session.request.side_effect = self.slow(clock, 20, [TOKEN, make_response(200, {"id": "T1"})])

        client.get_task("T1")

        timeouts = [sent(session, i)[2]["timeout"] for i in range(2)]
        assert timeouts == [30, 10]

    def test_renewal_after_401_draws_from_call_budget(self, client, session, clock):
        session.request.side_effect = self.slow(clock, 5, [
            TOKEN,
            make_response(401, {"message": "token expired"}),
            make_response(200, {"accessToken": "tok-2"}),
            make_response(200, {"id": "T1"}),
        ])

        client.get_task("T1")

        timeouts = [sent(session, i)[2]["timeout"] for i in range(4)]
        assert timeouts == [30, 25, 20, 15]

    def test_exhausted_budget_stops_before_next_request(self, client, session, clock):
        session.request.side_effect = self.slow(clock, 31, [TOKEN, make_response(200, {"id": "T1"})])

        with pytest.raises(TransportTimeout):
            client.get_task("T1")

        assert session.request.call_count == 1


class TestEndpoints:

    def test_submit_validation_accepted(self, client, session):
        session.request.side_effect = [TOKEN, make_response(202, {"validationId": "V1"})]
        specs = [ResourceCertificateSpec("vc01.example.com", "VCENTER", "Microsoft", "PEM")]

        envelope = client.submit_validation("D1", specs)

        assert envelope.accepted == {"validationId": "V1"}
        assert envelope.sync is None
        method, url, kwargs = sent(session, 1)
        assert method == "PUT"
        assert url == "https://sddc.example.com/v1/domains/D1/resource-certificates/validations"
        assert kwargs["json"] == [{
            "resourceFqdn": "vc01.example.com",
            "resourceType": "VCENTER",
            "caType": "Microsoft",
            "certificateChain": "PEM",
        }]

    def test_submit_validation_sync(self, client, session):
        body = {"validationId": "V1", "executionStatus": "SUCCEEDED"}
        session.request.side_effect = [TOKEN, make_response(200, body)]

        envelope = client.submit_validation("D1", [])

        assert envelope.sync == body
        assert envelope.accepted is None

    def test_get_validation_status(self, client, session):
        session.request.side_effect = [TOKEN, make_response(200, {
            "validationId": "V1",
            "executionStatus": "COMPLETED",
            "resultStatus": "SUCCEEDED",
            "validations": [{"resourceFqdn": "vc01", "validationStatus": "SUCCEEDED"}],
        })]

        result = client.get_validation_status("V1")

        assert result.overall_status is ValidationStatus.SUCCEEDED
        _, url, _ = sent(session, 1)
        assert url == "https://sddc.example.com/v1/domains/resource-certificates/validations/V1"

    def test_submit_generation(self, client, session):
        session.request.side_effect = [TOKEN, make_response(202, {"id": "T1", "status": "IN_PROGRESS"})]

        envelope = client.submit_generation("D1", "OpenSSL", [{"fqdn": "vc01", "type": "VCENTER"}])

        assert envelope.accepted["id"] == "T1"
        method, url, kwargs = sent(session, 1)
        assert (method, url) == ("PUT", "https://sddc.example.com/v1/domains/D1/certificates")
        assert kwargs["json"] == {
            "caType": "OpenSSL",
            "resources": [{"fqdn": "vc01", "type": "VCENTER"}],
        }

    def test_list_certificates(self, client, session):
        session.request.side_effect = [TOKEN, make_response(200, {"elements": [
            {"issuedTo": "vc01", "keySize": 2048, "isInstalled": True, "subjectAlternativeName": ["vc01"]},
            {"issuedTo": "nsx01"},
        ]})]

        certificates = client.list_certificates("D1")

        assert [c.issued_to for c in certificates] == ["vc01", "nsx01"]
        assert certificates[0].key_size == "2048"
        assert certificates[0].is_installed is True
        assert certificates[1].key_size is None
        _, url, _ = sent(session, 1)
        assert url == "https://sddc.example.com/v1/domains/D1/resource-certificates"

    def test_list_certificates_rejects_non_page_body(self, client, session):
        session.request.side_effect = [TOKEN, make_response(200, ["not", "a", "page"])]

        with pytest.raises(InvalidResponse):
            client.list_certificates("D1")

    def test_list_domains(self, client, session):
        session.request.side_effect = [TOKEN, make_response(200, {"elements": [
            {"id": "id-1", "name": "sfo-m01", "type": "MANAGEMENT", "status": "ACTIVE"},
        ]})]

        domains = client.list_domains()

        assert domains[0].id == "id-1"
        assert domains[0].type == "MANAGEMENT"
