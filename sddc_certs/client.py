"""
SDDC Manager API client.

Thin transport over the SDDC Manager public REST API: token
authentication, per-call timeouts, and error mapping. It returns typed
records and leaves polling and aggregation to the callers.
"""

import time
from typing import Any, Dict, List, Optional

import requests

from .errors import (
    AuthenticationError,
    InvalidResponse,
    TransportError,
    TransportTimeout,
)
from .logger import get_logger
from .models import (
    Certificate,
    Domain,
    ResourceCertificateSpec,
    ResponseEnvelope,
    ValidationResult,
)

# Timeout applied to each individual API call (seconds)
DEFAULT_API_CALL_TIMEOUT = 120


def normalize_base_url(host: str) -> str:
    """
    Turn a host name or URL into the API base URL.

    Args:
        host: "sddc.example.com" or "https://sddc.example.com/"

    Returns:
        Base URL without trailing slash, https:// when no scheme is given
    """
    host = host.strip().rstrip("/")
    if "://" not in host:
        host = f"https://{host}"
    return host


class SddcManagerClient:
    """
    Client for the SDDC Manager certificate and task endpoints.

    The access token is requested lazily on the first call and requested
    again once if the server answers 401 to an authenticated call.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        verify_tls: bool = True,
        call_timeout: float = DEFAULT_API_CALL_TIMEOUT,
        session: Optional[requests.Session] = None,
        clock=time.monotonic,
    ):
        """
        Initialize the client.

        Args:
            host: SDDC Manager host name or URL
            username: API user
            password: API password
            verify_tls: Verify the server certificate
            call_timeout: Default per-call timeout in seconds
            session: Pre-built session (mainly for tests)
            clock: Monotonic clock for the per-call budget, injectable for tests
        """
        self.base_url = normalize_base_url(host)
        self.username = username
        self._password = password
        self.verify_tls = verify_tls
        self.call_timeout = call_timeout
        self.logger = get_logger()
        self._session = session
        self._token: Optional[str] = None
        self._clock = clock

    @property
    def session(self) -> requests.Session:
        """Get the HTTP session, creating it if necessary."""
        if self._session is None:
            self._session = requests.Session()
            self._session.verify = self.verify_tls
            self._session.headers.update({
                "Content-Type": "application/json",
                "Accept": "application/json",
            })
        return self._session

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.call_timeout if timeout is None else timeout

    def authenticate(self, timeout: Optional[float] = None) -> None:
        """
        Request a new access token.

        Raises:
            AuthenticationError: If the credentials are rejected
            TransportError: If the token endpoint cannot be reached
        """
        url = f"{self.base_url}/v1/tokens"
        payload = {"username": self.username, "password": self._password}

        response = self._send("POST", url, payload, self._timeout(timeout), headers={})
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"SDDC Manager rejected credentials for {self.username}",
                status_code=response.status_code,
                remote_message=_remote_message(response),
            )
        _raise_for_status(response, "POST /v1/tokens")

        body = _decode_json(response, "POST /v1/tokens")
        token = body.get("accessToken") if isinstance(body, dict) else None
        if not token:
            raise InvalidResponse("Token response carries no accessToken")

        self._token = token
        self.logger.debug(f"Authenticated to {self.base_url} as {self.username}")

    def _send(
        self,
        method: str,
        url: str,
        payload: Any,
        timeout: float,
        headers: Dict[str, str],
    ) -> requests.Response:
        try:
            return self.session.request(
                method,
                url,
                json=payload,
                headers=headers,
                timeout=timeout,
            )
        except requests.exceptions.Timeout as e:
            raise TransportTimeout(f"{method} {url} timed out after {timeout}s: {e}")
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Connection to {self.base_url} failed: {e}")
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}")

    def _request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """
        Make an authenticated API call.

        The timeout is one budget for the whole call: token requests and
        the retry after a rejected token draw from it too.

        Returns:
            The response, already checked for an error status

        Raises:
            TransportTimeout: If the budget is used up between two requests
        """
        timeout = self._timeout(timeout)
        expires_at = self._clock() + timeout
        url = f"{self.base_url}{path}"
        operation = f"{method} {path}"

        def budget_left() -> float:
            left = expires_at - self._clock()
            if left <= 0:
                raise TransportTimeout(f"{operation} ran out of its {timeout}s budget")
            return left

        if self._token is None:
            self.authenticate(budget_left())

        left = budget_left()
        self.logger.debug(f"{operation} (timeout {left:.0f}s)")
        response = self._send(
            method, url, payload, left, {"Authorization": f"Bearer {self._token}"}
        )

        # Tokens expire; try exactly once more with a fresh one
        if response.status_code == 401:
            self.logger.debug("Access token rejected, re-authenticating")
            self.authenticate(budget_left())
            response = self._send(
                method, url, payload, budget_left(), {"Authorization": f"Bearer {self._token}"}
            )

        _raise_for_status(response, operation)
        return response

    def _envelope(self, response: requests.Response, operation: str) -> ResponseEnvelope:
        body = _decode_json(response, operation) if response.content else None
        if response.status_code == 202:
            return ResponseEnvelope(accepted=body)
        return ResponseEnvelope(sync=body)

    # -- certificate validation -------------------------------------------

    def submit_validation(
        self,
        domain_id: str,
        specs: List[ResourceCertificateSpec],
        timeout: Optional[float] = None,
    ) -> ResponseEnvelope:
        """Start validating resource certificates in a domain."""
        path = f"/v1/domains/{domain_id}/resource-certificates/validations"
        response = self._request("PUT", path, [s.to_api() for s in specs], timeout)
        return self._envelope(response, f"PUT {path}")

    def get_validation_status(
        self,
        validation_id: str,
        timeout: Optional[float] = None,
    ) -> ValidationResult:
        """Fetch the current state of a certificate validation."""
        path = f"/v1/domains/resource-certificates/validations/{validation_id}"
        response = self._request("GET", path, timeout=timeout)
        return ValidationResult.from_api(_decode_json(response, f"GET {path}"))

    # -- certificate generation -------------------------------------------

    def submit_generation(
        self,
        domain_id: str,
        ca_type: str,
        resources: List[Dict[str, str]],
        timeout: Optional[float] = None,
    ) -> ResponseEnvelope:
        """
        Start generating certificates for resources in a domain.

        Args:
            domain_id: Workload domain id
            ca_type: Certificate authority type (e.g. "Microsoft", "OpenSSL")
            resources: [{"fqdn": ..., "type": ...}, ...]
        """
        path = f"/v1/domains/{domain_id}/certificates"
        payload = {"caType": ca_type, "resources": resources}
        response = self._request("PUT", path, payload, timeout)
        return self._envelope(response, f"PUT {path}")

    def get_task(self, task_id: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Fetch an SDDC Manager task as a raw map."""
        path = f"/v1/tasks/{task_id}"
        response = self._request("GET", path, timeout=timeout)
        return _decode_json(response, f"GET {path}")

    # -- reads --------------------------------------------------------------

    def list_certificates(
        self,
        domain_id: str,
        timeout: Optional[float] = None,
    ) -> List[Certificate]:
        """List the certificates of every resource in a domain."""
        path = f"/v1/domains/{domain_id}/resource-certificates"
        response = self._request("GET", path, timeout=timeout)
        return [Certificate.from_api(e) for e in _elements(response, f"GET {path}")]

    def list_domains(self, timeout: Optional[float] = None) -> List[Domain]:
        """List all workload domains."""
        response = self._request("GET", "/v1/domains", timeout=timeout)
        return [Domain.from_api(e) for e in _elements(response, "GET /v1/domains")]


def _remote_message(response: requests.Response) -> Optional[str]:
    """Extract the control plane's error message, if the body has one."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or None
    if isinstance(body, dict):
        return body.get("message") or body.get("errorCode")
    return None


def _raise_for_status(response: requests.Response, operation: str) -> None:
    if response.status_code < 400:
        return

    remote = _remote_message(response)
    message = f"{operation} failed with HTTP {response.status_code}"
    if remote:
        message += f": {remote}"

    if response.status_code in (401, 403):
        raise AuthenticationError(message, response.status_code, remote)
    raise TransportError(message, response.status_code, remote)


def _decode_json(response: requests.Response, operation: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise InvalidResponse(f"{operation} returned a non-JSON body: {e}")


def _elements(response: requests.Response, operation: str) -> List[Any]:
    body = _decode_json(response, operation)
    if body is None:
        return []
    if not isinstance(body, dict):
        raise InvalidResponse(f"{operation} returned {type(body).__name__}, expected a page")
    return body.get("elements") or []
