"""
Content-derived identifiers for fetched entities.

Certificates are read from SDDC Manager, never created here, so they have
no key this system controls. Their identifier is a digest of their field
values in a fixed order: unchanged data keeps its id, changed data gets a
new one.
"""

from typing import Any, Dict, List, Sequence

from cryptography.exceptions import AlreadyFinalized, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes

from .errors import EncodingError
from .models import Certificate

DEFAULT_ALGORITHM = "sha256"

# md5 only for compatibility with existing 128-bit identifiers
ALGORITHMS: Dict[str, Any] = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
    "md5": hashes.MD5,
}

# Field order of a certificate identifier; changing it changes every id
CERTIFICATE_IDENTITY_FIELDS = (
    "domain",
    "certificate_error",
    "expiration_status",
    "is_installed",
    "issued_by",
    "issued_to",
    "key_size",
    "not_after",
    "not_before",
    "number_of_days_to_expire",
    "pem_encoded",
    "public_key",
    "public_key_algorithm",
    "serial_number",
    "signature_algorithm",
    "subject",
    "thumbprint",
    "thumbprint_algorithm",
    "version",
)


def fingerprint(ordered_fields: Sequence[str], algorithm: str = DEFAULT_ALGORITHM) -> str:
    """
    Digest an ordered list of strings.

    The fields are concatenated without separator, encoded as UTF-8 and
    hashed; the digest is returned as lowercase hex.

    Args:
        ordered_fields: Field values, order significant
        algorithm: One of ALGORITHMS

    Returns:
        Hex digest

    Raises:
        EncodingError: If the input cannot be encoded or digested
    """
    algorithm_class = ALGORITHMS.get(algorithm)
    if algorithm_class is None:
        raise EncodingError(
            f"Unsupported fingerprint algorithm '{algorithm}'. "
            f"Must be one of: {', '.join(ALGORITHMS)}"
        )

    try:
        digest = hashes.Hash(algorithm_class())
        digest.update("".join(ordered_fields).encode("utf-8"))
        return digest.finalize().hex()
    except (TypeError, UnicodeEncodeError) as e:
        raise EncodingError(f"Cannot encode fingerprint input: {e}")
    except (AlreadyFinalized, UnsupportedAlgorithm) as e:
        raise EncodingError(f"Digest computation failed: {e}")


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def certificate_identity_fields(cert: Certificate) -> List[str]:
    """
    Render a certificate's identity fields in their fixed order.

    Absent values become "", booleans "true"/"false", integers decimal.
    """
    return [_render(getattr(cert, name)) for name in CERTIFICATE_IDENTITY_FIELDS]


def certificate_id(cert: Certificate, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Stable identifier of a fetched certificate."""
    return fingerprint(certificate_identity_fields(cert), algorithm)
