"""HMAC request signing for the reconstruction API.

Every request carries three headers computed from the exact bytes sent:

    Date:          RFC 7231 GMT timestamp
    Digest:        SHA-256=<base64 sha256 of the body>
    Authorization: hmac username=..., algorithm="hmac-sha256",
                   headers="date @request-target digest", signature=...

The signature is the base64 HMAC-SHA256 of the canonical signing string:

    date: <Date>
    @request-target: <lowercased method> <path?query>
    digest: SHA-256=<digest>

Signatures depend on the timestamp, so a retried request must be signed
again rather than replayed.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import format_datetime

ALGORITHM = "hmac-sha256"
SIGNED_HEADERS = "date @request-target digest"


@dataclass(frozen=True)
class Credential:
    """Signing identity and secret for one client.

    The secret is excluded from repr so it never ends up in logs.
    """

    identity: str
    secret_key: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("Credential identity must not be empty")
        if not self.secret_key:
            raise ValueError("Credential secret key must not be empty")

    @classmethod
    def from_strings(cls, identity: str, secret_key: str) -> Credential:
        """Create a credential from a text secret (UTF-8 encoded)."""
        return cls(identity=identity, secret_key=secret_key.encode("utf-8"))


@dataclass(frozen=True)
class SignatureHeaders:
    """Headers produced by signing one request."""

    date: str
    digest: str
    authorization: str

    def as_dict(self) -> dict[str, str]:
        """Return the headers keyed by their HTTP names."""
        return {
            "Date": self.date,
            "Digest": f"SHA-256={self.digest}",
            "Authorization": self.authorization,
        }


def compute_digest(payload: bytes) -> str:
    """Return base64(SHA-256(payload))."""
    return base64.b64encode(hashlib.sha256(payload).digest()).decode("ascii")


def format_http_date(issued_at: datetime) -> str:
    """Format a timestamp as an RFC 7231 GMT date with second precision.

    Naive datetimes are taken to be UTC.
    """
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=UTC)
    return format_datetime(issued_at.astimezone(UTC).replace(microsecond=0), usegmt=True)


def build_signing_string(date: str, method: str, request_path: str, digest: str) -> str:
    """Build the canonical string that gets HMAC-signed.

    Args:
        date: Value of the Date header.
        method: HTTP method, any case.
        request_path: Path plus query string, without scheme or host.
        digest: Base64 SHA-256 of the payload.

    Returns:
        The three-line signing string.
    """
    return (
        f"date: {date}\n"
        f"@request-target: {method.lower()} {request_path}\n"
        f"digest: SHA-256={digest}"
    )


class Signer:
    """Signs requests with a fixed credential."""

    def __init__(self, credential: Credential) -> None:
        self._credential = credential

    @property
    def identity(self) -> str:
        return self._credential.identity

    def signature(self, signing_string: str) -> str:
        """Return base64(HMAC-SHA256(secret, signing_string))."""
        mac = hmac.new(
            self._credential.secret_key,
            signing_string.encode("utf-8"),
            hashlib.sha256,
        )
        return base64.b64encode(mac.digest()).decode("ascii")

    def sign(
        self,
        method: str,
        request_path: str,
        payload: bytes,
        issued_at: datetime,
    ) -> SignatureHeaders:
        """Sign one request.

        Args:
            method: HTTP method. Lower-cased only inside the signing string.
            request_path: Path plus query string exactly as transmitted.
            payload: Body bytes exactly as transmitted (b"" when bodyless).
            issued_at: Time used for the Date header.

        Returns:
            The Date, Digest and Authorization header values.
        """
        digest = compute_digest(payload)
        date = format_http_date(issued_at)
        signing_string = build_signing_string(date, method, request_path, digest)
        authorization = (
            f'hmac username="{self._credential.identity}", '
            f'algorithm="{ALGORITHM}", '
            f'headers="{SIGNED_HEADERS}", '
            f'signature="{self.signature(signing_string)}"'
        )
        return SignatureHeaders(date=date, digest=digest, authorization=authorization)
