"""
QR Token Service - signed, short-lived check-in tokens.

A token binds a student to one job, round and live session. It is stateless:
validity comes only from the HMAC-SHA256 signature and the issue time, so a
scanned code can be checked without a database round-trip.

Wire format (opaque to clients):
    <base64url(claim JSON)>.<base64url(HMAC-SHA256 over the first part)>

Single use is not tracked here. The UNIQUE (student_id, round_id) constraint
on round_attendance is what stops a token being counted twice.
"""

import base64
import binascii
import hashlib
import hmac
import json
import secrets
import time
from functools import lru_cache
from typing import Callable

from pydantic import ValidationError

from placement_portal.core.config import get_settings
from placement_portal.core.errors import InvalidTokenError, TokenExpiredError
from placement_portal.schemas.schemas import QRTokenClaim

TOKEN_EXPIRY_SECONDS = 10 * 60
NONCE_BYTES = 16


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


class QRTokenCodec:
    """
    Issues and verifies attendance QR tokens.

    Args:
        secret: server-held signing key, must be non-empty
        expiry_seconds: how long a token stays valid after issue
        clock: returns current epoch seconds (injectable for tests)
    """

    def __init__(
        self,
        secret: str,
        expiry_seconds: int = TOKEN_EXPIRY_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("QR token secret must not be empty")
        self._key = secret.encode("utf-8")
        self.expiry_seconds = expiry_seconds
        self._clock = clock

    def _sign(self, payload_b64: str) -> str:
        digest = hmac.new(self._key, payload_b64.encode("ascii"), hashlib.sha256).digest()
        return _b64url_encode(digest)

    def issue(self, student_id: int, job_id: int, round_id: int, session_id: int) -> str:
        """Create a fresh signed token for the given check-in claim."""
        claim = QRTokenClaim(
            student_id=student_id,
            job_id=job_id,
            round_id=round_id,
            session_id=session_id,
            issued_at=int(self._clock()),
            nonce=secrets.token_hex(NONCE_BYTES),
        )
        payload_json = json.dumps(claim.model_dump(), separators=(",", ":"), sort_keys=True)
        payload_b64 = _b64url_encode(payload_json.encode("utf-8"))
        return f"{payload_b64}.{self._sign(payload_b64)}"

    def verify(self, token: str) -> QRTokenClaim:
        """
        Verify a token and return its claim.

        Raises:
            InvalidTokenError: malformed, tampered or incomplete token
            TokenExpiredError: genuine token older than the expiry window
        """
        if not isinstance(token, str) or token.count(".") != 1:
            raise InvalidTokenError()

        payload_b64, signature = token.split(".")
        try:
            expected = self._sign(payload_b64)
        except UnicodeEncodeError:
            raise InvalidTokenError() from None
        if not hmac.compare_digest(signature.encode("ascii", "replace"), expected.encode("ascii")):
            raise InvalidTokenError()

        try:
            payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
            claim = QRTokenClaim.model_validate(payload)
        except (binascii.Error, ValueError, ValidationError):
            raise InvalidTokenError() from None

        if self._clock() - claim.issued_at > self.expiry_seconds:
            raise TokenExpiredError()

        return claim


@lru_cache()
def get_qr_codec() -> QRTokenCodec:
    """Process-wide codec built from settings. Fails if no secret is configured."""
    settings = get_settings()
    secret = settings.qr_signing_secret
    if not secret:
        raise RuntimeError("QR_TOKEN_SECRET (or AUTH_SECRET) must be set to issue attendance QR codes")
    return QRTokenCodec(secret, expiry_seconds=settings.qr_token_expiry_minutes * 60)
