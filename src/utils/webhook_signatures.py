"""
Low-level webhook credential helpers.

- Constant-time comparison of shared secrets
- HTTP Basic credential parsing
- Payload hashing for the audit trail
"""
import base64
import binascii
import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def constant_time_equals(expected: str, provided: str) -> bool:
    """
    Timing-safe string comparison. Compares UTF-8 bytes so non-ASCII input
    cannot raise inside hmac.compare_digest.
    Returns False when either side is empty.
    """
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def parse_basic_credentials(authorization: Optional[str]) -> Optional[tuple[str, str]]:
    """
    Decode an "Authorization: Basic <base64(user:password)>" header.
    Returns (username, password) or None when the header is absent or malformed.
    """
    if not authorization:
        return None

    scheme, _, encoded = authorization.partition(" ")
    if scheme.lower() != "basic" or not encoded.strip():
        return None

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.debug("Malformed Basic authorization header")
        return None

    if ":" not in decoded:
        return None
    username, _, password = decoded.partition(":")
    return username, password


def compute_payload_hash(body: bytes) -> str:
    """Compute SHA-256 hash of raw payload for dedup and audit."""
    return hashlib.sha256(body).hexdigest()
