"""Webhook signature helpers shared by courier adapters.

All verification functions return False on any malformed input instead
of raising.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

SVIX_TOLERANCE_SECONDS = 300
SVIX_SECRET_PREFIX = "whsec_"


def _safe_equal(expected: str, candidate: str) -> bool:
    # compare_digest rejects non-ASCII str, so compare bytes
    return hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))


def canonical_payload(payload: bytes | str | Mapping[str, Any] | Any) -> bytes:
    """
    Bytes a signature is computed over.

    Raw bodies are used as received. Parsed payloads are serialized as
    compact JSON so signatures over the original body still match when
    the sender used compact encoding.
    """
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def hmac_sha256_hex(secret: str, payload: bytes | str | Mapping[str, Any]) -> str:
    """Compute a hex HMAC-SHA256 over the canonical payload."""
    return hmac.new(secret.encode("utf-8"), canonical_payload(payload), hashlib.sha256).hexdigest()


def verify_hex_signature(
    payload: bytes | str | Mapping[str, Any],
    signature: str | None,
    secret: str | None,
) -> bool:
    """
    Verify a hex HMAC-SHA256 signature in constant time.

    A "sha256=" prefix on the signature is accepted.
    """
    if not signature or not secret:
        return False
    candidate = signature.strip()
    if candidate.lower().startswith("sha256="):
        candidate = candidate[7:]
    try:
        expected = hmac_sha256_hex(secret, payload)
    except (TypeError, ValueError):
        return False
    return _safe_equal(expected, candidate.lower())


def _svix_key(secret: str) -> bytes | None:
    if secret.startswith(SVIX_SECRET_PREFIX):
        try:
            return base64.b64decode(secret[len(SVIX_SECRET_PREFIX):])
        except (binascii.Error, ValueError):
            return None
    return secret.encode("utf-8")


def _lower_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    return {k.lower(): v for k, v in (headers or {}).items()}


def has_svix_headers(headers: Mapping[str, str] | None) -> bool:
    lowered = _lower_headers(headers)
    return all(h in lowered for h in ("svix-id", "svix-timestamp", "svix-signature"))


def verify_svix_signature(
    payload: bytes | str | Mapping[str, Any],
    headers: Mapping[str, str] | None,
    secret: str | None,
    tolerance: int = SVIX_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """
    Verify a Svix-style timestamped webhook signature.

    Signed content is "{svix-id}.{svix-timestamp}.{body}", signed with
    HMAC-SHA256 and base64 encoded. The svix-signature header holds one
    or more space-separated "v1,<signature>" entries; any match passes.
    Timestamps outside the tolerance window are rejected.
    """
    if not secret:
        return False

    lowered = _lower_headers(headers)
    msg_id = lowered.get("svix-id")
    timestamp = lowered.get("svix-timestamp")
    signature_header = lowered.get("svix-signature")
    if not (msg_id and timestamp and signature_header):
        return False

    try:
        sent_at = int(timestamp)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if abs(current - sent_at) > tolerance:
        logger.warning("Rejecting webhook with timestamp outside tolerance: %s", timestamp)
        return False

    key = _svix_key(secret)
    if key is None:
        return False

    try:
        signed = f"{msg_id}.{timestamp}.".encode("utf-8") + canonical_payload(payload)
    except (TypeError, ValueError):
        return False
    expected = base64.b64encode(hmac.new(key, signed, hashlib.sha256).digest()).decode("ascii")

    for entry in signature_header.split():
        version, _, value = entry.partition(",")
        if version == "v1" and _safe_equal(expected, value):
            return True
    return False


def verify_base64_signature(
    payload: bytes | str | Mapping[str, Any],
    signature: str | None,
    secret: str | None,
) -> bool:
    """
    Verify a base64 HMAC-SHA256 carried anywhere in a signature header.

    Accepts bare signatures and versioned "v1,<sig>" lists.
    """
    if not signature or not secret:
        return False
    try:
        body = canonical_payload(payload)
    except (TypeError, ValueError):
        return False
    expected = base64.b64encode(
        hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    ).decode("ascii")

    for token in signature.replace(",", " ").split():
        if _safe_equal(expected, token):
            return True
    return False
