"""Unit tests for webhook signature verification."""

import base64
import hashlib
import hmac
import json

from courier_hub.couriers.signing import (
    canonical_payload,
    has_svix_headers,
    hmac_sha256_hex,
    verify_base64_signature,
    verify_hex_signature,
    verify_svix_signature,
)

SECRET = "webhook-secret"
BODY = b'{"tracking":"YAL-1","status":"Livree"}'


def _svix_sign(key: bytes, msg_id: str, timestamp: int, body: bytes) -> str:
    signed = f"{msg_id}.{timestamp}.".encode() + body
    return base64.b64encode(hmac.new(key, signed, hashlib.sha256).digest()).decode()


class TestHexSignature:
    """Tests for the default hex HMAC-SHA256 scheme."""

    def test_valid_signature(self):
        signature = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()
        assert verify_hex_signature(BODY, signature, SECRET)

    def test_prefixed_and_uppercase_signature(self):
        signature = hmac_sha256_hex(SECRET, BODY)
        assert verify_hex_signature(BODY, f"sha256={signature.upper()}", SECRET)

    def test_mapping_payload_uses_compact_json(self):
        payload = {"tracking": "YAL-1", "status": "Livree"}
        compact = json.dumps(payload, separators=(",", ":")).encode()
        assert canonical_payload(payload) == compact
        assert verify_hex_signature(payload, hmac_sha256_hex(SECRET, compact), SECRET)

    def test_wrong_secret(self):
        assert not verify_hex_signature(BODY, hmac_sha256_hex("other", BODY), SECRET)

    def test_missing_inputs(self):
        assert not verify_hex_signature(BODY, None, SECRET)
        assert not verify_hex_signature(BODY, hmac_sha256_hex(SECRET, BODY), None)

    def test_non_ascii_signature_does_not_raise(self):
        assert not verify_hex_signature(BODY, "signé", SECRET)

    def test_unserializable_payload_does_not_raise(self):
        assert not verify_hex_signature({"x": object()}, "abc", SECRET)


class TestSvixSignature:
    """Tests for Svix timestamped signatures."""

    def test_valid_whsec_secret(self):
        key = b"0123456789abcdef0123456789abcdef"
        secret = "whsec_" + base64.b64encode(key).decode()
        headers = {
            "svix-id": "msg_1",
            "svix-timestamp": "1700000000",
            "svix-signature": "v1," + _svix_sign(key, "msg_1", 1700000000, BODY),
        }
        assert verify_svix_signature(BODY, headers, secret, now=1700000010)

    def test_plain_secret_and_multiple_signatures(self):
        good = _svix_sign(SECRET.encode(), "msg_2", 1700000000, BODY)
        headers = {
            "Svix-Id": "msg_2",
            "Svix-Timestamp": "1700000000",
            "Svix-Signature": f"v1,bm90LXJpZ2h0 v1,{good}",
        }
        assert has_svix_headers(headers)
        assert verify_svix_signature(BODY, headers, SECRET, now=1700000000)

    def test_stale_timestamp_rejected(self):
        headers = {
            "svix-id": "msg_3",
            "svix-timestamp": "1700000000",
            "svix-signature": "v1," + _svix_sign(SECRET.encode(), "msg_3", 1700000000, BODY),
        }
        assert not verify_svix_signature(BODY, headers, SECRET, now=1700000000 + 301)

    def test_tampered_body_rejected(self):
        headers = {
            "svix-id": "msg_4",
            "svix-timestamp": "1700000000",
            "svix-signature": "v1," + _svix_sign(SECRET.encode(), "msg_4", 1700000000, BODY),
        }
        assert not verify_svix_signature(BODY + b" ", headers, SECRET, now=1700000000)

    def test_missing_headers(self):
        assert not has_svix_headers({"svix-id": "x"})
        assert not verify_svix_signature(BODY, {"svix-id": "x"}, SECRET)
        assert not verify_svix_signature(BODY, None, SECRET)


class TestBase64Signature:
    """Tests for bare base64 signatures."""

    def test_bare_and_versioned(self):
        signature = base64.b64encode(hmac.new(SECRET.encode(), BODY, hashlib.sha256).digest()).decode()
        assert verify_base64_signature(BODY, signature, SECRET)
        assert verify_base64_signature(BODY, f"v1,{signature}", SECRET)

    def test_wrong_signature(self):
        assert not verify_base64_signature(BODY, "AAAA", SECRET)
        assert not verify_base64_signature(BODY, None, SECRET)
