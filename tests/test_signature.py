"""
Tests for Slack request signature verification.

Tests cover:
- Signatures computed with the v0 HMAC-SHA256 scheme verify
- Any single-byte change to body, timestamp or signature fails
- Missing headers / secret never raise
"""

import hashlib
import hmac

import pytest
from slack_sdk.signature import SignatureVerifier as SlackRequestSigner

from support_bridge.core.signature import SignatureVerifier

from tests.conftest import TEST_SIGNING_SECRET

TIMESTAMP = "1531420618"
BODY = b"token=xyzz0WbapA4vBCDEFasx0q6G&team_id=T1DC2JH3J&event=app_mention"


def sign(secret: str, timestamp: str, body: bytes) -> str:
    basestring = b"v0:" + timestamp.encode() + b":" + body
    return "v0=" + hmac.new(secret.encode(), basestring, hashlib.sha256).hexdigest()


def flip_byte(data: bytes, index: int) -> bytes:
    mutated = bytearray(data)
    mutated[index] = (mutated[index] + 1) % 256
    return bytes(mutated)


class TestValidSignatures:

    def test_documented_scheme_verifies(self, verifier):
        signature = sign(TEST_SIGNING_SECRET, TIMESTAMP, BODY)
        assert verifier.is_valid(BODY, TIMESTAMP, signature) is True

    def test_compute_signature_matches_scheme(self, verifier):
        assert verifier.compute_signature(TIMESTAMP, BODY) == sign(TEST_SIGNING_SECRET, TIMESTAMP, BODY)

    @pytest.mark.parametrize("body", [b"", b"{}", "{\"text\": \"héllo 🦄\"}".encode("utf-8")])
    def test_arbitrary_bodies_verify(self, verifier, body):
        signature = sign(TEST_SIGNING_SECRET, TIMESTAMP, body)
        assert verifier.is_valid(body, TIMESTAMP, signature) is True

    def test_body_is_hashed_verbatim(self, verifier):
        """Whitespace differences matter: the body is never re-serialized."""
        compact = b'{"type":"event_callback"}'
        spaced = b'{"type": "event_callback"}'
        signature = sign(TEST_SIGNING_SECRET, TIMESTAMP, compact)

        assert verifier.is_valid(compact, TIMESTAMP, signature) is True
        assert verifier.is_valid(spaced, TIMESTAMP, signature) is False


class TestTamperedRequests:

    @pytest.mark.parametrize("index", [0, 10, len(BODY) - 1])
    def test_body_mutation_fails(self, verifier, index):
        signature = sign(TEST_SIGNING_SECRET, TIMESTAMP, BODY)
        assert verifier.is_valid(flip_byte(BODY, index), TIMESTAMP, signature) is False

    def test_timestamp_mutation_fails(self, verifier):
        signature = sign(TEST_SIGNING_SECRET, TIMESTAMP, BODY)
        assert verifier.is_valid(BODY, "1531420619", signature) is False

    @pytest.mark.parametrize("index", [3, 20, -1])
    def test_signature_mutation_fails(self, verifier, index):
        signature = sign(TEST_SIGNING_SECRET, TIMESTAMP, BODY)
        chars = list(signature)
        chars[index] = "0" if chars[index] != "0" else "1"
        assert verifier.is_valid(BODY, TIMESTAMP, "".join(chars)) is False

    def test_wrong_secret_fails(self):
        signature = sign("another-secret", TIMESTAMP, BODY)
        assert SignatureVerifier(TEST_SIGNING_SECRET).is_valid(BODY, TIMESTAMP, signature) is False


class TestMissingInput:

    @pytest.mark.parametrize("timestamp,signature", [
        (None, "v0=abc"),
        (TIMESTAMP, None),
        ("", "v0=abc"),
        (TIMESTAMP, ""),
    ])
    def test_missing_headers_fail(self, verifier, timestamp, signature):
        assert verifier.is_valid(BODY, timestamp, signature) is False

    def test_unset_secret_fails(self):
        signature = sign("", TIMESTAMP, BODY)
        assert SignatureVerifier("").is_valid(BODY, TIMESTAMP, signature) is False

    def test_non_ascii_signature_does_not_raise(self, verifier):
        assert verifier.is_valid(BODY, TIMESTAMP, "v0=éé") is False


class TestLibraryCompatibility:

    def test_matches_slack_sdk_signer(self, verifier):
        expected = SlackRequestSigner(TEST_SIGNING_SECRET).generate_signature(timestamp=TIMESTAMP, body=BODY)
        assert verifier.compute_signature(TIMESTAMP, BODY) == expected

    def test_old_timestamps_still_verify(self, verifier):
        """Only the HMAC decides validity; there is no replay window."""
        signature = sign(TEST_SIGNING_SECRET, "1000000000", BODY)
        assert verifier.is_valid(BODY, "1000000000", signature) is True

    def test_undecodable_body_is_invalid(self, verifier):
        body = b"\xff\xfe not utf-8"
        assert verifier.is_valid(body, TIMESTAMP, "v0=" + "0" * 64) is False
