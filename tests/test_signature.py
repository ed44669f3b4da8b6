from __future__ import annotations

import base64
import hashlib
import hmac

import pytest

from core.signature import (
    parse_signature_header,
    retrieve_content_hash,
    sign,
    verify,
    verify_header,
)


def _flip_last(signature: str) -> str:
    replacement = "0" if signature[-1].lower() != "0" else "1"
    return signature[:-1] + replacement


def test_empty_secret_always_verifies():
    assert verify("sha256", "", b"payload", "anything") is True
    assert verify("sha256", "   ", b"payload", None) is True
    assert verify(None, "", b"payload", "") is True


def test_missing_signature_is_rejected_when_secret_configured():
    assert verify("sha256", "s3cret", b"payload", None) is False
    assert verify("sha256", "s3cret", b"payload", "") is False


@pytest.mark.parametrize("method", ["sha1", "sha256", "sha384", "sha512"])
def test_hex_signature_from_hub_is_accepted(method):
    body = b"<feed>update</feed>"
    expected = hmac.new(b"s3cret", body, getattr(hashlib, method)).hexdigest()

    assert verify(method, "s3cret", body, expected) is True
    assert verify(method, "s3cret", body, expected.upper()) is True
    assert verify(method, "s3cret", body, _flip_last(expected)) is False


def test_base64_signature_compared_case_insensitively():
    body = b"hello"
    digest = hmac.new(b"s3cret", body, hashlib.sha256).digest()
    encoded = base64.b64encode(digest).decode("ascii")

    assert verify("sha256", "s3cret", body, encoded) is True
    assert verify("sha256", "s3cret", body, encoded.swapcase()) is True
    assert verify("sha256", "other", body, encoded) is False


def test_only_exact_encodings_of_the_hmac_match():
    body = b"hello"
    digest = hmac.new(b"s3cret", body, hashlib.sha256).digest()
    encoded = base64.b64encode(digest).decode("ascii")
    sha1_encoded = base64.b64encode(hmac.new(b"s3cret", body, hashlib.sha1).digest()).decode("ascii")

    assert encoded.endswith("=")
    assert verify("sha256", "s3cret", body, encoded.rstrip("=")) is False
    assert verify("sha256", "s3cret", body, encoded + "A") is False
    assert verify("sha256", "s3cret", body, sha1_encoded) is False
    assert verify("sha256", "s3cret", body, digest.hex()[:40]) is False
    assert verify("sha256", "s3cret", body, base64.b64encode(digest.hex().encode()).decode()) is False


def test_unsupported_method_yields_empty_hash_and_rejects():
    assert retrieve_content_hash("md5", "s3cret", b"hello") == b""
    assert retrieve_content_hash(None, "s3cret", b"hello") == b""

    md5 = hmac.new(b"s3cret", b"hello", hashlib.md5).hexdigest()
    assert verify("md5", "s3cret", b"hello", md5) is False


def test_sign_then_verify_roundtrip():
    header = sign("sha256", "s3cret", "payload text")
    method, signature = parse_signature_header(header)

    assert method == "sha256"
    assert verify(method, "s3cret", b"payload text", signature) is True


def test_parse_signature_header():
    assert parse_signature_header("SHA1=abcdef") == ("sha1", "abcdef")
    assert parse_signature_header("sha256=YWJj==") == ("sha256", "YWJj==")
    assert parse_signature_header("abcdef") == (None, "abcdef")
    assert parse_signature_header(None) == (None, "")


def test_verify_header_reports_method():
    body = b"hello"
    header = sign("sha1", "s3cret", body)

    outcome = verify_header("s3cret", body, header)
    assert outcome.accepted is True
    assert outcome.method == "sha1"

    rejected = verify_header("s3cret", body, _flip_last(header))
    assert rejected.accepted is False

    assert verify_header(None, body, None).accepted is True
