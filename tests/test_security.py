"""Tests for webhook signature verification."""

import hashlib
import hmac

from workhub.services.github.security import compute_signature, verify_signature

BODY = b'{"zen": "Keep it logically awesome."}'


def test_compute_signature_matches_github_format():
    expected = hmac.new(b"s3cret", BODY, hashlib.sha256).hexdigest()
    assert compute_signature(BODY, "s3cret") == f"sha256={expected}"


def test_verify_accepts_valid_signature():
    assert verify_signature(BODY, "s3cret", compute_signature(BODY, "s3cret"))


def test_verify_rejects_wrong_secret():
    assert not verify_signature(BODY, "s3cret", compute_signature(BODY, "other"))


def test_verify_rejects_tampered_body():
    signature = compute_signature(BODY, "s3cret")
    assert not verify_signature(BODY + b" ", "s3cret", signature)


def test_verify_requires_secret_and_header():
    signature = compute_signature(BODY, "s3cret")
    assert not verify_signature(BODY, None, signature)
    assert not verify_signature(BODY, "", signature)
    assert not verify_signature(BODY, "s3cret", None)
