"""
Tests for request signing
"""
import hashlib
import hmac

from verification.signer import sign, verify_signature


def test_sign_matches_hmac_sha256():
    """Signature is the hex HMAC-SHA256 of the payload bytes"""
    expected = hmac.new(b"secret", b'{"a":1}', hashlib.sha256).hexdigest()
    assert sign(b'{"a":1}', b"secret") == expected


def test_sign_is_deterministic():
    assert sign("payload", "secret") == sign("payload", "secret")


def test_sign_accepts_str_and_bytes_equally():
    assert sign("f04bdb47-d3be-4b28-b028-a652feb060b5", "secret") == \
        sign(b"f04bdb47-d3be-4b28-b028-a652feb060b5", b"secret")


def test_single_byte_change_changes_digest():
    payload = bytearray(b'{"image":{"context":"face","content":"data:image/jpeg;base64,AAAA"}}')
    original = sign(bytes(payload), "secret")
    for i in range(len(payload)):
        mutated = bytearray(payload)
        mutated[i] ^= 0x01
        assert sign(bytes(mutated), "secret") != original


def test_whitespace_in_payload_changes_digest():
    """Re-serializing with different spacing must not produce the same signature"""
    assert sign('{"a":1}', "secret") != sign('{"a": 1}', "secret")


def test_different_secret_changes_digest():
    assert sign("payload", "secret-a") != sign("payload", "secret-b")


def test_verify_signature_roundtrip_and_prefix():
    signature = sign(b"body", "secret")
    assert verify_signature(b"body", "secret", signature)
    assert verify_signature(b"body", "secret", f"sha256={signature}")
    assert verify_signature(b"body", "secret", signature.upper())


def test_verify_signature_rejects_mismatch_and_empty():
    signature = sign(b"body", "secret")
    assert not verify_signature(b"body!", "secret", signature)
    assert not verify_signature(b"body", "other", signature)
    assert not verify_signature(b"body", "secret", "")
    assert not verify_signature(b"body", "", signature)
