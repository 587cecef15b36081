import base64
from urllib.parse import parse_qs, urlparse

import pytest

from sfconnect.utils.totp import (
    build_otpauth_uri,
    generate_base32_secret,
    is_base32_secret,
    qr_data_url,
    totp_at,
    verify_totp,
)

# RFC 6238 appendix B seed (SHA1), base32 encoded
RFC_SECRET = base64.b32encode(b"12345678901234567890").decode("ascii")


@pytest.mark.parametrize(
    "for_time,expected",
    [
        (59, "287082"),
        (1111111109, "081804"),
        (1111111111, "050471"),
        (1234567890, "005924"),
        (2000000000, "279037"),
    ],
)
def test_rfc6238_vectors(for_time, expected):
    code, _ = totp_at(RFC_SECRET, for_time)
    assert code == expected


def test_generated_secret_has_160_bits():
    secret = generate_base32_secret()
    assert len(secret) == 32
    assert len(base64.b32decode(secret)) == 20
    assert is_base32_secret(secret)
    assert generate_base32_secret() != secret


def test_verify_accepts_two_steps_of_drift():
    now = 1_700_000_000
    for offset in (-60, -45, -30, 0, 30, 45, 60):
        code, _ = totp_at(RFC_SECRET, now + offset)
        assert verify_totp(RFC_SECRET, code, now=now, window=2).ok, offset


def test_verify_rejects_three_steps_of_drift():
    now = 1_700_000_000
    for offset in (-90, 90, 120):
        code, _ = totp_at(RFC_SECRET, now + offset)
        assert not verify_totp(RFC_SECRET, code, now=now, window=2).ok, offset


@pytest.mark.parametrize("code", ["", "12345", "1234567", "abcdef", None])
def test_verify_rejects_malformed_codes(code):
    assert not verify_totp(RFC_SECRET, code, now=59).ok


def test_is_base32_secret_rejects_garbage():
    assert not is_base32_secret("")
    assert not is_base32_secret("not base32!")
    assert not is_base32_secret("{\"secret\": 1}")


def test_otpauth_uri_embeds_label_and_secret():
    uri = build_otpauth_uri(issuer="SF Connect", account="alice@example.com", secret_b32="JBSWY3DPEHPK3PXP")
    parsed = urlparse(uri)
    assert parsed.scheme == "otpauth"
    assert parsed.netloc == "totp"
    assert "alice@example.com" in parsed.path
    query = parse_qs(parsed.query)
    assert query["secret"] == ["JBSWY3DPEHPK3PXP"]
    assert query["issuer"] == ["SF Connect"]


def test_qr_data_url_is_png():
    url = qr_data_url("otpauth://totp/SF%20Connect:a@b.c?secret=JBSWY3DPEHPK3PXP")
    assert url.startswith("data:image/png;base64,")
    png = base64.b64decode(url.split(",", 1)[1])
    assert png[:8] == b"\x89PNG\r\n\x1a\n"
