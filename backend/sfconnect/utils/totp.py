from __future__ import annotations

import base64
import hmac
import hashlib
import io
import secrets
import time
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote

import qrcode


def generate_base32_secret(nbytes: int = 20) -> str:
    # 20 bytes -> 160 bits -> 32 base32 chars
    raw = secrets.token_bytes(nbytes)
    return base64.b32encode(raw).decode("utf-8").replace("=", "")


def _normalize_b32(secret: str) -> bytes:
    s = (secret or "").strip().replace(" ", "").upper()
    if not s:
        return b""
    # add padding
    pad = "=" * ((8 - (len(s) % 8)) % 8)
    return base64.b32decode(s + pad, casefold=True)


def is_base32_secret(value: str) -> bool:
    try:
        return bool(_normalize_b32(value))
    except ValueError:
        return False


def totp_at(secret_b32: str, for_time: int, step_seconds: int = 30, digits: int = 6) -> Tuple[str, int]:
    key = _normalize_b32(secret_b32)
    if not key:
        return ("", 0)
    counter = int(for_time // step_seconds)
    msg = counter.to_bytes(8, "big")
    digest = hmac.new(key, msg, hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    code_int = (
        ((digest[offset] & 0x7F) << 24)
        | ((digest[offset + 1] & 0xFF) << 16)
        | ((digest[offset + 2] & 0xFF) << 8)
        | (digest[offset + 3] & 0xFF)
    )
    code = str(code_int % (10**digits)).zfill(digits)
    return code, counter


@dataclass
class TotpVerifyResult:
    ok: bool
    matched_step: Optional[int] = None


def verify_totp(
    secret_b32: str,
    code: str,
    *,
    now: Optional[int] = None,
    window: int = 2,
    step_seconds: int = 30,
    digits: int = 6,
) -> TotpVerifyResult:
    """Accept codes from `window` steps before or after the current one."""
    now = int(now if now is not None else time.time())
    raw = str(code or "").strip().replace(" ", "")
    if len(raw) != digits or not raw.isdigit():
        return TotpVerifyResult(ok=False)

    for delta in range(-int(window), int(window) + 1):
        t = now + delta * step_seconds
        expected, step = totp_at(secret_b32, t, step_seconds=step_seconds, digits=digits)
        if expected and hmac.compare_digest(expected, raw):
            return TotpVerifyResult(ok=True, matched_step=step)
    return TotpVerifyResult(ok=False)


def build_otpauth_uri(*, issuer: str, account: str, secret_b32: str) -> str:
    # Google Authenticator compatible; SHA1/6/30 defaults
    iss = (issuer or "").strip() or "SF Connect"
    acc = (account or "").strip()
    label = f"{iss}:{acc}" if acc else iss
    return (
        f"otpauth://totp/{quote(label, safe='@:')}"
        f"?secret={quote(secret_b32, safe='')}&issuer={quote(iss, safe='')}"
    )


def qr_data_url(payload: str) -> str:
    """Render `payload` as a PNG QR code embedded in a data: URL."""
    img = qrcode.make(payload)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
