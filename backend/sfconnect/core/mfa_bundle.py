"""
Storage format of `users.mfa_secret`.

Current rows hold JSON ``{"secret": "<base32>", "backupCodes": ["<bcrypt>", ...]}``.
Older rows (and enrollments that are still pending) hold only the raw base32
secret. Either form may be Fernet-sealed (see utils.crypto).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from sfconnect.utils.crypto import seal_text, unseal_text
from sfconnect.utils.totp import is_base32_secret


class MfaBundleError(ValueError):
    """Stored MFA data is neither a bundle nor a bare secret."""


@dataclass(frozen=True)
class LegacySecretOnly:
    secret: str

    @property
    def backup_code_hashes(self) -> Tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class MfaBundle:
    secret: str
    backup_code_hashes: Tuple[str, ...] = field(default_factory=tuple)

    def without_code(self, index: int) -> "MfaBundle":
        hashes = self.backup_code_hashes
        return MfaBundle(self.secret, hashes[:index] + hashes[index + 1:])


StoredMfa = Union[LegacySecretOnly, MfaBundle]


def decode_bundle(stored: Optional[str]) -> StoredMfa:
    text = unseal_text(stored).strip()
    if not text:
        raise MfaBundleError("empty MFA data")

    try:
        data = json.loads(text)
    except ValueError:
        data = None

    if data is None or isinstance(data, (str, int, float)):
        # Not structured JSON: legacy bare secret
        if is_base32_secret(text):
            return LegacySecretOnly(secret=text)
        raise MfaBundleError("MFA data is not a base32 secret")

    if not isinstance(data, dict):
        raise MfaBundleError("MFA data has unexpected shape")
    secret = data.get("secret")
    codes = data.get("backupCodes", [])
    if not isinstance(secret, str) or not is_base32_secret(secret):
        raise MfaBundleError("MFA bundle has no valid secret")
    if not isinstance(codes, list) or not all(isinstance(c, str) for c in codes):
        raise MfaBundleError("MFA bundle has malformed backup codes")
    return MfaBundle(secret=secret, backup_code_hashes=tuple(codes))


def encode_bundle(value: StoredMfa) -> str:
    if isinstance(value, LegacySecretOnly):
        return seal_text(value.secret)
    return seal_text(json.dumps({"secret": value.secret, "backupCodes": list(value.backup_code_hashes)}))
