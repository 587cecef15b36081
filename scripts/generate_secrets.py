#!/usr/bin/env python3
"""
Print deployment secrets for the SF Connect backend.

The session signing secret is not listed: the service creates and stores it
in the database on first start. Do NOT commit the output.
"""

from __future__ import annotations

import secrets

from cryptography.fernet import Fernet


def token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def main() -> None:
    print("# Paste these into your secret manager / hosting env vars")
    print(f"MFA_ENCRYPTION_KEY={Fernet.generate_key().decode('ascii')}")
    print(f"BOOTSTRAP_ADMIN_PASSWORD={token(18)}")
    print("# Optional")
    print(f"METRICS_TOKEN={token(32)}")


if __name__ == "__main__":
    main()
