import bcrypt

from sfconnect.core.config import get_settings


def hash_password(pw: str) -> str:
    rounds = get_settings().password_hash_rounds
    return bcrypt.hashpw(pw.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(pw: str, hashed: str) -> bool:
    # checkpw raises ValueError on a malformed stored hash; treat as mismatch
    try:
        return bcrypt.checkpw(pw.encode("utf-8"), (hashed or "").encode("utf-8"))
    except ValueError:
        return False
