# intermeet/services/passwords.py
from __future__ import annotations

from typing import Optional

import bcrypt

# bcrypt only looks at the first 72 bytes and rejects longer input.
MAX_PASSWORD_BYTES = 72


def password_fits(password: str) -> bool:
    return 0 < len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: Optional[str], password_hash: str) -> bool:
    """Constant-time check of a submitted room password against its hash."""
    if not password or not password_fits(password):
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
