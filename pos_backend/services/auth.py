from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt

from pos_backend.core.config import JWT_ALGORITHM, JWT_EXPIRE_MINUTES, JWT_SECRET_KEY

_DEV_FALLBACK_SECRET = "dev-only-change-me"


def _secret_key() -> str:
    # startup_checks bloqueia segredo vazio em produção
    return JWT_SECRET_KEY or _DEV_FALLBACK_SECRET


def _normalize_password_for_bcrypt(password: str) -> bytes:
    """bcrypt only looks at the first 72 bytes; longer input is truncated instead of failing."""
    pw = (password or "").encode("utf-8")
    return pw[:72]


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(_normalize_password_for_bcrypt(password), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_normalize_password_for_bcrypt(plain_password), (password_hash or "").encode("utf-8"))
    except ValueError:
        # hash malformado
        return False


def create_access_token(
    user_id: int | str,
    extra: Optional[Dict[str, Any]] = None,
    expires_minutes: int = JWT_EXPIRE_MINUTES,
) -> str:
    # "sub" precisa ser string
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, _secret_key(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Return the JWT payload or raise ``ValueError`` when invalid or expired."""
    try:
        return jwt.decode(token, _secret_key(), algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise ValueError("Invalid or expired token") from e
