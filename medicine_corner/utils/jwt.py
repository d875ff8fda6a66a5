# medicine_corner/utils/jwt.py
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional

from jose import jwt, JWTError

from medicine_corner.core.config import settings


def create_access_token(
    subject: str,
    *,
    user_id: int,
    name: str = "",
    is_admin: bool = False,
    permissions: Optional[Iterable[str]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Access token carrying the acting user.
    Users and logins live in the hospital system; this only signs the claims.
    """
    now = datetime.utcnow()
    payload = {
        "sub": subject,
        "uid": user_id,
        "name": name,
        "adm": bool(is_admin),
        "perms": sorted(set(permissions or [])),
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        return None
