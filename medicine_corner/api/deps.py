# medicine_corner/api/deps.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generator, List, Optional

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from medicine_corner.db.session import SessionLocal
from medicine_corner.utils.jwt import decode_access_token


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@dataclass
class ActingUser:
    """The user behind a request, as carried in the access token."""
    id: int
    name: str = ""
    email: str = ""
    is_admin: bool = False
    permissions: List[str] = field(default_factory=list)


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def current_user(authorization: Optional[str] = Header(None)) -> ActingUser:
    raw = _extract_bearer(authorization)
    if not raw:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_access_token(raw)
    if not payload or payload.get("uid") is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    return ActingUser(
        id=int(payload["uid"]),
        name=payload.get("name") or "",
        email=payload.get("sub") or "",
        is_admin=bool(payload.get("adm")),
        permissions=list(payload.get("perms") or []),
    )
