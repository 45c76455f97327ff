import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv
from fastapi import Depends, Header
from jose import JWTError, jwt

from storefront.errors import Forbidden, Unauthorized

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def get_current_user(authorization: str | None = Header(None)) -> Identity:
    """Identity from a bearer JWT issued by the auth service."""
    if not authorization:
        raise Unauthorized("Invalid or missing token")
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError(scheme)
        claims = jwt.decode(token, os.getenv("JWT_SECRET"), algorithms=["HS256"])
    except (ValueError, JWTError):
        raise Unauthorized("Invalid or missing token") from None

    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized("Invalid or missing token")
    return Identity(user_id=str(user_id), role=claims.get("role", "client"))


def require_admin(user: Identity = Depends(get_current_user)) -> Identity:
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user
