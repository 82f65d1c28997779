# backend/app/auth.py
from dataclasses import dataclass
from datetime import datetime, timedelta

from fastapi import Depends, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings
from .errors import Forbidden, Unauthenticated
from .models import Role
from .policy import is_admin

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Principal:
    """The resolved identity of an authenticated caller."""

    id: int
    role: Role


def get_password_hash(password: str):
    return pwd_context.hash(password)


def verify_password(plain, hashed):
    return pwd_context.verify(plain, hashed)


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return encoded_jwt


def create_token_for_user(user) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})


def decode_access_token(token: str):
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        return None


def get_principal_from_token(token: str):
    payload = decode_access_token(token)
    if not payload:
        return None
    try:
        return Principal(id=int(payload["sub"]), role=Role(payload["role"]))
    except (KeyError, TypeError, ValueError):
        return None


def get_current_principal(request: Request) -> Principal:
    # read Authorization header
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise Unauthenticated("Authentication required")
    token = auth_header.split(" ", 1)[1]
    principal = get_principal_from_token(token)
    if principal is None:
        raise Unauthenticated("Invalid or expired token")
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not is_admin(principal):
        raise Forbidden("Admin access required")
    return principal
