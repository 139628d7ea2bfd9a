"""
Authentication and authorization handler for FoodHub
Customers are anonymous sessions identified by X-Session-Id; admins carry a bearer token
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from fastapi import HTTPException, status, Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from jose import JWTError, jwt

from foodhub.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, BCRYPT_ROUNDS

ADMIN = "admin"
CUSTOMER = "customer"
ANONYMOUS = "anonymous"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """Identity class of the caller, resolved once per request"""
    kind: str
    session_id: Optional[str] = None
    admin_id: Optional[int] = None
    username: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.kind == ADMIN

    @property
    def label(self) -> str:
        if self.is_admin:
            return f"admin:{self.username}"
        if self.session_id:
            return f"session:{self.session_id}"
        return ANONYMOUS


class AuthHandler:
    """Handles password hashing and admin tokens"""

    def __init__(self):
        self.pwd_context = pwd_context

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        """Hash a password"""
        return self.pwd_context.hash(password)

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None):
        """Create a JWT access token"""
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

        to_encode.update({"exp": expire})
        encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
        return encoded_jwt

    def verify_token(self, token: str) -> dict:
        """Verify and decode a JWT token"""
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if payload.get("sub") is None or payload.get("role") != ADMIN:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return payload

    def actor_from_token(self, token: str) -> Actor:
        payload = self.verify_token(token)
        return Actor(kind=ADMIN, admin_id=int(payload["sub"]), username=payload.get("username"))


auth_handler = AuthHandler()


def get_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_session_id: Optional[str] = Header(None, max_length=100),
) -> Actor:
    """Dependency resolving the caller: admin token first, then customer session"""
    if credentials is not None:
        return auth_handler.actor_from_token(credentials.credentials)
    if x_session_id and x_session_id.strip():
        return Actor(kind=CUSTOMER, session_id=x_session_id.strip())
    return Actor(kind=ANONYMOUS)


class RoleChecker:
    """Check caller identity class for authorization"""

    def __init__(self, allowed_kinds: list):
        self.allowed_kinds = allowed_kinds

    def __call__(self, actor: Actor = Depends(get_actor)) -> Actor:
        if actor.kind == ANONYMOUS and ANONYMOUS not in self.allowed_kinds:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session identifier or admin token required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if actor.kind not in self.allowed_kinds:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted"
            )
        return actor


admin_required = RoleChecker([ADMIN])
session_required = RoleChecker([CUSTOMER, ADMIN])
