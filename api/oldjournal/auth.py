"""Identity resolution: bearer tokens from the identity provider to local users."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .deps import get_db
from .errors import NotAuthenticated
from .utils.handles import make_unique_handle

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
oauth2_scheme = HTTPBearer(auto_error=False)

# JWT Configuration (shared with the identity provider)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not JWT_SECRET_KEY:
    raise RuntimeError(
        "JWT_SECRET_KEY environment variable is required but not set. "
        "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
if len(JWT_SECRET_KEY) < 32:
    raise RuntimeError("JWT_SECRET_KEY is too short. Must be at least 32 characters long.")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))


@dataclass(frozen=True)
class Identity:
    """Claims the identity provider vouches for."""

    external_id: str
    email: str | None = None
    username: str | None = None
    name: str | None = None


def create_access_token(
    external_id: str,
    *,
    email: str | None = None,
    username: str | None = None,
    name: str | None = None,
    expires_in_seconds: int | None = None,
) -> str:
    """
    Create a JWT in the identity provider's format.

    Used for local development and tests; production tokens come from the provider.
    """
    if expires_in_seconds is None:
        expires_in_seconds = JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60

    now = datetime.now(timezone.utc)
    payload = {
        "sub": external_id,
        "exp": now + timedelta(seconds=expires_in_seconds),
        "iat": now,
    }
    if email:
        payload["email"] = email
    if username:
        payload["preferred_username"] = username
    if name:
        payload["name"] = name

    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_identity(token: str) -> Identity:
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise NotAuthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise NotAuthenticated("Invalid token")

    subject = payload.get("sub")
    if not subject:
        raise NotAuthenticated("Invalid token: missing subject")

    return Identity(
        external_id=str(subject),
        email=payload.get("email"),
        username=payload.get("preferred_username"),
        name=payload.get("name"),
    )


def resolve_user(db: Session, identity: Identity) -> models.User:
    """
    Map an identity to its local user record, creating it on first sight.

    A concurrent request may provision the same user first; the unique
    external_id makes the loser fall back to the winner's row.
    """
    user = db.query(models.User).filter(models.User.external_id == identity.external_id).first()
    if user:
        return user

    handle = make_unique_handle(db, identity.username or identity.external_id)
    user = models.User(
        external_id=identity.external_id,
        handle=handle,
        display_name=identity.name or identity.username or "User",
        email=identity.email,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        user = db.query(models.User).filter(models.User.external_id == identity.external_id).first()
        if user is None:
            raise
        return user

    db.refresh(user)
    logger.info(f"Provisioned local user {user.id} (@{user.handle}) for {identity.external_id}")
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Get current authenticated user from Bearer token.
    """
    if not credentials:
        raise NotAuthenticated("Authentication required")

    identity = decode_identity(credentials.credentials)
    return resolve_user(db, identity)


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User | None:
    """
    Get current user if authenticated, None otherwise.

    Used for endpoints that work differently for authenticated vs anonymous users.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials, db)
    except NotAuthenticated:
        return None


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request, handling proxies.

    Checks X-Forwarded-For header first (for reverse proxy setups),
    then falls back to direct client IP.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs; take the first one
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"
