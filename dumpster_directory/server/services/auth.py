"""
Authentication Service.

Passwords are hashed with bcrypt through passlib. A successful login issues
an HS256 JWT that is also stored in the ``sessions`` table, so logging out
revokes it even before it expires. Clients send the token in the
``auth-token`` cookie or as a Bearer header.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from fastapi import Request, Response
from jose import JWTError, jwt
from passlib.context import CryptContext

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.users import User
from dumpster_directory.core.database.repositories.bundle import RepositoryBundle
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.server.core.config import AuthConfig

logger = get_logger(__name__)

ALGORITHM = "HS256"
_EPOCH = datetime(1970, 1, 1)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Not a hash passlib recognises
        return False


def create_access_token(user: User, config: AuthConfig) -> Tuple[str, datetime]:
    """Sign a token for a user.

    Returns:
        Tuple of (token, naive UTC expiry)
    """
    now = utc_now()
    expires_at = now + timedelta(days=config.jwt_expire_days)
    claims: Dict[str, Any] = {
        "sub": user.id,
        "email": user.email,
        "role": user.role,
        "business_id": user.business_id,
        # Naive datetimes are UTC here; timestamp() would read them as local time
        "iat": int((now - _EPOCH).total_seconds()),
        "exp": int((expires_at - _EPOCH).total_seconds()),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(claims, config.jwt_secret, algorithm=ALGORITHM), expires_at


def decode_token(token: str, config: AuthConfig) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, config.jwt_secret, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected auth token: {e}")
        return None


def token_from_request(request: Request, config: AuthConfig) -> Optional[str]:
    """Read the auth token from the cookie, falling back to a Bearer header."""
    token = request.cookies.get(config.cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


def set_auth_cookie(response: Response, token: str, config: AuthConfig) -> None:
    response.set_cookie(
        key=config.cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=config.jwt_expire_days * 24 * 60 * 60,
        path="/",
    )


def clear_auth_cookie(response: Response, config: AuthConfig) -> None:
    response.delete_cookie(key=config.cookie_name, path="/")


async def issue_session(repos: RepositoryBundle, user: User, config: AuthConfig) -> str:
    """Create a token and stage its session row. Caller commits."""
    token, expires_at = create_access_token(user, config)
    repos.sessions.issue(user.id, token, expires_at)
    return token


async def authenticate(repos: RepositoryBundle, token: Optional[str], config: AuthConfig) -> Optional[User]:
    """Resolve a token to its user; None when invalid, expired or logged out."""
    if not token:
        return None
    claims = decode_token(token, config)
    if not claims or not claims.get("sub"):
        return None
    session = await repos.sessions.get_by_token(token)
    if session is None or session.expires_at <= utc_now():
        return None
    return await repos.users.get_by_id(claims["sub"])


async def login(repos: RepositoryBundle, email: str, password: str, config: AuthConfig) -> Optional[Tuple[User, str]]:
    """Check credentials and issue a session. Commits on success."""
    user = await repos.users.get_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    token = await issue_session(repos, user, config)
    await repos.session.commit()
    logger.info(f"User {user.id} logged in")
    return user, token
