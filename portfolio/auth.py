"""
Credentials login, bearer tokens and admin guards
"""
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio.config import settings
from portfolio.exceptions import AuthorizationError
from portfolio.models import User

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a hash"""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(user_id: str, email: str, role: str, name: Optional[str] = None) -> str:
    """Create a signed session token"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "name": name,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=settings.session_max_age_hours),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decoded claims, or None for an expired/invalid token"""
    try:
        return jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired session token")
        return None
    except jwt.InvalidTokenError:
        return None


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """User for valid credentials, otherwise None"""
    if not email or not password:
        return None

    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        logger.info(f"Auth failed for {email}")
        return None

    logger.info(f"Auth successful for {user.email}")
    return user


async def ensure_admin_user(db: AsyncSession, email: str, password: str, name: str = "Admin") -> User:
    """Create the admin account, or refresh its password and role"""
    email = email.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(email=email, name=name, password_hash=hash_password(password), role=ADMIN_ROLE)
        db.add(user)
        logger.info(f"Created admin user {email}")
    else:
        if not verify_password(password, user.password_hash):
            user.password_hash = hash_password(password)
        user.role = ADMIN_ROLE
        logger.info(f"Admin user {email} updated")

    await db.commit()
    await db.refresh(user)
    return user


def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Dict[str, Any]]:
    """Claims of the caller if a valid bearer token is present"""
    if credentials is None:
        return None
    return verify_token(credentials.credentials)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    if credentials is None:
        raise AuthorizationError("Authentication required")
    claims = verify_token(credentials.credentials)
    if not claims:
        raise AuthorizationError("Invalid or expired token")
    return claims


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != ADMIN_ROLE:
        raise AuthorizationError("Admin role required", status_code=403)
    return user


def liker_identity(request: Request, user: Optional[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """Key used for the one-like-per-liker constraint.

    Signed-in callers are keyed by user id; anonymous visitors by a digest of
    their address and user agent.
    """
    if user and user.get("sub"):
        return {"liker_key": f"user:{user['sub']}", "user_id": user["sub"], "user_name": user.get("name")}

    host = request.client.host if request.client else "unknown"
    agent = request.headers.get("user-agent", "")
    digest = hashlib.sha256(f"{host}|{agent}".encode("utf-8")).hexdigest()[:32]
    return {"liker_key": f"anon:{digest}", "user_id": None, "user_name": None}
