"""
API endpoints for admin sign-in
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio.auth import authenticate, create_access_token, get_current_user
from portfolio.config import settings
from portfolio.database import get_db
from portfolio.exceptions import AuthorizationError
from portfolio.serializers import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Exchange email and password for a bearer token
    """
    user = await authenticate(db, request.email, request.password)
    if user is None:
        raise AuthorizationError("Invalid email or password")

    token = create_access_token(user.id, user.email, user.role, user.name)
    return envelope({
        "accessToken": token,
        "tokenType": "bearer",
        "expiresIn": settings.session_max_age_hours * 3600,
        "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role},
    })


@router.get("/session")
async def current_session(user: Dict[str, Any] = Depends(get_current_user)):
    """
    The signed-in user described by the bearer token
    """
    return envelope({
        "id": user.get("sub"),
        "email": user.get("email"),
        "name": user.get("name"),
        "role": user.get("role"),
    })
