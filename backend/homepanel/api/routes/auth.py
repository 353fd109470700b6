"""
Authentication endpoints.

Registering creates a new house with the caller as its admin. Members
never self-register; the admin adds them under /api/admin/users.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.database import get_db
from homepanel.core.security import TokenResponse, get_current_principal
from homepanel.core.tenancy import Principal
from homepanel.models.user import UserRole
from homepanel.schemas.user import UserSnapshot
from homepanel.services.auth_service import AuthService
from homepanel.services.member_service import MemberService

router = APIRouter()


class RegisterRequest(BaseModel):
    """New house registration."""
    name: str
    email: EmailStr
    password: str
    house_name: str


class LoginRequest(BaseModel):
    """Credentials scoped to one house."""
    email: EmailStr
    password: str
    house_name: str
    role: UserRole = UserRole.USER


class AuthResponse(BaseModel):
    """Authentication response."""
    user: UserSnapshot
    token: TokenResponse


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register a house and its admin."""
    user, token = await AuthService(db).register_house(
        request.name, request.email, request.password, request.house_name
    )
    return AuthResponse(
        user=UserSnapshot.model_validate(user),
        token=TokenResponse(access_token=token),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Exchange credentials for a bearer token."""
    user, token = await AuthService(db).login(
        request.email, request.password, request.house_name, request.role.value
    )
    return AuthResponse(
        user=UserSnapshot.model_validate(user),
        token=TokenResponse(access_token=token),
    )


@router.get("/me", response_model=UserSnapshot)
async def get_current_user_info(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Get current authenticated user info."""
    return await MemberService(db).get_me(principal)


@router.post("/logout")
async def logout():
    """
    Logout endpoint.

    JWT tokens are stateless, so this is a no-op on the server.
    Client should discard the token.
    """
    return {"status": "logged_out"}
