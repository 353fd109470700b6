"""
Profile endpoints for the calling user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.database import get_db
from homepanel.core.security import get_current_principal
from homepanel.core.tenancy import Principal
from homepanel.schemas.user import ProfileUpdateRequest, UserSnapshot
from homepanel.services.member_service import MemberService

router = APIRouter()


@router.get("/me", response_model=UserSnapshot)
async def get_me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await MemberService(db).get_me(principal)


@router.patch("/me", response_model=UserSnapshot)
async def update_profile(
    request: ProfileUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Update display name and/or photo path."""
    return await MemberService(db).update_profile(
        principal, display_name=request.display_name, photo=request.photo
    )
