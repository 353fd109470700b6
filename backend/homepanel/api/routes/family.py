"""
Family endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.database import get_db
from homepanel.core.security import get_current_principal
from homepanel.core.tenancy import Principal
from homepanel.schemas.user import FamilyMembersResponse
from homepanel.services.member_service import MemberService

router = APIRouter()


@router.get("/members", response_model=FamilyMembersResponse)
async def list_family_members(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Everyone in the caller's house, family head first."""
    return FamilyMembersResponse(members=await MemberService(db).list_family_members(principal))
