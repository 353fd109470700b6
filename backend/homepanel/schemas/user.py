"""
User and membership schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr

from homepanel.models.user import UserRole


class UserSnapshot(BaseModel):
    """User as shown to house members. Never includes the password hash."""
    id: str
    name: str
    email: str
    role: str
    house_name: str
    authorized: bool
    photo: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    users: List[UserSnapshot]


class FamilyMembersResponse(BaseModel):
    members: List[UserSnapshot]


class AddUserRequest(BaseModel):
    """Admin request to add a member to the house."""
    name: str
    email: EmailStr
    password: str
    role: UserRole = UserRole.USER
    photo: Optional[str] = None


class RoleUpdateRequest(BaseModel):
    role: UserRole


class ProfileUpdateRequest(BaseModel):
    """Self-service profile changes."""
    display_name: Optional[str] = None
    photo: Optional[str] = None
