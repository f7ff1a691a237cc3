"""
User profile Pydantic schemas for request/response validation.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from timesheets_api.models.profile import UserRole


class ProfileCreate(BaseModel):
    """Schema for creating a user (identity account + profile)."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.EMPLOYEE
    reports_to_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    final_approver_id: Optional[UUID] = None


class ProfileUpdate(BaseModel):
    """Schema for updating a user (all fields optional)."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    role: Optional[UserRole] = None
    reports_to_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    final_approver_id: Optional[UUID] = None


class ProfileResponse(BaseModel):
    """Response schema for a user profile."""
    id: UUID
    email: str
    name: str
    role: UserRole
    reports_to_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    final_approver_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileListResponse(BaseModel):
    """Response schema for user list."""
    items: List[ProfileResponse]
    total: int


class UserAssignmentsUpdate(BaseModel):
    """Full replacement of a user's site, department and purchase order assignments."""
    site_ids: List[UUID] = Field(default_factory=list)
    department_ids: List[UUID] = Field(default_factory=list)
    purchase_order_ids: List[UUID] = Field(default_factory=list)


class UserAssignmentsResponse(UserAssignmentsUpdate):
    """Response schema for a user's assignments."""
    user_id: UUID
