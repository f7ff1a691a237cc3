"""
Site Pydantic schemas.
"""

from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID


class SiteResponse(BaseModel):
    """Response schema for a site."""
    id: UUID
    name: str
    code: Optional[str] = None

    class Config:
        from_attributes = True


class SiteListResponse(BaseModel):
    """Response schema for site list."""
    items: List[SiteResponse]
    total: int
