from pydantic import BaseModel, HttpUrl, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from toolbox_app.auth.roles import Role
from toolbox_app.models.catalog import Category, Status

CATALOG_SLUG_PATTERN = r"^[a-z0-9-]+$"


class CatalogItemBase(BaseModel):
    slug: str = Field(..., min_length=3, max_length=50, pattern=CATALOG_SLUG_PATTERN)
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    category: Category
    is_gated: bool = False
    required_role: Role = Field(Role.SUBSCRIBER, description="Minimum role when the item is gated")
    status: Status = Status.PUBLISHED


class CatalogItemUpdate(BaseModel):
    """Partial update. The slug is immutable."""
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[Category] = None
    is_gated: Optional[bool] = None
    required_role: Optional[Role] = None
    status: Optional[Status] = None

    @field_validator("title", "category", "is_gated", "required_role", "status")
    @classmethod
    def reject_null(cls, v):
        # Omit a field to leave it unchanged; these columns cannot be cleared
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class CatalogItemSummary(BaseModel):
    """Listing entry. Never includes the gated payload (embed / website URL)."""
    id: int
    slug: str
    title: str
    description: Optional[str] = None
    category: Category
    is_gated: bool
    required_role: Role
    status: Status
    locked: bool = False

    model_config = ConfigDict(from_attributes=True)


class ProjectCreate(CatalogItemBase):
    embed_url: Optional[HttpUrl] = None


class ProjectUpdate(CatalogItemUpdate):
    embed_url: Optional[HttpUrl] = None


class ProjectResponse(CatalogItemBase):
    id: int
    embed_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ToolCreate(CatalogItemBase):
    website_url: Optional[HttpUrl] = None
    featured: bool = False


class ToolUpdate(CatalogItemUpdate):
    website_url: Optional[HttpUrl] = None
    featured: Optional[bool] = None

    @field_validator("featured")
    @classmethod
    def reject_null_featured(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class ToolResponse(CatalogItemBase):
    id: int
    website_url: Optional[str] = None
    featured: bool = False
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryResponse(BaseModel):
    slug: Category
    name: str
