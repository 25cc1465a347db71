from pydantic import BaseModel, HttpUrl, Field, computed_field, ConfigDict
from typing import Optional
from datetime import datetime
from toolbox_app.config import settings

SLUG_PATTERN = r"^[A-Za-z0-9_-]+$"


class ShortLinkCreate(BaseModel):
    slug: str = Field(..., min_length=1, max_length=64, pattern=SLUG_PATTERN,
                      description="Public identifier used in /go/{slug}")
    destination_url: HttpUrl = Field(..., description="Absolute URL the link redirects to")
    owner_project_id: Optional[int] = Field(None, description="Project the link belongs to")
    title: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)


class ShortLinkResponse(BaseModel):
    """Serializes the ShortLink model (from_attributes)"""
    id: int
    slug: str
    destination_url: str
    owner_project_id: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    click_count: int
    created_at: Optional[datetime] = None

    @computed_field
    @property
    def short_url(self) -> str:
        return f"{settings.base_url}/go/{self.slug}"

    model_config = ConfigDict(from_attributes=True)


class ClickEventResponse(BaseModel):
    id: int
    timestamp: datetime
    referrer: Optional[str] = None
    user_agent: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
