"""
Catalogue models: showcase projects and AI tools.

Both share the same gating and lifecycle columns. Items are soft-retired with
``status = archived``; a project referenced by a short link is never
hard-deleted.
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from toolbox_app.auth.roles import Role
from toolbox_app.database.connection import Base


class Category(str, enum.Enum):
    """Fixed set of catalogue categories"""
    AI_TOOLS = "ai-tools"
    AUTOMATION = "automation"
    PRODUCTIVITY = "productivity"
    MARKETING = "marketing"
    DEVELOPMENT = "development"
    DESIGN = "design"


CATEGORY_NAMES = {
    Category.AI_TOOLS: "AI Tools",
    Category.AUTOMATION: "Automation",
    Category.PRODUCTIVITY: "Productivity",
    Category.MARKETING: "Marketing",
    Category.DEVELOPMENT: "Development",
    Category.DESIGN: "Design",
}


class Status(str, enum.Enum):
    """Lifecycle of a catalogue item"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def _enum_column(enum_cls, **kwargs):
    # Store the enum values ("ai-tools"), not the member names
    return Column(
        Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False, length=32),
        **kwargs
    )


class CatalogItemMixin:
    """Columns shared by projects and tools"""

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    slug = Column(String(50), unique=True, nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = _enum_column(Category, nullable=False, index=True)
    is_gated = Column(Boolean, nullable=False, default=False)
    required_role = _enum_column(Role, nullable=False, default=Role.SUBSCRIBER)
    status = _enum_column(Status, nullable=False, default=Status.PUBLISHED, index=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Project(CatalogItemMixin, Base):
    __tablename__ = "projects"

    embed_url = Column(Text, nullable=True)

    short_links = relationship("ShortLink", back_populates="owner_project")


class Tool(CatalogItemMixin, Base):
    __tablename__ = "tools"

    website_url = Column(Text, nullable=True)
    featured = Column(Boolean, nullable=False, default=False)
