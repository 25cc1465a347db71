from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from toolbox_app.database.connection import Base


class ShortLink(Base):
    """
    Affiliate short link: public slug -> destination URL.

    click_count is only ever changed with a single
    ``UPDATE ... SET click_count = click_count + 1`` statement
    (see LinkRegistry.record_click), never read-modify-write.
    """
    __tablename__ = "short_links"
    __table_args__ = (
        CheckConstraint("click_count >= 0", name="ck_short_links_click_count_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # unique=True creates the index used by exact-match lookups
    slug = Column(String(64), unique=True, nullable=False, index=True)
    destination_url = Column(Text, nullable=False)
    title = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    # Weak reference: the project may be gated, but a link can exist without one
    owner_project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    click_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner_project = relationship("Project", back_populates="short_links")
    clicks = relationship("ClickEvent", back_populates="short_link", cascade="all, delete-orphan")


class ClickEvent(Base):
    """Append-only record of one redirect."""
    __tablename__ = "click_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    short_link_id = Column(Integer, ForeignKey("short_links.id", ondelete="CASCADE"), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    referrer = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)

    short_link = relationship("ShortLink", back_populates="clicks")
