"""
Link registry: durable slug -> destination mapping with a click counter.

Synchronous on purpose. Request handlers call it directly with the request
session; the click tracker calls ``record_click`` from a worker thread with a
session of its own.
"""

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from toolbox_app.config import settings
from toolbox_app.errors import Conflict, NotFound, StorageUnavailable
from toolbox_app.logging_config import get_logger
from toolbox_app.models.catalog import Project
from toolbox_app.models.shortlink import ClickEvent, ShortLink

logger = get_logger("registry")


class LinkRegistry:
    def __init__(self, db: Session):
        self.db = db

    def resolve(self, slug: str) -> ShortLink:
        """
        Exact, case-sensitive lookup.

        Raises:
            NotFound: no link with this slug
            StorageUnavailable: the lookup itself failed
        """
        try:
            link = self.db.execute(
                select(ShortLink).where(ShortLink.slug == slug)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Short link lookup failed for {slug!r}: {e}")
            self.db.rollback()
            raise StorageUnavailable(str(e)) from e

        if link is None:
            raise NotFound("Short link not found")
        return link

    def record_click(
        self,
        slug: str,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
        retries: int = None,
    ) -> bool:
        """
        Atomically increment click_count and append a ClickEvent.

        The increment is one UPDATE statement evaluated by the database, so
        concurrent clicks on the same slug are never lost. A transient storage
        error is retried ``retries`` times; after that the click is dropped.

        Returns:
            True if recorded, False otherwise. Never raises.
        """
        attempts = 1 + (settings.click_record_retries if retries is None else retries)

        for attempt in range(1, attempts + 1):
            try:
                return self._record_click_once(slug, referrer, user_agent)
            except OperationalError as e:
                self.db.rollback()
                if attempt < attempts:
                    logger.info(f"Transient error recording click for {slug!r}, retrying: {e}")
                    continue
                logger.warning(f"Dropped click for {slug!r} after {attempts} attempts: {e}")
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning(f"Dropped click for {slug!r}: {e}")
                break
        return False

    def _record_click_once(self, slug: str, referrer: Optional[str], user_agent: Optional[str]) -> bool:
        result = self.db.execute(
            update(ShortLink)
            .where(ShortLink.slug == slug)
            .values(click_count=ShortLink.click_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Deleted between resolve and record
            self.db.rollback()
            logger.info(f"Click for unknown slug {slug!r} ignored")
            return False

        link_id = self.db.execute(
            select(ShortLink.id).where(ShortLink.slug == slug)
        ).scalar_one()
        self.db.add(ClickEvent(short_link_id=link_id, referrer=referrer, user_agent=user_agent))
        self.db.commit()
        return True

    def create(
        self,
        slug: str,
        destination_url: str,
        owner_project_id: Optional[int] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> ShortLink:
        """
        Register a new short link.

        Raises:
            Conflict: the slug is taken
            NotFound: owner_project_id does not exist
        """
        if self.db.execute(select(ShortLink.id).where(ShortLink.slug == slug)).first():
            raise Conflict(f"Short link '{slug}' already exists")

        if owner_project_id is not None and self.db.get(Project, owner_project_id) is None:
            raise NotFound("Owner project not found")

        link = ShortLink(
            slug=slug,
            destination_url=destination_url,
            owner_project_id=owner_project_id,
            title=title,
            description=description,
            created_by=created_by,
            click_count=0,
        )
        self.db.add(link)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent create
            self.db.rollback()
            raise Conflict(f"Short link '{slug}' already exists")
        self.db.refresh(link)
        return link

    def list_links(self, offset: int = 0, limit: int = 50) -> List[ShortLink]:
        return list(
            self.db.execute(
                select(ShortLink).order_by(ShortLink.created_at.desc(), ShortLink.id.desc())
                .offset(offset).limit(limit)
            ).scalars()
        )

    def get_click_count(self, slug: str) -> int:
        """Current counter value read straight from the database."""
        count = self.db.execute(
            select(ShortLink.click_count).where(ShortLink.slug == slug)
        ).scalar_one_or_none()
        if count is None:
            raise NotFound("Short link not found")
        return count

    def recent_clicks(self, slug: str, limit: int = 50) -> List[ClickEvent]:
        link = self.resolve(slug)
        return list(
            self.db.execute(
                select(ClickEvent).where(ClickEvent.short_link_id == link.id)
                .order_by(ClickEvent.timestamp.desc(), ClickEvent.id.desc())
                .limit(limit)
            ).scalars()
        )

    def delete(self, slug: str) -> None:
        link = self.resolve(slug)
        self.db.delete(link)
        self.db.commit()
