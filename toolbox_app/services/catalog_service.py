from typing import List, Optional, Type, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from toolbox_app.auth.claims import Caller, GUEST
from toolbox_app.auth.roles import Role, has_access
from toolbox_app.errors import Conflict, Forbidden, NotFound
from toolbox_app.models.catalog import Category, Project, Status, Tool
from toolbox_app.models.shortlink import ShortLink
from toolbox_app.queue.models import AnalyticsEvent, PROJECT_VIEWED, TOOL_VIEWED
from toolbox_app.services.click_tracker import ClickTracker
from toolbox_app.logging_config import get_logger

logger = get_logger("catalog")

CatalogItem = Union[Project, Tool]


def is_locked(item: CatalogItem, caller: Caller) -> bool:
    """A gated item is locked for callers below its required role."""
    return item.is_gated and not has_access(caller.role, item.required_role)


class CatalogService:
    """
    CRUD and visibility rules shared by projects and tools.

    Visibility:
    - admins see every status
    - everyone else sees published items only; anything else is a 404
    - a gated item's detail is a 403 for callers below its required role

    Detail views publish a *_viewed event through the tracker, detached from
    the response.
    """

    view_event: str = None

    def __init__(self, model: Type[CatalogItem], db: Session, tracker: Optional[ClickTracker] = None):
        self.model = model
        self.db = db
        self.tracker = tracker

    @property
    def label(self) -> str:
        return self.model.__name__

    def _get(self, slug: str) -> CatalogItem:
        item = self.db.execute(
            select(self.model).where(self.model.slug == slug)
        ).scalar_one_or_none()
        if item is None:
            raise NotFound(f"{self.label} not found")
        return item

    async def list_items(
        self,
        caller: Caller = GUEST,
        category: Optional[Category] = None,
        offset: int = 0,
        limit: int = 12,
    ) -> List[CatalogItem]:
        query = select(self.model)
        if caller.role != Role.ADMIN:
            query = query.where(self.model.status == Status.PUBLISHED)
        if category is not None:
            query = query.where(self.model.category == category)
        query = query.order_by(self.model.created_at.desc(), self.model.id.desc()).offset(offset).limit(limit)
        return list(self.db.execute(query).scalars())

    async def get_for_caller(self, slug: str, caller: Caller = GUEST) -> CatalogItem:
        item = self._get(slug)
        if item.status != Status.PUBLISHED and caller.role != Role.ADMIN:
            raise NotFound(f"{self.label} not found")
        if is_locked(item, caller):
            raise Forbidden()

        self._emit_view(item, caller)
        return item

    def _emit_view(self, item: CatalogItem, caller: Caller):
        if self.tracker is None or self.view_event is None:
            return
        event = AnalyticsEvent(
            event=self.view_event,
            distinct_id=caller.distinct_id,
            properties={"slug": item.slug, "category": item.category.value},
        )
        self.tracker.track(event)

    async def create(self, data: BaseModel, created_by: Optional[str] = None) -> CatalogItem:
        values = data.model_dump(mode="json")
        if self.db.execute(select(self.model.id).where(self.model.slug == values["slug"])).first():
            raise Conflict(f"{self.label} '{values['slug']}' already exists")

        item = self.model(**self._coerce(values), created_by=created_by)
        self.db.add(item)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict(f"{self.label} '{values['slug']}' already exists")
        self.db.refresh(item)
        logger.info(f"Created {self.label} {item.slug!r}")
        return item

    async def update(self, slug: str, data: BaseModel) -> CatalogItem:
        item = self._get(slug)
        for field, value in self._coerce(data.model_dump(mode="json", exclude_unset=True)).items():
            setattr(item, field, value)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict(f"{self.label} '{slug}' could not be updated")
        self.db.refresh(item)
        return item

    async def delete(self, slug: str) -> None:
        item = self._get(slug)
        self.db.delete(item)
        self.db.commit()

    @staticmethod
    def _coerce(values: dict) -> dict:
        """JSON-mode dump turns enums into strings; map them back for the ORM."""
        converters = {"category": Category, "required_role": Role, "status": Status}
        return {
            key: converters[key](value) if key in converters and value is not None else value
            for key, value in values.items()
        }


class ProjectService(CatalogService):
    view_event = PROJECT_VIEWED

    def __init__(self, db: Session, tracker: Optional[ClickTracker] = None):
        super().__init__(Project, db, tracker)

    async def delete(self, slug: str) -> None:
        """Refused while any short link still points at the project; archive it instead."""
        project = self._get(slug)
        referenced = self.db.execute(
            select(ShortLink.id).where(ShortLink.owner_project_id == project.id).limit(1)
        ).first()
        if referenced:
            raise Conflict("Project is referenced by a short link; archive it instead")
        self.db.delete(project)
        self.db.commit()


class ToolService(CatalogService):
    view_event = TOOL_VIEWED

    def __init__(self, db: Session, tracker: Optional[ClickTracker] = None):
        super().__init__(Tool, db, tracker)
