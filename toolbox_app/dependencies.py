"""
FastAPI dependencies for dependency injection.

Singletons (queue, analytics sink, click tracker) are built once from
settings and injected into services and routes. Tests swap them through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from toolbox_app.analytics.factory import AnalyticsSinkFactory, AnalyticsSinkBackend
from toolbox_app.analytics.sinks import AnalyticsSink
from toolbox_app.auth.claims import Caller, caller_from_token
from toolbox_app.auth.roles import Role, has_access
from toolbox_app.config import settings
from toolbox_app.database.connection import SessionLocal, get_db
from toolbox_app.errors import Forbidden
from toolbox_app.queue.factory import QueueFactory, QueueBackend
from toolbox_app.queue.strategies import QueueStrategy
from toolbox_app.services.click_tracker import ClickTracker


@lru_cache()
def get_queue() -> QueueStrategy:
    """Queue instance (singleton), backend chosen by settings."""
    backend = QueueBackend(settings.queue_backend)
    return QueueFactory.create(backend)


@lru_cache()
def get_analytics_sink() -> AnalyticsSink:
    """Analytics sink instance (singleton), backend chosen by settings."""
    backend = AnalyticsSinkBackend(settings.analytics_sink)
    return AnalyticsSinkFactory.create(backend)


@lru_cache()
def get_click_tracker() -> ClickTracker:
    """
    Click tracker (singleton).

    Opens its own sessions: recording outlives the request session.
    """
    return ClickTracker(session_factory=SessionLocal, queue=get_queue())


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    # Browsers following /go links carry the provider's session cookie, not a header
    return request.cookies.get(settings.auth_cookie_name)


def get_caller(request: Request) -> Caller:
    """Caller identity from the auth token; guests when absent or invalid."""
    return caller_from_token(_bearer_token(request))


def require_role(minimum: Role):
    """
    Dependency factory for role-restricted routes.

    Usage:
        @router.post("/", dependencies=[Depends(require_role(Role.ADMIN))])
    """
    def dependency(caller: Caller = Depends(get_caller)) -> Caller:
        if not has_access(caller.role, minimum):
            raise Forbidden()
        return caller
    return dependency


require_admin = require_role(Role.ADMIN)


def get_redirect_service(
    db: Session = Depends(get_db),
    tracker: ClickTracker = Depends(get_click_tracker),
):
    """RedirectService with its registry session and the click tracker injected."""
    from toolbox_app.services.redirect_service import RedirectService
    return RedirectService(db=db, tracker=tracker)


def get_link_registry(db: Session = Depends(get_db)):
    from toolbox_app.services.link_registry import LinkRegistry
    return LinkRegistry(db)


def get_project_service(
    db: Session = Depends(get_db),
    tracker: ClickTracker = Depends(get_click_tracker),
):
    from toolbox_app.services.catalog_service import ProjectService
    return ProjectService(db=db, tracker=tracker)


def get_tool_service(
    db: Session = Depends(get_db),
    tracker: ClickTracker = Depends(get_click_tracker),
):
    from toolbox_app.services.catalog_service import ToolService
    return ToolService(db=db, tracker=tracker)
