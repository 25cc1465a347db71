import re
from typing import Optional

from sqlalchemy.orm import Session

from toolbox_app.auth.claims import Caller, GUEST
from toolbox_app.auth.roles import has_access
from toolbox_app.config import settings
from toolbox_app.errors import Forbidden, InvalidSlug
from toolbox_app.logging_config import get_logger
from toolbox_app.services.click_tracker import Click, ClickTracker
from toolbox_app.services.link_registry import LinkRegistry

logger = get_logger("redirect")

SLUG_RE = re.compile(r"[A-Za-z0-9_-]+")


def validate_slug(slug: str) -> str:
    """Raise InvalidSlug unless slug is 1..slug_max_length of [A-Za-z0-9_-]."""
    # fullmatch: "$" would accept a trailing newline
    if not slug or len(slug) > settings.slug_max_length or not SLUG_RE.fullmatch(slug):
        raise InvalidSlug()
    return slug


class RedirectService:
    """
    Resolves /go/{slug} requests.

    Received -> Validated -> Resolved -> (gated? role checked) -> recorded -> responded

    Stateless: everything lives in the registry. Recording is handed to the
    ClickTracker and never awaited here.
    """

    def __init__(self, db: Session, tracker: Optional[ClickTracker] = None):
        self.registry = LinkRegistry(db)
        self.tracker = tracker

    async def resolve_destination(
        self,
        slug: str,
        caller: Caller = GUEST,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """
        Return the destination URL for a redirect and schedule the click.

        Raises:
            InvalidSlug: malformed slug (400)
            NotFound: unknown slug (404)
            Forbidden: owning project is gated above the caller's role (403)
            StorageUnavailable: registry lookup failed (500)
        """
        validate_slug(slug)
        link = self.registry.resolve(slug)

        project = link.owner_project
        if project is not None and project.is_gated and not has_access(caller.role, project.required_role):
            logger.info(f"Denied {slug!r} to role {caller.role.value}")
            raise Forbidden()

        if self.tracker is not None:
            self.tracker.submit(Click(
                slug=link.slug,
                destination_url=link.destination_url,
                owner_project_id=link.owner_project_id,
                distinct_id=caller.distinct_id,
                referrer=referrer,
                user_agent=user_agent,
            ))

        return link.destination_url
