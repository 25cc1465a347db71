"""
Role claims from the external auth provider.

The provider issues Supabase-style JWTs. We verify the signature with the
shared secret and read two things: the user id (``sub``) and the role at
``settings.auth_role_claim``. Anything that does not verify is a guest.
"""

from typing import Any, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from toolbox_app.auth.roles import Role, parse_role
from toolbox_app.config import settings
from toolbox_app.logging_config import get_logger

logger = get_logger("auth")


class Caller(BaseModel):
    """Who is making the request, as far as this service cares."""

    user_id: Optional[str] = None
    role: Role = Role.GUEST

    @property
    def distinct_id(self) -> str:
        """Identifier used for analytics events"""
        return self.user_id or "anonymous"


GUEST = Caller()


def _lookup_claim(payload: dict, path: str) -> Any:
    """Follow a dotted path such as ``app_metadata.role`` through the payload."""
    value: Any = payload
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def caller_from_token(token: Optional[str]) -> Caller:
    """
    Verify a token and build the Caller.

    Returns GUEST when there is no token, no configured secret, or the token
    fails verification for any reason.
    """
    if not token or not settings.auth_jwt_secret:
        return GUEST

    options = {"verify_aud": settings.auth_jwt_audience is not None}
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options=options,
        )
    except JWTError as e:
        logger.info(f"Rejected auth token: {e}")
        return GUEST

    user_id = payload.get("sub")
    return Caller(
        user_id=user_id if isinstance(user_id, str) else None,
        role=parse_role(_lookup_claim(payload, settings.auth_role_claim)),
    )
