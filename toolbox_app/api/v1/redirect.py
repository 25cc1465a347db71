from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from toolbox_app.auth.claims import Caller
from toolbox_app.dependencies import get_caller, get_redirect_service
from toolbox_app.services.redirect_service import RedirectService

router = APIRouter(tags=["redirect"])


@router.get("/go/{slug}")
async def follow_short_link(
    slug: str,
    request: Request,
    redirect_service: RedirectService = Depends(get_redirect_service),
    caller: Caller = Depends(get_caller),
):
    """
    Redirect an affiliate short link.

    1. Validate and resolve the slug (indexed lookup)
    2. Check the role gate when the owning project is gated
    3. Schedule click recording on a detached task
    4. Redirect immediately; the caller never waits for the recording

    Errors (400 / 403 / 404 / 500) are rendered by the handlers in main.py.
    """
    destination = await redirect_service.resolve_destination(
        slug,
        caller=caller,
        referrer=request.headers.get("referer"),
        user_agent=request.headers.get("user-agent"),
    )
    return RedirectResponse(url=destination, status_code=status.HTTP_302_FOUND)
