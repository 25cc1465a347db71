from typing import List

from fastapi import APIRouter, Depends, Query, status
from toolbox_app.auth.claims import Caller
from toolbox_app.dependencies import get_link_registry, require_admin
from toolbox_app.schemas.shortlink import ClickEventResponse, ShortLinkCreate, ShortLinkResponse
from toolbox_app.services.link_registry import LinkRegistry

router = APIRouter(prefix="/shortlinks", tags=["shortlinks"], dependencies=[Depends(require_admin)])


@router.post("/", response_model=ShortLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_short_link(
    data: ShortLinkCreate,
    registry: LinkRegistry = Depends(get_link_registry),
    caller: Caller = Depends(require_admin),
):
    """Create a short link (409 if the slug is taken)"""
    return registry.create(
        slug=data.slug,
        destination_url=str(data.destination_url),
        owner_project_id=data.owner_project_id,
        title=data.title,
        description=data.description,
        created_by=caller.user_id,
    )


@router.get("/", response_model=List[ShortLinkResponse])
async def list_short_links(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    registry: LinkRegistry = Depends(get_link_registry),
):
    return registry.list_links(offset=offset, limit=limit)


@router.get("/{slug}", response_model=ShortLinkResponse)
async def get_short_link(slug: str, registry: LinkRegistry = Depends(get_link_registry)):
    """Short link details including its click count"""
    return registry.resolve(slug)


@router.get("/{slug}/clicks", response_model=List[ClickEventResponse])
async def get_short_link_clicks(
    slug: str,
    limit: int = Query(50, ge=1, le=500),
    registry: LinkRegistry = Depends(get_link_registry),
):
    """Most recent click events, newest first"""
    return registry.recent_clicks(slug, limit=limit)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_short_link(slug: str, registry: LinkRegistry = Depends(get_link_registry)):
    registry.delete(slug)
