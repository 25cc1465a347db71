from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from toolbox_app.auth.claims import Caller
from toolbox_app.dependencies import get_caller, get_tool_service, require_admin
from toolbox_app.models.catalog import Category
from toolbox_app.schemas.catalog import CatalogItemSummary, ToolCreate, ToolResponse, ToolUpdate
from toolbox_app.services.catalog_service import ToolService, is_locked

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("/", response_model=List[CatalogItemSummary])
async def list_tools(
    category: Optional[Category] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(12, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    service: ToolService = Depends(get_tool_service),
):
    tools = await service.list_items(caller, category=category, offset=offset, limit=limit)
    return [
        CatalogItemSummary.model_validate(tool).model_copy(update={"locked": is_locked(tool, caller)})
        for tool in tools
    ]


@router.get("/{slug}", response_model=ToolResponse)
async def get_tool(
    slug: str,
    caller: Caller = Depends(get_caller),
    service: ToolService = Depends(get_tool_service),
):
    return await service.get_for_caller(slug, caller)


@router.post("/", response_model=ToolResponse, status_code=status.HTTP_201_CREATED)
async def create_tool(
    data: ToolCreate,
    caller: Caller = Depends(require_admin),
    service: ToolService = Depends(get_tool_service),
):
    return await service.create(data, created_by=caller.user_id)


@router.patch("/{slug}", response_model=ToolResponse, dependencies=[Depends(require_admin)])
async def update_tool(
    slug: str,
    data: ToolUpdate,
    service: ToolService = Depends(get_tool_service),
):
    return await service.update(slug, data)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete_tool(slug: str, service: ToolService = Depends(get_tool_service)):
    await service.delete(slug)
