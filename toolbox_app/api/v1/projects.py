from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from toolbox_app.auth.claims import Caller
from toolbox_app.dependencies import get_caller, get_project_service, require_admin
from toolbox_app.models.catalog import Category
from toolbox_app.schemas.catalog import CatalogItemSummary, ProjectCreate, ProjectResponse, ProjectUpdate
from toolbox_app.services.catalog_service import ProjectService, is_locked

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("/", response_model=List[CatalogItemSummary])
async def list_projects(
    category: Optional[Category] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(12, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    service: ProjectService = Depends(get_project_service),
):
    """Published projects; gated ones are listed but marked locked for the caller"""
    projects = await service.list_items(caller, category=category, offset=offset, limit=limit)
    return [
        CatalogItemSummary.model_validate(project).model_copy(update={"locked": is_locked(project, caller)})
        for project in projects
    ]


@router.get("/{slug}", response_model=ProjectResponse)
async def get_project(
    slug: str,
    caller: Caller = Depends(get_caller),
    service: ProjectService = Depends(get_project_service),
):
    return await service.get_for_caller(slug, caller)


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    caller: Caller = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    return await service.create(data, created_by=caller.user_id)


@router.patch("/{slug}", response_model=ProjectResponse, dependencies=[Depends(require_admin)])
async def update_project(
    slug: str,
    data: ProjectUpdate,
    service: ProjectService = Depends(get_project_service),
):
    """Partial update; set status=archived to retire a project"""
    return await service.update(slug, data)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete_project(slug: str, service: ProjectService = Depends(get_project_service)):
    """Hard delete; 409 while a short link references the project"""
    await service.delete(slug)
