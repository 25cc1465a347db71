from typing import List

from fastapi import APIRouter
from toolbox_app.models.catalog import CATEGORY_NAMES, Category
from toolbox_app.schemas.catalog import CategoryResponse

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("/", response_model=List[CategoryResponse])
def list_categories():
    """The fixed set of catalogue categories"""
    return [CategoryResponse(slug=category, name=CATEGORY_NAMES[category]) for category in Category]
