"""
Health category catalog endpoints.
"""

from typing import List

from fastapi import APIRouter, Request

from ..deps import CatalogDep
from ..errors import NotFoundError
from ..schemas.common import ApiResponse
from ..schemas.consultation import CategoryResponse, CategorySpecialtiesResponse
from ..utils.responses import ok

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=ApiResponse[List[CategoryResponse]])
async def list_categories(request: Request, catalog: CatalogDep):
    categories = [CategoryResponse.from_domain(c) for c in catalog.get_health_categories()]
    return ok(request, data=categories, message="OK")


@router.get("/{category}/specialties", response_model=ApiResponse[CategorySpecialtiesResponse])
async def get_category_specialties(request: Request, category: str, catalog: CatalogDep):
    if not catalog.has_category(category):
        raise NotFoundError(f"Unknown health category: {category}", {"category": category})
    return ok(
        request,
        data=CategorySpecialtiesResponse(category=category, specialties=catalog.get_suggested_specialties(category)),
        message="OK",
    )
