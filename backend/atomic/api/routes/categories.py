"""Category CRUD routes."""
from __future__ import annotations

from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from atomic.api.schemas.category import (
    CategoryCreateRequest,
    CategoryDeleteResponse,
    CategoryResponse,
    CategoryUpdateRequest,
)
from atomic.api.schemas.common import ApiResponse, ok
from atomic.db.deps import get_db
from atomic.observability.metrics import log_metric
from atomic.observability.tracing import trace
from atomic.services import category_service

router = APIRouter(prefix="/api/categories", tags=["categories"])


def _serialize(category) -> CategoryResponse:
    return CategoryResponse.model_validate(category, from_attributes=True)


@router.get("", response_model=ApiResponse[List[CategoryResponse]])
def list_categories(
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("category.list", user_id=str(user_id), request_id=request_id):
        categories = category_service.list_categories(db, user_id)
    return ok([_serialize(category) for category in categories])


@router.post("", status_code=201, response_model=ApiResponse[CategoryResponse])
def create_category(payload: CategoryCreateRequest, http_request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Create a category; names are unique per user regardless of case."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("category.create", metadata={"name": payload.name}, user_id=str(payload.user_id), request_id=request_id):
        category = category_service.create_category(
            db,
            payload.user_id,
            payload.name,
            color=payload.color,
            bg_color=payload.bg_color,
            text_color=payload.text_color,
        )
    log_metric("category.create.success", 1, metadata={"user_id": str(payload.user_id)})
    return ok(_serialize(category))


@router.patch("/{category_id}", response_model=ApiResponse[CategoryResponse])
def update_category(
    category_id: UUID,
    payload: CategoryUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("category.update", metadata={"category_id": str(category_id)}, user_id=str(payload.user_id), request_id=request_id):
        category = category_service.update_category(
            db,
            category_id,
            payload.user_id,
            name=payload.name,
            color=payload.color,
            bg_color=payload.bg_color,
            text_color=payload.text_color,
        )
    return ok(_serialize(category))


@router.delete("/{category_id}", response_model=ApiResponse[CategoryDeleteResponse])
def delete_category(
    category_id: UUID,
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Delete a category; its tasks fall back to the default label."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("category.delete", metadata={"category_id": str(category_id)}, user_id=str(user_id), request_id=request_id):
        reassigned = category_service.delete_category(db, category_id, user_id)
    log_metric("category.delete.reassigned", reassigned, metadata={"user_id": str(user_id)})
    return ok(CategoryDeleteResponse(id=category_id, reassigned_tasks=reassigned))
