"""Onboarding preference and schedule generation routes."""
from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from atomic.api.schemas.common import ApiResponse, ok
from atomic.api.schemas.onboarding import (
    OnboardingCompleteRequest,
    OnboardingStatusPayload,
    PreferencesSaveRequest,
    UserPreferencesPayload,
)
from atomic.api.schemas.schedule import Schedule
from atomic.db.deps import get_db
from atomic.observability.metrics import log_metric
from atomic.observability.tracing import trace
from atomic.services import perplexity_service, preferences_service

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


@router.post("/generate-schedule", response_model=ApiResponse[Schedule])
def generate_schedule(preferences: UserPreferencesPayload, http_request: Request) -> Dict[str, Any]:
    """Turn raw onboarding preferences into a proposed schedule."""
    request_id = getattr(http_request.state, "request_id", None)
    result = perplexity_service.generate_schedule_from_preferences(preferences, request_id=request_id)
    log_metric("ai.preferences_schedule.completed", 1, metadata={"source": result.source})
    return ok(result.payload)


@router.get("/preferences", response_model=ApiResponse[Optional[UserPreferencesPayload]])
def get_preferences(
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("onboarding.preferences.get", user_id=str(user_id), request_id=request_id):
        preferences = preferences_service.get_preferences(db, user_id)
    return ok(preferences)


@router.put("/preferences", response_model=ApiResponse[UserPreferencesPayload])
def save_preferences(payload: PreferencesSaveRequest, http_request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Store preferences; ``completed`` also finishes onboarding."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "onboarding.preferences.save",
        metadata={"completed": payload.completed},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        row = preferences_service.save_preferences(db, payload.user_id, payload.preferences, payload.completed)
    return ok(preferences_service.to_payload(row))


@router.post("/complete", response_model=ApiResponse[OnboardingStatusPayload])
def complete_onboarding(payload: OnboardingCompleteRequest, http_request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("onboarding.complete", user_id=str(payload.user_id), request_id=request_id):
        preferences_service.complete_onboarding(db, payload.user_id)
        status_payload = preferences_service.onboarding_status(db, payload.user_id)
    log_metric("onboarding.completed", 1, metadata={"user_id": str(payload.user_id)})
    return ok(status_payload)


@router.get("/status", response_model=ApiResponse[OnboardingStatusPayload])
def onboarding_status(
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("onboarding.status", user_id=str(user_id), request_id=request_id):
        status_payload = preferences_service.onboarding_status(db, user_id)
    return ok(status_payload)
