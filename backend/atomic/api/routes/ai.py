"""AI assistant routes backed by Perplexity with rule-based fallbacks."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request, status

from atomic.api.schemas.ai import (
    OnboardingRequest,
    OptimizationResponse,
    OptimizeRequest,
    ResearchRequest,
    ResearchResponse,
    ScheduleResponse,
)
from atomic.api.schemas.common import ApiResponse, ok
from atomic.observability.metrics import log_metric
from atomic.services import perplexity_service

router = APIRouter(prefix="/api/ai", tags=["ai"])


def _record(operation: str, result: perplexity_service.AIResult) -> None:
    log_metric(f"ai.{operation}.completed", 1, metadata={"source": result.source})


@router.post("/onboarding", response_model=ApiResponse[ScheduleResponse])
def onboarding_schedule(payload: OnboardingRequest, http_request: Request) -> Dict[str, Any]:
    """Generate a day of tasks from the onboarding chat answers."""
    request_id = getattr(http_request.state, "request_id", None)
    result = perplexity_service.generate_optimal_schedule(payload.user_inputs, request_id=request_id)
    _record("onboarding", result)
    return ok(result.payload)


@router.post("/optimize", response_model=ApiResponse[OptimizationResponse])
def optimize_schedule(payload: OptimizeRequest, http_request: Request) -> Dict[str, Any]:
    request_id = getattr(http_request.state, "request_id", None)
    result = perplexity_service.optimize_existing_schedule(
        payload.current_tasks,
        payload.optimization_goal,
        request_id=request_id,
    )
    _record("optimize", result)
    return ok(result.payload)


@router.post("/research", response_model=ApiResponse[ResearchResponse])
def research_practices(payload: ResearchRequest, http_request: Request) -> Dict[str, Any]:
    """Evidence-based practices and daily time allocations for the goals."""
    goals = payload.goal_list()
    if not goals:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Goals are required")
    request_id = getattr(http_request.state, "request_id", None)
    result = perplexity_service.research_optimal_practices(goals, request_id=request_id)
    _record("research", result)
    return ok(result.payload)
