"""
Context Routes - Conversation bookkeeping for chat clients.

Endpoints:
- GET  /context?userId=...: Memory plus the last few questions
- POST /context/question: Append a question to recentQuestions
- POST /context/insight: Append the start of an answer to keyInsights
- POST /risk: Replace the user's risk factors and conditions
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from usercontext.core.logging_config import get_logger
from usercontext.models.memory import (
    MemoryRecord,
    RiskUpdateRequest,
    RiskUpdateResponse,
    QuestionRequest,
    InsightRequest,
    ContextResponse,
    ErrorResponse,
)
from usercontext.services.context_service import ContextService, get_context_service

logger = get_logger(__name__)

router = APIRouter(
    tags=["Context"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
        503: {"model": ErrorResponse, "description": "Memory storage unavailable"},
    }
)


@router.get(
    "/context",
    response_model=ContextResponse,
    summary="Get user context",
    description="Return the user's memory and the most recent questions."
)
def get_context(
    user_id: str = Query(..., alias="userId", min_length=1),
    recent: Optional[int] = Query(default=None, ge=0, le=100, description="Recent questions to include"),
    service: ContextService = Depends(get_context_service)
) -> ContextResponse:
    context = service.get_context(user_id, recent=recent)
    return ContextResponse(
        user_id=user_id,
        memory=context["memory"],
        recent_questions=context["recentQuestions"]
    )


@router.post(
    "/context/question",
    response_model=MemoryRecord,
    summary="Record a question",
    description="Append a question to the user's recentQuestions."
)
def record_question(
    request: QuestionRequest,
    service: ContextService = Depends(get_context_service)
) -> MemoryRecord:
    return service.record_question(request.user_id, request.question)


@router.post(
    "/context/insight",
    response_model=MemoryRecord,
    summary="Record an insight",
    description="Append the leading characters of an assistant answer to keyInsights."
)
def record_insight(
    request: InsightRequest,
    service: ContextService = Depends(get_context_service)
) -> MemoryRecord:
    return service.record_insight(request.user_id, request.insight)


@router.post(
    "/risk",
    response_model=RiskUpdateResponse,
    summary="Update risk profile",
    description="""
    Replace the user's risk factors and conditions.

    Omitted lists are stored as empty; interests are not touched.
    """
)
def update_risk(
    request: RiskUpdateRequest,
    service: ContextService = Depends(get_context_service)
) -> RiskUpdateResponse:
    record = service.update_risk_profile(
        request.user_id,
        risk_factors=request.risk_factors,
        conditions=request.conditions
    )
    logger.info(f"Risk profile updated via API: user={request.user_id[:8]}")
    return RiskUpdateResponse(user_id=request.user_id, profile=record.profile)
