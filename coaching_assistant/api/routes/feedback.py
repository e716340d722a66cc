"""
Feedback API endpoints.

Feedback is submitted once a session has run its course. The detail
record is written first and the session summary second; if the first
write fails the second is never attempted.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.coaching.feedback import FeedbackAnalytics
from ...core.coaching.models import FeedbackRecord, FeedbackSubmission
from ..dependencies import CoachId, FeedbackDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SubmitFeedbackRequest(BaseModel):
    session_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)
    rating: int = Field(description="Overall session rating, 1-5")
    suggestions_tried_count: int = Field(0, description="How many suggested strategies were tried")
    outcome_rating: Optional[int] = Field(None, description="How well things went, 1-5")
    what_worked_well: Optional[str] = None
    what_didnt_work: Optional[str] = None
    additional_notes: Optional[str] = None
    suggested_strategies: list[str] = Field(
        default_factory=list,
        description="Titles of the strategies the session suggested, in order",
    )


class FeedbackItem(BaseModel):
    feedback_id: str
    session_id: str
    target_id: str
    rating: int
    created_at: datetime
    suggestions_tried: list[str]
    outcome_rating: Optional[int] = None
    what_worked_well: Optional[str] = None
    what_didnt_work: Optional[str] = None
    additional_notes: Optional[str] = None


class StrategyEffectivenessItem(BaseModel):
    tried_count: int
    success_rate: float = Field(description="Percentage of tries with an outcome rated 4 or 5")


class FeedbackAnalyticsResponse(BaseModel):
    average_rating: float
    total_feedbacks: int
    suggestions_effectiveness: dict[str, StrategyEffectivenessItem]
    what_works: list[str]
    what_doesnt: list[str]


def feedback_item(record: FeedbackRecord) -> FeedbackItem:
    return FeedbackItem(
        feedback_id=record.id,
        session_id=record.session_id,
        target_id=record.target_id,
        rating=record.rating,
        created_at=record.created_at,
        suggestions_tried=list(record.suggestions_tried),
        outcome_rating=record.outcome_rating,
        what_worked_well=record.what_worked_well,
        what_didnt_work=record.what_didnt_work,
        additional_notes=record.additional_notes,
    )


def analytics_response(analytics: FeedbackAnalytics) -> FeedbackAnalyticsResponse:
    return FeedbackAnalyticsResponse(
        average_rating=analytics.average_rating,
        total_feedbacks=analytics.total_feedbacks,
        suggestions_effectiveness={
            name: StrategyEffectivenessItem(
                tried_count=stats.tried_count,
                success_rate=stats.success_rate,
            )
            for name, stats in analytics.strategies.items()
        },
        what_works=analytics.what_works,
        what_doesnt=analytics.what_doesnt,
    )


@router.post(
    "",
    response_model=FeedbackItem,
    status_code=status.HTTP_201_CREATED,
    summary="Submit session feedback",
)
async def submit_feedback(
    request: SubmitFeedbackRequest,
    coach_id: CoachId,
    aggregator: FeedbackDep,
) -> FeedbackItem:
    # Range checks happen here and raise InvalidFeedbackError (422)
    submission = FeedbackSubmission(**request.model_dump())
    record = await aggregator.submit(coach_id, submission)
    return feedback_item(record)


@router.get("", response_model=list[FeedbackItem], summary="Feedback history")
async def feedback_history(
    coach_id: CoachId,
    aggregator: FeedbackDep,
    target_id: Optional[str] = None,
) -> list[FeedbackItem]:
    records = await aggregator.history(coach_id, target_id)
    return [feedback_item(r) for r in records]


@router.get(
    "/analytics",
    response_model=FeedbackAnalyticsResponse,
    summary="Feedback analytics",
    description="Average rating, per-strategy success rates and recurring themes",
)
async def feedback_analytics(
    coach_id: CoachId,
    aggregator: FeedbackDep,
    target_id: Optional[str] = None,
) -> FeedbackAnalyticsResponse:
    return analytics_response(await aggregator.analytics(coach_id, target_id))
