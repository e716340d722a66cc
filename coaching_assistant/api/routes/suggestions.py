"""
Coaching-practice suggestion endpoints.

Suggestions are recomputed from the coach's recent sessions and feedback
on every request; nothing about them is stored.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ...core.coaching.models import Suggestion, utcnow
from ...core.coaching.suggestions import (
    MAX_FEEDBACK,
    MAX_SESSIONS,
    SuggestionTracker,
    generate_suggestions,
)
from ..dependencies import CoachId, StoresDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SuggestionItem(BaseModel):
    id: str
    title: str
    description: str
    category: str = Field(description="timing, approach, technique or follow-up")
    priority: str = Field(description="high, medium or low")
    rationale: str
    action_items: list[str]


class SuggestionsResponse(BaseModel):
    suggestions: list[SuggestionItem]
    total: int


class ApplySuggestionRequest(BaseModel):
    session_id: Optional[str] = Field(None, description="Session the suggestion was applied in")


class ApplySuggestionResponse(BaseModel):
    suggestion_id: str
    applied: bool


def suggestion_item(suggestion: Suggestion) -> SuggestionItem:
    return SuggestionItem(
        id=suggestion.id,
        title=suggestion.title,
        description=suggestion.description,
        category=suggestion.category.value,
        priority=suggestion.priority.value,
        rationale=suggestion.rationale,
        action_items=list(suggestion.action_items),
    )


@router.get("", response_model=SuggestionsResponse, summary="Suggestions for my coaching practice")
async def get_suggestions(coach_id: CoachId, stores: StoresDep) -> SuggestionsResponse:
    sessions = await stores.sessions.list_activity(coach_id, limit=MAX_SESSIONS)
    feedback = await stores.feedback.list_feedback(coach_id, limit=MAX_FEEDBACK)
    suggestions = generate_suggestions(sessions, feedback, utcnow())
    return SuggestionsResponse(
        suggestions=[suggestion_item(s) for s in suggestions],
        total=len(suggestions),
    )


@router.post(
    "/{suggestion_id}/apply",
    response_model=ApplySuggestionResponse,
    summary="Mark a suggestion as applied",
)
async def apply_suggestion(
    suggestion_id: str,
    coach_id: CoachId,
    request: Optional[ApplySuggestionRequest] = None,
) -> ApplySuggestionResponse:
    tracker = SuggestionTracker(coach_id=coach_id, session_id=request.session_id if request else None)
    tracker.apply(suggestion_id)
    return ApplySuggestionResponse(suggestion_id=suggestion_id, applied=True)
