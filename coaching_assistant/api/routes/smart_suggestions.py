"""
Smart reply suggestion endpoints.

These never fail the conversation: a provider error yields an empty list
and a failed interaction write is logged and reported as not recorded.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..dependencies import CoachId, LifecycleDep, SmartSuggestionsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SmartSuggestionsRequest(BaseModel):
    session_id: str = Field(min_length=1)
    is_visible: bool = Field(True, description="Whether the suggestion panel is showing")


class SmartSuggestionItem(BaseModel):
    id: str
    text: str
    priority: str
    type: str


class SmartSuggestionsResponse(BaseModel):
    suggestions: list[SmartSuggestionItem]


class InteractionRequest(BaseModel):
    suggestion_id: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    selected_text: str = Field(min_length=1)


class InteractionResponse(BaseModel):
    recorded: bool
    interaction_id: Optional[str] = None


class EffectivenessRequest(BaseModel):
    was_effective: bool


class EffectivenessResponse(BaseModel):
    suggestion_id: str
    updated: int


@router.post("", response_model=SmartSuggestionsResponse, summary="Suggest replies")
async def request_smart_suggestions(
    request: SmartSuggestionsRequest,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
    orchestrator: SmartSuggestionsDep,
) -> SmartSuggestionsResponse:
    if not request.is_visible:
        return SmartSuggestionsResponse(suggestions=[])

    session = await lifecycle.get_session(coach_id, request.session_id)
    suggestions = await orchestrator.request_suggestions(
        session_id=session.id,
        target_id=session.target_id,
        messages=session.messages,
        is_visible=request.is_visible,
    )
    return SmartSuggestionsResponse(suggestions=[
        SmartSuggestionItem(id=s.id, text=s.text, priority=s.priority.value, type=s.type)
        for s in suggestions
    ])


@router.post("/interactions", response_model=InteractionResponse, summary="Record a picked suggestion")
async def record_interaction(
    request: InteractionRequest,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
    orchestrator: SmartSuggestionsDep,
) -> InteractionResponse:
    session = await lifecycle.get_session(coach_id, request.session_id)
    interaction = await orchestrator.record_selection(
        suggestion_id=request.suggestion_id,
        selected_text=request.selected_text,
        session_id=session.id,
        coach_id=coach_id,
        target_id=session.target_id,
        message_count=session.message_count,
    )
    if interaction is None:
        return InteractionResponse(recorded=False)
    return InteractionResponse(recorded=True, interaction_id=interaction.id)


@router.post(
    "/{suggestion_id}/effectiveness",
    response_model=EffectivenessResponse,
    summary="Mark whether a suggestion helped",
)
async def mark_effectiveness(
    suggestion_id: str,
    request: EffectivenessRequest,
    coach_id: CoachId,
    orchestrator: SmartSuggestionsDep,
) -> EffectivenessResponse:
    updated = await orchestrator.mark_effectiveness(coach_id, suggestion_id, request.was_effective)
    return EffectivenessResponse(suggestion_id=suggestion_id, updated=updated)
