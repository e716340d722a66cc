"""
Coaching session API endpoints.

A session is one conversation about a client. The coach sends messages,
gets AI replies, and once enough has been said asks the strategist for an
analysis. Finished sessions can be continued, which opens a new session
linked to the old one.

Errors raised by the lifecycle service are mapped to HTTP statuses by the
exception handler in main.py, so the handlers here stay on the happy path.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from ...core.coaching.loading import SessionDetail
from ...core.coaching.models import (
    ChatMessage,
    CoachingSession,
    ContinuableSession,
    SessionContext,
)
from ..dependencies import CoachId, LifecycleDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateSessionRequest(BaseModel):
    client_id: str = Field(description="Client the conversation is about", min_length=1)


class SendMessageRequest(BaseModel):
    message: str = Field(
        description="The coach's message",
        min_length=1,
        max_length=4000,
    )
    target_name: Optional[str] = Field(
        None, description="Client display name; looked up when omitted"
    )


class AnalyzeRequest(BaseModel):
    target_name: Optional[str] = Field(
        None, description="Client display name; looked up when omitted"
    )


class MessageItem(BaseModel):
    id: str = Field(description="Message identifier")
    content: str = Field(description="Message content")
    sender: str = Field(description="user or ai")
    timestamp: str = Field(description="When the message was sent (ISO format)")


class StrategySuggestionItem(BaseModel):
    title: str
    description: str
    why_it_works: str


class StrategistOutputItem(BaseModel):
    analysis: Optional[str] = Field(None, description="Overall analysis")
    suggestions: list[StrategySuggestionItem] = Field(default_factory=list)


class FeedbackSummaryItem(BaseModel):
    rating: int
    submitted_at: datetime
    feedback_data: dict[str, Any]


class SessionContextBody(BaseModel):
    relationship_type: str = Field(description="e.g. partner, colleague, parent", min_length=1)
    communication_style: Optional[str] = None
    relationship_duration: Optional[str] = None
    goals: list[str] = Field(default_factory=list)
    challenges: list[str] = Field(default_factory=list)
    context_data: dict[str, Any] = Field(default_factory=dict)


class SessionContextResponse(SessionContextBody):
    session_id: str
    updated_at: datetime


class SessionResponse(BaseModel):
    """Complete session details."""
    session_id: str = Field(description="Session identifier")
    client_id: str = Field(description="Client the session is about")
    status: str = Field(description="gathering_info, analyzing, complete or error")
    created_at: datetime = Field(description="When the session was created")
    parent_session_id: Optional[str] = Field(None, description="Session this one continues")
    is_continued: bool = Field(False, description="Whether this session continues another")
    message_count: int = Field(description="Number of messages in conversation")
    messages: list[MessageItem] = Field(description="Full conversation history")
    strategist_output: Optional[StrategistOutputItem] = Field(
        None, description="Present exactly when the session is complete"
    )
    feedback: Optional[FeedbackSummaryItem] = None
    case_data: dict[str, Any] = Field(default_factory=dict)
    context: Optional[SessionContextResponse] = None


class SendMessageResponse(BaseModel):
    session_id: str
    user_message: MessageItem
    ai_message: MessageItem


class ContinuableSessionItem(BaseModel):
    session_id: str
    target_name: str
    target_id: str
    last_activity: datetime
    message_count: int
    status: str
    can_continue: bool
    continuation_reason: str


class ContinuableSessionsResponse(BaseModel):
    sessions: list[ContinuableSessionItem]
    total: int


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def message_item(message: ChatMessage) -> MessageItem:
    return MessageItem(**message.to_dict())


def context_response(context: SessionContext) -> SessionContextResponse:
    return SessionContextResponse(
        session_id=context.session_id,
        relationship_type=context.relationship_type,
        communication_style=context.communication_style,
        relationship_duration=context.relationship_duration,
        goals=context.goals,
        challenges=context.challenges,
        context_data=context.context_data,
        updated_at=context.updated_at,
    )


def session_response(
    session: CoachingSession,
    context: Optional[SessionContext] = None,
) -> SessionResponse:
    output = None
    if session.strategist_output is not None:
        output = StrategistOutputItem(**session.strategist_output.to_dict())

    feedback = None
    if session.feedback is not None:
        feedback = FeedbackSummaryItem(
            rating=session.feedback.rating,
            submitted_at=session.feedback.submitted_at,
            feedback_data=session.feedback.to_feedback_data(),
        )

    return SessionResponse(
        session_id=session.id,
        client_id=session.target_id,
        status=session.status.value,
        created_at=session.created_at,
        parent_session_id=session.parent_session_id,
        is_continued=session.is_continued,
        message_count=session.message_count,
        messages=[message_item(m) for m in session.messages],
        strategist_output=output,
        feedback=feedback,
        case_data=session.case_data,
        context=context_response(context) if context else None,
    )


def continuable_item(session: ContinuableSession) -> ContinuableSessionItem:
    return ContinuableSessionItem(
        session_id=session.id,
        target_name=session.target_name,
        target_id=session.target_id,
        last_activity=session.last_activity,
        message_count=session.message_count,
        status=session.status.value,
        can_continue=session.can_continue,
        continuation_reason=session.continuation_reason,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a coaching session",
)
async def create_session(
    request: CreateSessionRequest,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
) -> SessionResponse:
    session = await lifecycle.create_session(coach_id, request.client_id)
    return session_response(session)


@router.get(
    "/continuable",
    response_model=ContinuableSessionsResponse,
    summary="Sessions that can be picked back up",
    description="Recent complete or analyzing sessions with the reason each can be continued",
)
async def list_continuable_sessions(
    coach_id: CoachId,
    lifecycle: LifecycleDep,
) -> ContinuableSessionsResponse:
    sessions = await lifecycle.list_continuable(coach_id)
    return ContinuableSessionsResponse(
        sessions=[continuable_item(s) for s in sessions],
        total=len(sessions),
    )


@router.get(
    "/history/{client_id}",
    response_model=list[SessionResponse],
    summary="Earlier sessions about a client",
)
async def session_history(
    client_id: str,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
    exclude_session_id: Optional[str] = None,
    limit: int = Query(5, ge=1, le=50),
) -> list[SessionResponse]:
    sessions = await lifecycle.session_history(
        coach_id, client_id, exclude_session_id=exclude_session_id, limit=limit
    )
    return [session_response(s) for s in sessions]


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get session details",
    description="Conversation, strategist output, feedback summary and relationship context",
)
async def get_session(
    session_id: str,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
) -> SessionResponse:
    detail: SessionDetail = await lifecycle.get_session_detail(coach_id, session_id)
    return session_response(detail.session, detail.context)


@router.post(
    "/{session_id}/messages",
    response_model=SendMessageResponse,
    summary="Send a message",
    description="Send the coach's message and get the AI reply. Nothing is stored if the reply fails.",
)
async def send_message(
    session_id: str,
    request: SendMessageRequest,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
) -> SendMessageResponse:
    logger.info(
        "Processing chat message",
        extra={"session_id": session_id, "message_length": len(request.message)}
    )
    user_message, reply = await lifecycle.send_message(
        coach_id, session_id, request.message, request.target_name
    )
    return SendMessageResponse(
        session_id=session_id,
        user_message=message_item(user_message),
        ai_message=message_item(reply),
    )


@router.post(
    "/{session_id}/analyze",
    response_model=SessionResponse,
    summary="Run the strategist",
    description="Needs at least 3 messages. On failure the session goes back to gathering_info.",
)
async def analyze_session(
    session_id: str,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
    request: Optional[AnalyzeRequest] = None,
) -> SessionResponse:
    session = await lifecycle.trigger_analysis(
        coach_id, session_id, request.target_name if request else None
    )
    return session_response(session)


@router.post(
    "/{session_id}/continue",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Continue a session",
    description="Open a new session for the same client, linked to this one",
)
async def continue_session(
    session_id: str,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
) -> SessionResponse:
    session = await lifecycle.continue_session(coach_id, session_id)
    return session_response(session)


@router.get(
    "/{session_id}/context",
    response_model=Optional[SessionContextResponse],
    summary="Get relationship context",
)
async def get_context(
    session_id: str,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
) -> Optional[SessionContextResponse]:
    context = await lifecycle.get_context(coach_id, session_id)
    return context_response(context) if context else None


@router.put(
    "/{session_id}/context",
    response_model=SessionContextResponse,
    summary="Save relationship context",
)
async def put_context(
    session_id: str,
    body: SessionContextBody,
    coach_id: CoachId,
    lifecycle: LifecycleDep,
) -> SessionContextResponse:
    context = await lifecycle.put_context(coach_id, SessionContext(
        session_id=session_id,
        relationship_type=body.relationship_type,
        communication_style=body.communication_style,
        relationship_duration=body.relationship_duration,
        goals=body.goals,
        challenges=body.challenges,
        context_data=body.context_data,
    ))
    return context_response(context)
