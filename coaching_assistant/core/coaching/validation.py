"""
Validation and repair of conversation data crossing the storage boundary.

Stored chat history is JSON written by several generations of clients.
Nothing here raises on bad data: malformed entries are dropped (sanitize)
or healed (repair), and every decision is logged so corrupted rows can be
tracked down later.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .models import (
    ChatMessage,
    CoachingSession,
    FeedbackSummary,
    MessageSender,
    SessionStatus,
    StrategistOutput,
    StrategySuggestion,
    utcnow,
)
from .stores import SessionRow


logger = logging.getLogger(__name__)

# Called with (index in the raw list, the raw entry, reason it was dropped)
DropCallback = Callable[[int, Any, str], None]

_SENDERS = {sender.value: sender for sender in MessageSender}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 instant, returning None when it isn't one.

    Naive values are read as UTC. A trailing 'Z' is accepted.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _rejection_reason(obj: Any) -> Optional[str]:
    """Why a raw entry is not a valid chat message, or None if it is."""
    if not isinstance(obj, dict):
        return "not an object"
    if not isinstance(obj.get("id"), str) or not obj["id"]:
        return "missing id"
    content = obj.get("content")
    if not isinstance(content, str) or not content.strip():
        return "empty content"
    if obj.get("sender") not in _SENDERS:
        return "invalid sender"
    if parse_timestamp(obj.get("timestamp")) is None:
        return "invalid timestamp"
    return None


def validate_chat_message(obj: Any) -> bool:
    """True if `obj` satisfies the full chat message validity predicate."""
    return _rejection_reason(obj) is None


def sanitize_chat_history(
    raw_history: Any,
    on_drop: Optional[DropCallback] = None,
) -> list[ChatMessage]:
    """
    Keep the valid entries of a stored chat history, in their original order.

    Invalid entries are dropped, not substituted, and processing always
    continues with the next entry. Anything that isn't a list yields an
    empty history.
    """
    if not isinstance(raw_history, list):
        if raw_history is not None:
            logger.warning(
                "Chat history is not a list, ignoring it",
                extra={"type": type(raw_history).__name__}
            )
        return []

    messages = []
    for index, entry in enumerate(raw_history):
        reason = _rejection_reason(entry)
        if reason is not None:
            logger.warning(
                "Dropped malformed chat message",
                extra={"index": index, "reason": reason}
            )
            if on_drop is not None:
                on_drop(index, entry, reason)
            continue

        messages.append(ChatMessage(
            id=entry["id"],
            content=entry["content"],
            sender=_SENDERS[entry["sender"]],
            timestamp=entry["timestamp"],
        ))

    return messages


def repair_chat_history(
    messages: list[ChatMessage],
    now: Optional[datetime] = None,
) -> list[ChatMessage]:
    """
    Heal an already-typed history instead of rejecting it.

    Entries with blank content are removed; entries whose timestamp doesn't
    parse get the current instant. A clean history comes back unchanged.
    """
    repaired = []
    replacement_time: Optional[str] = None

    for message in messages:
        if not message.content.strip():
            logger.info("Removed blank message during repair", extra={"message_id": message.id})
            continue

        if parse_timestamp(message.timestamp) is None:
            if replacement_time is None:
                replacement_time = (now or utcnow()).isoformat()
            logger.info(
                "Replaced unparsable message timestamp",
                extra={"message_id": message.id, "timestamp": message.timestamp}
            )
            message = ChatMessage(
                id=message.id,
                content=message.content,
                sender=message.sender,
                timestamp=replacement_time,
            )

        repaired.append(message)

    return repaired


def validate_strategist_output(raw_output: Any) -> Optional[StrategistOutput]:
    """
    Structurally validate a strategist output blob.

    `analysis` survives only as a string; `suggestions` only as a list, and
    then element by element only when title, description and why_it_works
    are all strings. If nothing survives the result is None, not an empty
    output.
    """
    if not isinstance(raw_output, dict):
        return None

    analysis = raw_output.get("analysis")
    if not isinstance(analysis, str):
        analysis = None

    suggestions = []
    raw_suggestions = raw_output.get("suggestions")
    if isinstance(raw_suggestions, list):
        for index, item in enumerate(raw_suggestions):
            if (
                isinstance(item, dict)
                and isinstance(item.get("title"), str)
                and isinstance(item.get("description"), str)
                and isinstance(item.get("why_it_works"), str)
            ):
                suggestions.append(StrategySuggestion(
                    title=item["title"],
                    description=item["description"],
                    why_it_works=item["why_it_works"],
                ))
            else:
                logger.warning("Dropped malformed strategist suggestion", extra={"index": index})

    output = StrategistOutput(analysis=analysis, suggestions=suggestions)
    if output.is_empty:
        return None
    return output


def session_from_row(row: SessionRow) -> CoachingSession:
    """
    Build a CoachingSession from a stored row.

    History is sanitized and strategist output validated here, so this is
    the only way stored conversation data enters the domain. Output stored
    on a session that isn't complete is discarded, and a complete session
    whose output didn't survive validation is reported as errored rather
    than complete-without-output.
    """
    try:
        status = SessionStatus(row.status)
    except ValueError:
        logger.warning(
            "Unknown session status in storage",
            extra={"session_id": row.id, "status": row.status}
        )
        status = SessionStatus.ERROR

    output = validate_strategist_output(row.raw_strategist_output)
    if status is SessionStatus.COMPLETE and output is None:
        logger.error(
            "Complete session has no usable strategist output",
            extra={"session_id": row.id}
        )
        status = SessionStatus.ERROR
    if status is not SessionStatus.COMPLETE:
        output = None

    feedback = None
    if row.feedback_rating is not None and row.feedback_submitted_at is not None:
        data = row.feedback_data if isinstance(row.feedback_data, dict) else {}
        feedback = FeedbackSummary(
            rating=row.feedback_rating,
            submitted_at=row.feedback_submitted_at,
            outcome_rating=data.get("outcome_rating"),
            suggestions_tried_count=data.get("suggestions_tried_count") or 0,
            has_detailed_feedback=bool(data.get("has_detailed_feedback")),
        )

    return CoachingSession(
        id=row.id,
        target_id=row.target_id,
        coach_id=row.coach_id,
        status=status,
        messages=sanitize_chat_history(row.raw_chat_history),
        strategist_output=output,
        feedback=feedback,
        parent_session_id=row.parent_session_id,
        is_continued=row.is_continued,
        case_data=row.case_data if isinstance(row.case_data, dict) else {},
        created_at=row.created_at,
    )
