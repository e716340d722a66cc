"""
Session status state machine.

Every status change a session goes through is decided by transition(),
a pure function of the current status, the event, and the data the event
carries. Callers never compare or assign status strings themselves:

    gathering_info --REQUEST_ANALYSIS--> analyzing
    analyzing --ANALYSIS_SUCCEEDED--> complete
    analyzing --ANALYSIS_FAILED--> gathering_info
    gathering_info | analyzing --FAULT--> error

complete and error are terminal. Picking a finished conversation back up
means creating a new session with a parent_session_id.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import TransitionRejected
from .models import CoachingSession, SessionStatus, StrategistOutput


logger = logging.getLogger(__name__)

MIN_MESSAGES_FOR_ANALYSIS = 3


class SessionEvent(Enum):
    REQUEST_ANALYSIS = "request_analysis"
    ANALYSIS_SUCCEEDED = "analysis_succeeded"
    ANALYSIS_FAILED = "analysis_failed"
    FAULT = "fault"


@dataclass(frozen=True)
class Transition:
    """An accepted status change."""
    source: SessionStatus
    target: SessionStatus
    event: SessionEvent
    strategist_output: Optional[StrategistOutput] = None


@dataclass(frozen=True)
class Rejection:
    """A refused status change and why."""
    source: SessionStatus
    event: SessionEvent
    reason: str


TransitionResult = Union[Transition, Rejection]


_EDGES: dict[tuple[SessionStatus, SessionEvent], SessionStatus] = {
    (SessionStatus.GATHERING_INFO, SessionEvent.REQUEST_ANALYSIS): SessionStatus.ANALYZING,
    (SessionStatus.ANALYZING, SessionEvent.ANALYSIS_SUCCEEDED): SessionStatus.COMPLETE,
    (SessionStatus.ANALYZING, SessionEvent.ANALYSIS_FAILED): SessionStatus.GATHERING_INFO,
    (SessionStatus.GATHERING_INFO, SessionEvent.FAULT): SessionStatus.ERROR,
    (SessionStatus.ANALYZING, SessionEvent.FAULT): SessionStatus.ERROR,
}


def transition(
    current: SessionStatus,
    event: SessionEvent,
    message_count: int = 0,
    strategist_output: Optional[StrategistOutput] = None,
) -> TransitionResult:
    """
    Decide the outcome of `event` on a session in status `current`.

    Guards:
    - REQUEST_ANALYSIS needs at least MIN_MESSAGES_FOR_ANALYSIS messages.
    - ANALYSIS_SUCCEEDED needs a non-empty strategist output.
    """
    target = _EDGES.get((current, event))
    if target is None:
        return Rejection(current, event, "no such transition")

    if event is SessionEvent.REQUEST_ANALYSIS and message_count < MIN_MESSAGES_FOR_ANALYSIS:
        return Rejection(
            current, event,
            f"analysis needs at least {MIN_MESSAGES_FOR_ANALYSIS} messages, session has {message_count}",
        )

    if event is SessionEvent.ANALYSIS_SUCCEEDED:
        if strategist_output is None or strategist_output.is_empty:
            return Rejection(current, event, "strategist output is empty")
        return Transition(current, target, event, strategist_output)

    return Transition(current, target, event)


def apply_transition(
    session: CoachingSession,
    event: SessionEvent,
    strategist_output: Optional[StrategistOutput] = None,
) -> Transition:
    """
    Apply `event` to `session` in place.

    The session is only touched when the transition is accepted. Output is
    attached on completion and cleared on every other move, so a session
    carries strategist output exactly when it is complete.

    Raises:
        TransitionRejected: the state machine refused the event
    """
    result = transition(
        session.status,
        event,
        message_count=session.message_count,
        strategist_output=strategist_output,
    )

    if isinstance(result, Rejection):
        logger.warning(
            "Session transition rejected",
            extra={
                "session_id": session.id,
                "status": result.source.value,
                "event": result.event.value,
                "reason": result.reason,
            }
        )
        raise TransitionRejected(result.source.value, result.event.value, result.reason)

    session.status = result.target
    session.strategist_output = (
        result.strategist_output if result.target is SessionStatus.COMPLETE else None
    )

    logger.info(
        "Session status changed",
        extra={
            "session_id": session.id,
            "from": result.source.value,
            "to": result.target.value,
            "event": result.event.value,
        }
    )
    return result
