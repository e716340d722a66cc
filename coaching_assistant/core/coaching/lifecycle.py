"""
Session lifecycle: the operations a coach performs on a conversation.

This service is the orchestration layer. It loads sessions through the
loader (so every read is access-checked, validated and deadline-bound),
drives status changes through the state machine, calls the provider and
persists the result. It knows nothing about HTTP.

Failure handling follows one rule: whatever the provider does, the stored
session ends in a state the state machine allows. A failed reply leaves
the session untouched; a failed analysis rolls it back to gathering_info
before the error is raised.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from .continuity import CONTINUABLE_STATUSES, MAX_CANDIDATES, find_continuable_sessions
from .errors import (
    ClientAccessError,
    ProviderError,
    SessionAccessError,
    StrategistError,
    TransitionRejected,
)
from .loading import (
    DETAIL_LOAD_TIMEOUT_SECONDS,
    SIMPLE_LOAD_TIMEOUT_SECONDS,
    SessionDetail,
    SessionLoader,
)
from .models import (
    ChatMessage,
    CoachingSession,
    ContinuableSession,
    MessageSender,
    SessionContext,
    SessionStatus,
    utcnow,
)
from .provider import CoachingProvider
from .state_machine import SessionEvent, apply_transition
from .stores import ClientStore, SessionContextStore, SessionStore
from .validation import session_from_row, validate_strategist_output


logger = logging.getLogger(__name__)

DEFAULT_STRATEGIST_TIMEOUT_SECONDS = 90.0
HISTORY_LIMIT = 5


class SessionLifecycleService:

    def __init__(
        self,
        sessions: SessionStore,
        contexts: SessionContextStore,
        clients: ClientStore,
        provider: CoachingProvider,
        strategist_timeout_seconds: float = DEFAULT_STRATEGIST_TIMEOUT_SECONDS,
        load_timeout_seconds: float = SIMPLE_LOAD_TIMEOUT_SECONDS,
        detail_load_timeout_seconds: float = DETAIL_LOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._sessions = sessions
        self._contexts = contexts
        self._clients = clients
        self._provider = provider
        self._strategist_timeout = strategist_timeout_seconds
        self._loader = SessionLoader(sessions, timeout_seconds=load_timeout_seconds)
        self._detail_loader = SessionLoader(
            sessions, contexts, timeout_seconds=detail_load_timeout_seconds
        )

    # -----------------------------------------------------------------------
    # Create and load
    # -----------------------------------------------------------------------

    async def create_session(
        self,
        coach_id: str,
        client_id: str,
        parent_session_id: Optional[str] = None,
    ) -> CoachingSession:
        """
        Start a new conversation about one of the coach's clients.

        Raises:
            ClientAccessError: the client is missing or not the coach's
        """
        client = await self._clients.fetch_client(client_id)
        if client is None or client.coach_id != coach_id:
            raise ClientAccessError(client_id)

        session = CoachingSession(
            target_id=client_id,
            coach_id=coach_id,
            parent_session_id=parent_session_id,
            is_continued=parent_session_id is not None,
        )
        await self._sessions.create_session(session)

        logger.info(
            "Session created",
            extra={
                "session_id": session.id,
                "target_id": client_id,
                "parent_session_id": parent_session_id,
            }
        )
        return session

    async def get_session(self, coach_id: str, session_id: str) -> CoachingSession:
        """
        Raises:
            SessionAccessError: missing, or owned by another coach
            SessionLoadTimeout: storage didn't answer in time
        """
        return await self._loader.load(coach_id, session_id)

    async def get_session_detail(self, coach_id: str, session_id: str) -> SessionDetail:
        return await self._detail_loader.load_detail(coach_id, session_id)

    # -----------------------------------------------------------------------
    # Conversation
    # -----------------------------------------------------------------------

    async def send_message(
        self,
        coach_id: str,
        session_id: str,
        text: str,
        target_name: Optional[str] = None,
    ) -> tuple[ChatMessage, ChatMessage]:
        """
        Send the coach's message and store it with the AI reply.

        Both messages are persisted together, and only once the provider
        answered. Returns (user message, AI reply).

        Raises:
            ValueError: blank message
            TransitionRejected: the session no longer takes messages
            ProviderError: the provider failed; nothing was stored
        """
        if not text.strip():
            raise ValueError("Message cannot be empty")

        session = await self.get_session(coach_id, session_id)
        if session.status is not SessionStatus.GATHERING_INFO:
            raise TransitionRejected(
                session.status.value, "send_message", "session no longer accepts messages"
            )

        name = target_name or await self._target_name(session)
        user_message = ChatMessage.create(text, MessageSender.USER)
        try:
            reply = await self._provider.handle_user_message(
                session_id=session.id,
                message=text,
                target_name=name,
                history=list(session.messages),
            )
        except ProviderError as e:
            logger.error(
                "Provider failed to answer message",
                extra={"session_id": session_id, "error": str(e)}
            )
            raise

        session.messages.append(user_message)
        session.messages.append(reply)
        await self._sessions.save_session(session)

        logger.info(
            "Message exchanged",
            extra={"session_id": session_id, "message_count": session.message_count}
        )
        return user_message, reply

    async def trigger_analysis(
        self,
        coach_id: str,
        session_id: str,
        target_name: Optional[str] = None,
    ) -> CoachingSession:
        """
        Run the strategist over the whole conversation.

        The session is stored as analyzing before the provider is called,
        then as complete with its output. If the provider call fails in any way,
        times out or returns nothing usable, the session is stored back as
        gathering_info and StrategistError is raised.

        Raises:
            TransitionRejected: not gathering info, or too few messages
            StrategistError: analysis failed and was rolled back
        """
        session = await self.get_session(coach_id, session_id)
        name = target_name or await self._target_name(session)
        apply_transition(session, SessionEvent.REQUEST_ANALYSIS)
        await self._sessions.save_session(session)

        reason = None
        output = None
        cause: Optional[BaseException] = None
        try:
            raw_output = await asyncio.wait_for(
                self._provider.trigger_strategist(
                    session_id=session.id,
                    target_name=name,
                    chat_history=list(session.messages),
                ),
                timeout=self._strategist_timeout,
            )
            output = validate_strategist_output(raw_output)
            if output is None:
                reason = "strategist returned no usable output"
        except asyncio.TimeoutError as e:
            reason = f"strategist timed out after {self._strategist_timeout:g}s"
            cause = e
        except ProviderError as e:
            reason = str(e)
            cause = e
        except Exception as e:
            # Anything else still has to leave the session out of analyzing
            reason = f"unexpected {type(e).__name__}: {e}"
            cause = e

        if output is None:
            logger.error(
                "Strategist analysis failed, rolling back",
                extra={"session_id": session_id, "reason": reason}
            )
            apply_transition(session, SessionEvent.ANALYSIS_FAILED)
            await self._sessions.save_session(session)
            raise StrategistError(session_id, reason or "unknown error") from cause

        apply_transition(session, SessionEvent.ANALYSIS_SUCCEEDED, strategist_output=output)
        await self._sessions.save_session(session)
        return session

    # -----------------------------------------------------------------------
    # Continuation and history
    # -----------------------------------------------------------------------

    async def list_continuable(
        self,
        coach_id: str,
        now: Optional[datetime] = None,
    ) -> list[ContinuableSession]:
        activity = await self._sessions.list_activity(
            coach_id,
            statuses=list(CONTINUABLE_STATUSES),
            limit=MAX_CANDIDATES,
        )
        return find_continuable_sessions(activity, now or utcnow())

    async def continue_session(self, coach_id: str, session_id: str) -> CoachingSession:
        """
        Open a new session for the same client, linked to `session_id`.

        Raises:
            SessionAccessError: the prior session is missing or not the coach's
        """
        row = await self._sessions.fetch_session(session_id)
        if row is None or row.coach_id != coach_id:
            raise SessionAccessError(session_id)
        return await self.create_session(coach_id, row.target_id, parent_session_id=row.id)

    async def session_history(
        self,
        coach_id: str,
        client_id: str,
        exclude_session_id: Optional[str] = None,
        limit: int = HISTORY_LIMIT,
    ) -> list[CoachingSession]:
        """Earlier sessions about a client, most recent first."""
        rows = await self._sessions.list_for_client(
            coach_id,
            client_id,
            exclude_session_id=exclude_session_id,
            limit=limit,
        )
        return [session_from_row(row) for row in rows]

    # -----------------------------------------------------------------------
    # Relationship context
    # -----------------------------------------------------------------------

    async def put_context(self, coach_id: str, context: SessionContext) -> SessionContext:
        await self.get_session(coach_id, context.session_id)
        context.updated_at = utcnow()
        await self._contexts.upsert_context(context)
        return context

    async def get_context(self, coach_id: str, session_id: str) -> Optional[SessionContext]:
        await self.get_session(coach_id, session_id)
        return await self._contexts.fetch_context(session_id)

    async def _target_name(self, session: CoachingSession) -> str:
        client = await self._clients.fetch_client(session.target_id)
        return client.name if client else ""
