"""
Session loading for views that come and go.

A view opening a session kicks off an async load that may outlive it.
Three pieces keep that safe:

- ViewScope: results that arrive after the view closed are dropped.
- LoadGuard: one load attempt per session identity, so re-rendering the
  same view doesn't fire a second request. Switching to another session
  starts a fresh attempt.
- SessionLoader: the fetch itself, raced against a deadline.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar

from .errors import SessionAccessError, SessionLoadTimeout
from .models import CoachingSession, SessionContext
from .stores import SessionContextStore, SessionStore
from .validation import session_from_row


logger = logging.getLogger(__name__)

T = TypeVar("T")

DETAIL_LOAD_TIMEOUT_SECONDS = 15.0
SIMPLE_LOAD_TIMEOUT_SECONDS = 10.0


class ViewScope:
    """Cancellation flag for one mounted view."""

    def __init__(self) -> None:
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    def close(self) -> None:
        self._closed = True

    async def run(self, awaitable: Awaitable[T]) -> Optional[T]:
        """
        Await `awaitable` and hand back its result while the scope is open.

        Once closed, both results and errors are discarded and None is
        returned.
        """
        try:
            result = await awaitable
        except Exception as e:
            if self._closed:
                logger.debug("Discarded error from closed view", extra={"error": str(e)})
                return None
            raise
        if self._closed:
            logger.debug("Discarded result from closed view")
            return None
        return result


class LoadGuard:
    """Allows one load attempt per identity."""

    def __init__(self) -> None:
        self._identity: Optional[str] = None
        self._attempted = False

    def begin(self, identity: str) -> bool:
        """True if a load for `identity` should start now."""
        if identity != self._identity:
            self._identity = identity
            self._attempted = False
        if self._attempted:
            return False
        self._attempted = True
        return True

    def reset(self) -> None:
        self._identity = None
        self._attempted = False


@dataclass
class SessionDetail:
    session: CoachingSession
    context: Optional[SessionContext] = None


class SessionLoader:
    """
    Loads a coach's session under a deadline.

    asyncio.wait_for cancels the fetch when the deadline passes and
    leaves nothing pending when it finishes first.
    """

    def __init__(
        self,
        sessions: SessionStore,
        contexts: Optional[SessionContextStore] = None,
        timeout_seconds: float = SIMPLE_LOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._sessions = sessions
        self._contexts = contexts
        self.timeout_seconds = timeout_seconds

    async def load(self, coach_id: str, session_id: str) -> CoachingSession:
        """
        Raises:
            SessionLoadTimeout: the fetch didn't finish in time
            SessionAccessError: missing, or owned by another coach
        """
        return await self._with_deadline(session_id, self._fetch(coach_id, session_id))

    async def load_detail(self, coach_id: str, session_id: str) -> SessionDetail:
        """The session plus its relationship context, under one deadline."""
        return await self._with_deadline(session_id, self._fetch_detail(coach_id, session_id))

    async def load_once(
        self,
        scope: ViewScope,
        guard: LoadGuard,
        coach_id: str,
        session_id: str,
    ) -> Optional[CoachingSession]:
        """
        Load for a view: skipped when the guard already saw this session,
        dropped when the view closed meanwhile.
        """
        if not guard.begin(session_id):
            logger.debug("Skipped duplicate session load", extra={"session_id": session_id})
            return None
        return await scope.run(self.load(coach_id, session_id))

    async def _with_deadline(self, session_id: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "Session load timed out",
                extra={"session_id": session_id, "timeout_seconds": self.timeout_seconds}
            )
            raise SessionLoadTimeout(session_id, self.timeout_seconds)

    async def _fetch(self, coach_id: str, session_id: str) -> CoachingSession:
        row = await self._sessions.fetch_session(session_id)
        if row is None or row.coach_id != coach_id:
            logger.warning(
                "Session not accessible",
                extra={"session_id": session_id, "coach_id": coach_id}
            )
            raise SessionAccessError(session_id)
        return session_from_row(row)

    async def _fetch_detail(self, coach_id: str, session_id: str) -> SessionDetail:
        session = await self._fetch(coach_id, session_id)
        context = None
        if self._contexts is not None:
            context = await self._contexts.fetch_context(session_id)
        return SessionDetail(session=session, context=context)
