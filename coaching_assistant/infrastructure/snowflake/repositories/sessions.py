"""
Snowflake repository for coaching sessions and their relationship context.

This module implements the repository pattern for session data access.
The repository:
1. Translates between domain models and database representations
2. Encapsulates all SQL queries
3. Hands stored conversation data back untouched, as SessionRow

Chat history and strategist output live in VARIANT columns and are only
parsed from JSON here. Validating them is the core's job
(validation.session_from_row), not the repository's.
"""

import logging
from typing import Optional

from ....core.coaching.models import (
    CoachingSession,
    FeedbackSummary,
    SessionActivity,
    SessionContext,
    SessionStatus,
    utcnow,
)
from ....core.coaching.stores import SessionRow
from .base import SnowflakeRepository, as_utc, parse_variant_json, to_variant_param


logger = logging.getLogger(__name__)

SESSION_COLUMNS = """
    id,
    target_id,
    user_id,
    status,
    created_at,
    raw_chat_history,
    strategist_output,
    case_file_data,
    parent_session_id,
    is_continued,
    feedback_rating,
    feedback_submitted_at,
    feedback_data
"""


class SessionRepository(SnowflakeRepository):
    """
    Repository for `coaching_sessions`.

    Every method corresponds to a use case of the lifecycle service or
    the analyzers built on top of it.
    """

    async def create_session(self, session: CoachingSession) -> None:
        await self._write("""
            INSERT INTO coaching_sessions (
                id, target_id, user_id, status, raw_chat_history,
                strategist_output, case_file_data, parent_session_id,
                is_continued, created_at, updated_at
            )
            SELECT %s, %s, %s, %s, PARSE_JSON(%s), PARSE_JSON(%s), PARSE_JSON(%s),
                   %s, %s, %s, %s
        """, (
            session.id,
            session.target_id,
            session.coach_id,
            session.status.value,
            to_variant_param([m.to_dict() for m in session.messages]),
            to_variant_param(session.strategist_output.to_dict() if session.strategist_output else None),
            to_variant_param(session.case_data),
            session.parent_session_id,
            session.is_continued,
            session.created_at,
            session.created_at,
        ), "create_session")

        logger.debug("Inserted session row", extra={"session_id": session.id})

    async def fetch_session(self, session_id: str) -> Optional[SessionRow]:
        row = await self._fetchone(f"""
            SELECT {SESSION_COLUMNS}
            FROM coaching_sessions
            WHERE id = %s
        """, (session_id,))
        if not row:
            return None
        return self._build_row(row)

    async def save_session(self, session: CoachingSession) -> None:
        """
        Persist the mutable parts of a session.

        Messages are stored as the whole history array. Output is written
        as NULL unless the session is complete.
        """
        await self._write("""
            UPDATE coaching_sessions SET
                status = %s,
                raw_chat_history = PARSE_JSON(%s),
                strategist_output = PARSE_JSON(%s),
                case_file_data = PARSE_JSON(%s),
                updated_at = %s
            WHERE id = %s
        """, (
            session.status.value,
            to_variant_param([m.to_dict() for m in session.messages]),
            to_variant_param(session.strategist_output.to_dict() if session.strategist_output else None),
            to_variant_param(session.case_data),
            utcnow(),
            session.id,
        ), "save_session")

        logger.debug(
            "Saved session",
            extra={"session_id": session.id, "status": session.status.value}
        )

    async def list_activity(
        self,
        coach_id: str,
        statuses: Optional[list[SessionStatus]] = None,
        limit: int = 10,
    ) -> list[SessionActivity]:
        params: list = [coach_id]
        status_filter = ""
        if statuses:
            placeholders = ", ".join(["%s"] * len(statuses))
            status_filter = f"AND s.status IN ({placeholders})"
            params.extend(s.value for s in statuses)
        params.append(limit)

        rows = await self._fetchall(f"""
            SELECT
                s.id,
                s.target_id,
                t.target_name,
                s.status,
                s.created_at,
                ARRAY_SIZE(s.raw_chat_history)
            FROM coaching_sessions s
            JOIN targets t ON s.target_id = t.id
            WHERE s.user_id = %s
            {status_filter}
            ORDER BY s.created_at DESC
            LIMIT %s
        """, params)

        return [
            SessionActivity(
                session_id=row[0],
                target_id=row[1],
                target_name=row[2] or "",
                status=self._parse_status(row[3], row[0]),
                created_at=as_utc(row[4]),
                raw_message_count=row[5] or 0,
            )
            for row in rows
        ]

    async def list_for_client(
        self,
        coach_id: str,
        target_id: str,
        exclude_session_id: Optional[str] = None,
        limit: int = 5,
    ) -> list[SessionRow]:
        params: list = [coach_id, target_id]
        exclude_filter = ""
        if exclude_session_id:
            exclude_filter = "AND id <> %s"
            params.append(exclude_session_id)
        params.append(limit)

        rows = await self._fetchall(f"""
            SELECT {SESSION_COLUMNS}
            FROM coaching_sessions
            WHERE user_id = %s
            AND target_id = %s
            {exclude_filter}
            ORDER BY created_at DESC
            LIMIT %s
        """, params)
        return [self._build_row(row) for row in rows]

    async def update_feedback_summary(self, session_id: str, summary: FeedbackSummary) -> None:
        await self._write("""
            UPDATE coaching_sessions SET
                feedback_rating = %s,
                feedback_submitted_at = %s,
                feedback_data = PARSE_JSON(%s)
            WHERE id = %s
        """, (
            summary.rating,
            summary.submitted_at,
            to_variant_param(summary.to_feedback_data()),
            session_id,
        ), "update_feedback_summary")

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _build_row(self, row) -> SessionRow:
        feedback_data = parse_variant_json(row[12])
        return SessionRow(
            id=row[0],
            target_id=row[1],
            coach_id=row[2],
            status=row[3],
            created_at=as_utc(row[4]),
            raw_chat_history=parse_variant_json(row[5]),
            raw_strategist_output=parse_variant_json(row[6]),
            case_data=parse_variant_json(row[7]),
            parent_session_id=row[8],
            is_continued=bool(row[9]),
            feedback_rating=row[10],
            feedback_submitted_at=as_utc(row[11]),
            feedback_data=feedback_data if isinstance(feedback_data, dict) else {},
        )

    def _parse_status(self, value: str, session_id: str) -> SessionStatus:
        try:
            return SessionStatus(value)
        except ValueError:
            logger.warning(
                "Unknown session status in storage",
                extra={"session_id": session_id, "status": value}
            )
            return SessionStatus.ERROR


class SessionContextRepository(SnowflakeRepository):
    """Repository for `session_contexts`, one row per session."""

    async def upsert_context(self, context: SessionContext) -> None:
        goals = to_variant_param(context.goals)
        challenges = to_variant_param(context.challenges)
        data = to_variant_param(context.context_data)

        await self._write("""
            MERGE INTO session_contexts AS target
            USING (SELECT %s AS session_id) AS source
            ON target.session_id = source.session_id
            WHEN MATCHED THEN UPDATE SET
                relationship_type = %s,
                communication_style = %s,
                relationship_duration = %s,
                goals = PARSE_JSON(%s),
                challenges = PARSE_JSON(%s),
                context_data = PARSE_JSON(%s),
                updated_at = %s
            WHEN NOT MATCHED THEN INSERT (
                session_id, relationship_type, communication_style,
                relationship_duration, goals, challenges, context_data, updated_at
            ) VALUES (%s, %s, %s, %s, PARSE_JSON(%s), PARSE_JSON(%s), PARSE_JSON(%s), %s)
        """, (
            context.session_id,
            context.relationship_type, context.communication_style,
            context.relationship_duration, goals, challenges, data, context.updated_at,
            context.session_id, context.relationship_type, context.communication_style,
            context.relationship_duration, goals, challenges, data, context.updated_at,
        ), "upsert_context")

    async def fetch_context(self, session_id: str) -> Optional[SessionContext]:
        row = await self._fetchone("""
            SELECT
                session_id,
                relationship_type,
                communication_style,
                relationship_duration,
                goals,
                challenges,
                context_data,
                updated_at
            FROM session_contexts
            WHERE session_id = %s
        """, (session_id,))
        if not row:
            return None

        goals = parse_variant_json(row[4])
        challenges = parse_variant_json(row[5])
        data = parse_variant_json(row[6])
        return SessionContext(
            session_id=row[0],
            relationship_type=row[1] or "",
            communication_style=row[2],
            relationship_duration=row[3],
            goals=goals if isinstance(goals, list) else [],
            challenges=challenges if isinstance(challenges, list) else [],
            context_data=data if isinstance(data, dict) else {},
            updated_at=as_utc(row[7]) or utcnow(),
        )
