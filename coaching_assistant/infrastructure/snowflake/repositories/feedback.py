"""
Snowflake repositories for what coaches tell us back.

`user_feedback` holds post-session feedback; `suggestion_interactions`
holds which smart suggestions were picked and whether they helped.
"""

import logging
from typing import Optional

from ....core.coaching.models import FeedbackRecord, SuggestionInteraction
from .base import SnowflakeRepository, as_utc, parse_variant_json, to_variant_param


logger = logging.getLogger(__name__)


class FeedbackRepository(SnowflakeRepository):

    async def insert_feedback(self, record: FeedbackRecord) -> None:
        await self._write("""
            INSERT INTO user_feedback (
                id, user_id, session_id, target_id, rating, suggestions_tried,
                outcome_rating, what_worked_well, what_didnt_work,
                additional_notes, created_at
            )
            SELECT %s, %s, %s, %s, %s, PARSE_JSON(%s), %s, %s, %s, %s, %s
        """, (
            record.id,
            record.coach_id,
            record.session_id,
            record.target_id,
            record.rating,
            to_variant_param(list(record.suggestions_tried)),
            record.outcome_rating,
            record.what_worked_well,
            record.what_didnt_work,
            record.additional_notes,
            record.created_at,
        ), "insert_feedback")

    async def list_feedback(
        self,
        coach_id: str,
        target_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[FeedbackRecord]:
        params: list = [coach_id]
        target_filter = ""
        if target_id:
            target_filter = "AND target_id = %s"
            params.append(target_id)
        limit_clause = ""
        if limit is not None:
            limit_clause = "LIMIT %s"
            params.append(limit)

        rows = await self._fetchall(f"""
            SELECT
                id, user_id, session_id, target_id, rating, created_at,
                suggestions_tried, outcome_rating, what_worked_well,
                what_didnt_work, additional_notes
            FROM user_feedback
            WHERE user_id = %s
            {target_filter}
            ORDER BY created_at DESC
            {limit_clause}
        """, params)

        records = []
        for row in rows:
            tried = parse_variant_json(row[6])
            records.append(FeedbackRecord(
                id=row[0],
                coach_id=row[1],
                session_id=row[2],
                target_id=row[3],
                rating=row[4],
                created_at=as_utc(row[5]),
                suggestions_tried=tuple(s for s in tried if isinstance(s, str)) if isinstance(tried, list) else (),
                outcome_rating=row[7],
                what_worked_well=row[8],
                what_didnt_work=row[9],
                additional_notes=row[10],
            ))
        return records


class InteractionRepository(SnowflakeRepository):

    async def insert_interaction(self, interaction: SuggestionInteraction) -> None:
        await self._write("""
            INSERT INTO suggestion_interactions (
                id, suggestion_id, session_id, user_id, target_id,
                follow_up_context, was_effective, selected_at
            )
            SELECT %s, %s, %s, %s, %s, PARSE_JSON(%s), %s, %s
        """, (
            interaction.id,
            interaction.suggestion_id,
            interaction.session_id,
            interaction.coach_id,
            interaction.target_id,
            to_variant_param(interaction.follow_up_context),
            interaction.was_effective,
            interaction.created_at,
        ), "insert_interaction")

    async def set_effectiveness(self, coach_id: str, suggestion_id: str, was_effective: bool) -> int:
        return await self._write("""
            UPDATE suggestion_interactions SET was_effective = %s
            WHERE suggestion_id = %s AND user_id = %s
        """, (was_effective, suggestion_id, coach_id), "set_effectiveness")
