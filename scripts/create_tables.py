#!/usr/bin/env python3
"""
Create the Coaching Assistant tables in Snowflake.

Prints the DDL by default; pass --apply to run it against the database
configured in .env. Every statement is CREATE TABLE IF NOT EXISTS, so
re-running is safe.

Usage:
    python scripts/create_tables.py            # print DDL
    python scripts/create_tables.py --apply    # execute it

Requires:
    - .env file with Snowflake credentials (for --apply)
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from coaching_assistant.api.dependencies import snowflake_config  # noqa: E402
from coaching_assistant.config.settings import get_settings  # noqa: E402
from coaching_assistant.infrastructure.snowflake.client import (  # noqa: E402
    SnowflakeConnectionError,
    get_snowflake_connection,
)

logger = logging.getLogger("create_tables")


TABLES: dict[str, str] = {
    "targets": """
        CREATE TABLE IF NOT EXISTS targets (
            id VARCHAR PRIMARY KEY,
            user_id VARCHAR NOT NULL,
            target_name VARCHAR NOT NULL,
            is_favorite BOOLEAN DEFAULT FALSE,
            created_at TIMESTAMP_TZ NOT NULL
        )
    """,
    "coaching_sessions": """
        CREATE TABLE IF NOT EXISTS coaching_sessions (
            id VARCHAR PRIMARY KEY,
            user_id VARCHAR NOT NULL,
            target_id VARCHAR NOT NULL,
            status VARCHAR NOT NULL,
            raw_chat_history VARIANT,
            strategist_output VARIANT,
            case_file_data VARIANT,
            parent_session_id VARCHAR,
            is_continued BOOLEAN DEFAULT FALSE,
            feedback_rating INTEGER,
            feedback_submitted_at TIMESTAMP_TZ,
            feedback_data VARIANT,
            created_at TIMESTAMP_TZ NOT NULL,
            updated_at TIMESTAMP_TZ
        )
    """,
    "session_contexts": """
        CREATE TABLE IF NOT EXISTS session_contexts (
            session_id VARCHAR PRIMARY KEY,
            relationship_type VARCHAR NOT NULL,
            communication_style VARCHAR,
            relationship_duration VARCHAR,
            goals VARIANT,
            challenges VARIANT,
            context_data VARIANT,
            updated_at TIMESTAMP_TZ NOT NULL
        )
    """,
    "user_feedback": """
        CREATE TABLE IF NOT EXISTS user_feedback (
            id VARCHAR PRIMARY KEY,
            user_id VARCHAR NOT NULL,
            session_id VARCHAR NOT NULL,
            target_id VARCHAR NOT NULL,
            rating INTEGER NOT NULL,
            suggestions_tried VARIANT,
            outcome_rating INTEGER,
            what_worked_well VARCHAR,
            what_didnt_work VARCHAR,
            additional_notes VARCHAR,
            created_at TIMESTAMP_TZ NOT NULL
        )
    """,
    "suggestion_interactions": """
        CREATE TABLE IF NOT EXISTS suggestion_interactions (
            id VARCHAR PRIMARY KEY,
            suggestion_id VARCHAR NOT NULL,
            session_id VARCHAR NOT NULL,
            user_id VARCHAR NOT NULL,
            target_id VARCHAR NOT NULL,
            follow_up_context VARIANT,
            was_effective BOOLEAN,
            selected_at TIMESTAMP_TZ NOT NULL
        )
    """,
    "follow_up_triggers": """
        CREATE TABLE IF NOT EXISTS follow_up_triggers (
            id VARCHAR PRIMARY KEY,
            session_id VARCHAR NOT NULL,
            target_id VARCHAR NOT NULL,
            trigger_type VARCHAR NOT NULL,
            question_text VARCHAR NOT NULL,
            context_reference VARIANT,
            is_triggered BOOLEAN DEFAULT FALSE,
            created_at TIMESTAMP_TZ NOT NULL,
            triggered_at TIMESTAMP_TZ
        )
    """,
    "notifications": """
        CREATE TABLE IF NOT EXISTS notifications (
            id VARCHAR PRIMARY KEY,
            user_id VARCHAR NOT NULL,
            title VARCHAR NOT NULL,
            message VARCHAR NOT NULL,
            type VARCHAR DEFAULT 'info',
            is_read BOOLEAN DEFAULT FALSE,
            created_at TIMESTAMP_TZ NOT NULL
        )
    """,
}


def apply_ddl(statements: dict[str, str]) -> None:
    settings = get_settings()
    with get_snowflake_connection(snowflake_config(settings)) as conn:
        cursor = conn.cursor()
        try:
            for name, ddl in statements.items():
                cursor.execute(ddl)
                print(f"  ✓ {name}")
        finally:
            cursor.close()
        conn.commit()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create Coaching Assistant tables in Snowflake")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Execute the DDL instead of printing it",
    )
    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    if not args.apply:
        for ddl in TABLES.values():
            print(ddl.strip() + ";\n")
        return 0

    print(f"Creating {len(TABLES)} tables...")
    try:
        apply_ddl(TABLES)
    except SnowflakeConnectionError as e:
        logger.error("Could not connect to Snowflake", extra={"error": str(e)})
        return 1

    print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
