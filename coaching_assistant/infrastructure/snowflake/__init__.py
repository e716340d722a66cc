"""Snowflake persistence: connection management and repositories."""
