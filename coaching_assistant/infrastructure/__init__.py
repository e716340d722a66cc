"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- anthropic: Claude-backed coaching provider
- snowflake: Database persistence
- memory: In-memory stores for mock mode and tests
- subscription: Billing functions over HTTP

These wrappers translate between external formats and our domain models.
"""
