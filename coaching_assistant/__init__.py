"""
Coaching Assistant - backend for AI-assisted coaching conversations.

This package contains the complete application:
- core: Framework-agnostic session lifecycle, validation and suggestion logic
- infrastructure: External service integrations (Claude, Snowflake, billing)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
