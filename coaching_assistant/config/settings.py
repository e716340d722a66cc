"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode swaps the Snowflake repositories for in-memory stores so the
whole API can run locally without a database.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Coaching Assistant API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. Using a list enables key rotation without downtime."
    )

    # Anthropic Configuration
    anthropic_api_key: str = Field(
        default="",
        description="Claude API key for the coaching provider."
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for replies, strategist analysis and smart suggestions."
    )
    anthropic_max_tokens: int = Field(
        default=2048,
        description="Max tokens for Claude responses."
    )
    anthropic_temperature: float = Field(
        default=0.7,
        description="Temperature for Claude."
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="COACHING_ASSISTANT",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="PUBLIC",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory stores instead of Snowflake. Enables local dev without DB."
    )

    # Session behaviour
    session_load_timeout_seconds: float = Field(
        default=15.0,
        description="Deadline for the detail-aware session loader."
    )
    simple_session_load_timeout_seconds: float = Field(
        default=10.0,
        description="Deadline for the simple session loader."
    )
    strategist_timeout_seconds: float = Field(
        default=90.0,
        description="Deadline for a strategist analysis call before the session rolls back."
    )
    smart_suggestion_window: int = Field(
        default=10,
        description="How many trailing messages are sent when requesting smart suggestions."
    )

    # Subscription (billing edge functions)
    subscription_functions_url: str = Field(
        default="",
        description="Base URL of the billing functions (check-subscription, create-checkout, customer-portal)."
    )
    subscription_functions_key: str = Field(
        default="",
        description="Bearer token for the billing functions."
    )
    subscription_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for billing calls."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        if not self.subscription_functions_url:
            missing.append("SUBSCRIPTION_FUNCTIONS_URL")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
