"""
Snowflake database connection management.

Provides the connection factory and context manager for Snowflake
operations. Mock mode doesn't come through here at all: it swaps the
repositories for the in-memory stores in infrastructure.memory.

Using the repository pattern means most code never touches this module
directly - it goes through the repositories, which handle the translation
between domain models and database rows.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional, Protocol

import snowflake.connector
from cryptography.hazmat.primitives import serialization


logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a fake without
    opening a real connection.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "COACHING_ASSISTANT"
    schema: str = "PUBLIC"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_path: str) -> bytes:
    """
    Load private key from file for key-pair authentication.

    Snowflake requires the private key as DER bytes, not a file path.
    """
    with open(key_path, "rb") as key_file:
        private_key = serialization.load_pem_private_key(
            key_file.read(),
            password=None,
        )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _connect(config: SnowflakeConfig):
    connect_params = {
        "account": config.account,
        "user": config.user,
        "database": config.database,
        "schema": config.schema,
        "warehouse": config.warehouse,
        "role": config.role,
        "client_session_keep_alive": True,
    }

    if config.private_key_path:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params["private_key"] = _load_private_key(config.private_key_path)
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params["password"] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or private_key_path must be provided"
        )

    try:
        return snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If private_key_path is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    conn = _connect(config)
    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )
    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )
