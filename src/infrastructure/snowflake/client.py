"""
Snowflake connections for the recommendation repository.

Only SnowflakeRecommendationRepository and the import script open
connections; everything else goes through the RecommendationStore
protocol. In mock mode nothing here runs.

Two authentication modes are supported. Key-pair auth takes precedence
when a private key is configured (file path locally, base64 in
deployment); otherwise the password is used.
"""

import base64
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from .repositories.recommendations import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when a Snowflake connection can't be opened."""
    pass


def _der_from_pem(pem_bytes: bytes) -> bytes:
    """Re-encode an unencrypted PEM key as the PKCS8 DER bytes the connector wants."""
    from cryptography.hazmat.primitives import serialization

    key = serialization.load_pem_private_key(pem_bytes, password=None)
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _load_private_key(config: SnowflakeConfig) -> Optional[bytes]:
    if config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            return _der_from_pem(key_file.read())
    if config.private_key_base64:
        return _der_from_pem(base64.b64decode(config.private_key_base64))
    return None


def _connect_params(config: SnowflakeConfig) -> dict[str, Any]:
    """Connector keyword arguments, including whichever credential applies."""
    params: dict[str, Any] = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'client_session_keep_alive': True,
    }
    if config.role:
        params['role'] = config.role

    private_key = _load_private_key(config)
    if private_key:
        logger.info("Authenticating to Snowflake with key pair")
        params['private_key'] = private_key
    elif config.password:
        logger.info("Authenticating to Snowflake with password")
        params['password'] = config.password
    else:
        raise SnowflakeConnectionError("Snowflake needs a password or a private key")

    return params


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Iterator[SnowflakeConnection]:
    """
    Open a connection for the duration of a `with` block.

    The connection is always closed on exit. Connector database errors
    raised while connecting or inside the block surface as
    SnowflakeConnectionError.
    """
    import snowflake.connector

    params = _connect_params(config)
    conn = None
    try:
        conn = snowflake.connector.connect(**params)
        logger.debug(
            "Opened Snowflake connection",
            extra={"account": config.account, "database": config.database, "schema": config.schema}
        )
        yield conn
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake database error",
            extra={"account": config.account, "error": str(e)}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e
    finally:
        if conn is not None:
            try:
                conn.close()
            except Exception as e:
                logger.warning("Failed to close Snowflake connection", extra={"error": str(e)})


@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
) -> Iterator[SnowflakeConnection]:
    """Same as get_snowflake_connection, but refuses a missing config up front."""
    if config is None:
        raise ValueError("config is required to connect to Snowflake")

    with get_snowflake_connection(config) as conn:
        yield conn
