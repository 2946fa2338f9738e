# ============================================================================
# CONTEXT - APPLICATION CONFIGURATION
# ============================================================================
# STATUS: Core Infrastructure - Configuration Management
# PURPOSE: PostGIS connection settings for the boundary and feature stores
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: AppConfig, get_app_config, get_postgres_connection_string
# DEPENDENCIES: pydantic-settings, azure-identity
# SOURCE: Environment variables, .env file, Azure managed identity
# PATTERNS: Singleton pattern for config, lazy import of credentials
# ============================================================================

"""
Application Configuration Module

Provides the PostgreSQL/PostGIS connection string used by every repository.

Authentication Modes:
    1. Password-based (local development):
       - Requires: POSTGIS_HOST, POSTGIS_DATABASE, POSTGIS_USER, POSTGIS_PASSWORD
       - Use when: USE_MANAGED_IDENTITY=false or not set

    2. Managed Identity (Azure production):
       - Requires: System-assigned managed identity enabled
       - Use when: USE_MANAGED_IDENTITY=true

Usage:
    from config import get_postgres_connection_string

    conn = psycopg.connect(get_postgres_connection_string())
"""

import logging
from typing import Optional
from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Scope for Azure Database for PostgreSQL AAD tokens
POSTGRES_AAD_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"


class AppConfig(BaseSettings):
    """
    Application-wide configuration loaded from environment variables.

    Attributes:
        postgis_host: PostgreSQL server hostname
        postgis_port: PostgreSQL server port
        postgis_database: Database name
        postgis_user: Database username
        postgis_password: Database password (optional with managed identity)
        postgis_sslmode: libpq sslmode (require for Azure, disable for local docker)
        use_managed_identity: Enable Azure managed identity authentication
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    postgis_host: str = Field(..., description="PostgreSQL hostname")
    postgis_port: int = Field(default=5432, description="PostgreSQL port")
    postgis_database: str = Field(..., description="Database name")
    postgis_user: str = Field(..., description="Database username")
    postgis_password: Optional[str] = Field(default=None, description="Database password")
    postgis_sslmode: str = Field(default="require", description="libpq sslmode")

    use_managed_identity: bool = Field(
        default=False,
        description="Use Azure managed identity for authentication"
    )

    @model_validator(mode="after")
    def validate_password(self) -> "AppConfig":
        """Ensure password is provided when not using managed identity."""
        if not self.use_managed_identity and not self.postgis_password:
            raise ValueError(
                "POSTGIS_PASSWORD is required when USE_MANAGED_IDENTITY=false"
            )
        return self


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Get singleton application configuration instance.

    Raises:
        ValidationError: If required environment variables are missing
    """
    return AppConfig()


def get_postgres_connection_string(config: Optional[AppConfig] = None) -> str:
    """
    Generate PostgreSQL connection string based on authentication mode.

    Args:
        config: Explicit configuration (defaults to the environment singleton)

    Returns:
        str: PostgreSQL connection URI (psycopg format)
    """
    config = config or get_app_config()

    if config.use_managed_identity:
        password = _acquire_managed_identity_token(config)
    else:
        # URL-encode password to handle special characters (e.g., @ symbols)
        password = quote_plus(config.postgis_password)

    logger.debug(f"Building connection string for {config.postgis_host}")

    return (
        f"postgresql://{config.postgis_user}:{password}"
        f"@{config.postgis_host}:{config.postgis_port}"
        f"/{config.postgis_database}"
        f"?sslmode={config.postgis_sslmode}"
    )


def _acquire_managed_identity_token(config: AppConfig) -> str:
    """
    Acquire an Azure AD access token to use as the database password.

    Note:
        Tokens live roughly one hour. Connections are opened per request, so
        every new connection string carries a fresh token.
    """
    logger.info(f"Acquiring managed identity token for {config.postgis_host}")

    try:
        from azure.identity import DefaultAzureCredential
    except ImportError:
        logger.error("azure-identity package not installed")
        raise ValueError(
            "Managed identity requires azure-identity package. "
            "Install with: pip install azure-identity"
        )

    credential = DefaultAzureCredential()
    token = credential.get_token(POSTGRES_AAD_SCOPE)
    logger.info("✅ Successfully acquired managed identity token")
    return token.token
