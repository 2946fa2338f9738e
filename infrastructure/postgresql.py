# ============================================================================
# CONTEXT - POSTGRESQL REPOSITORY
# ============================================================================
# STATUS: Core Infrastructure - PostgreSQL connection management
# PURPOSE: Connection and cursor lifecycle for the PostGIS boundary/feature stores
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PostgreSQLRepository
# DEPENDENCIES: psycopg, config
# SCOPE: Shared base class for read (lookup) and write (ingestion) repositories
# PATTERNS: Repository pattern, Per-request connections, Managed identity
# ============================================================================

"""
PostgreSQL Repository - Connection Management

Provides PostgreSQL connection management with support for:
- Password-based authentication (local development)
- Azure Managed Identity authentication (production)
- Per-request connection creation (no pooling)
- Statement timeouts so a slow spatial query cannot pin a worker

Usage:
    from infrastructure.postgresql import PostgreSQLRepository

    repo = PostgreSQLRepository(schema_name='geo')
    with repo._get_cursor() as cursor:
        cursor.execute("SELECT count(*) AS n FROM geo.geoboundaries")
        print(cursor.fetchone()['n'])
"""

import logging
import psycopg
from psycopg.rows import dict_row
from typing import Optional
from contextlib import contextmanager

from config import get_postgres_connection_string

logger = logging.getLogger(__name__)


class PostgreSQLRepository:
    """
    PostgreSQL repository base class with connection management.

    Connection Strategy:
    -------------------
    Each operation creates a NEW connection and closes it immediately after use.
    No connection pooling is used - suitable for serverless Azure Functions
    where connection reuse across requests is not beneficial, and safe for
    concurrent callers because no connection is shared.
    """

    def __init__(self, connection_string: Optional[str] = None,
                 schema_name: str = 'geo',
                 statement_timeout_seconds: Optional[int] = None):
        """
        Initialize PostgreSQL repository.

        Parameters:
        ----------
        connection_string : Optional[str]
            Explicit PostgreSQL connection string. If not provided,
            uses get_postgres_connection_string() from config module.

        schema_name : str
            Database schema holding the lookup tables.

        statement_timeout_seconds : Optional[int]
            Applied to every new connection when set.
        """
        self.schema_name = schema_name
        self.statement_timeout_seconds = statement_timeout_seconds
        self.conn_string = connection_string or get_postgres_connection_string()

        logger.debug(f"PostgreSQLRepository initialized with schema: {self.schema_name}")

    @contextmanager
    def _get_connection(self):
        """
        Context manager for PostgreSQL database connections.

        1. Create connection using connection string
        2. Yield connection to caller
        3. On error: rollback transaction
        4. Always: close connection

        Yields:
        ------
        psycopg.Connection
            Active PostgreSQL connection with dict_row factory.
            Autocommit is OFF by default (explicit commit needed).
        """
        conn = None
        try:
            conn = psycopg.connect(self.conn_string, row_factory=dict_row)
            if self.statement_timeout_seconds:
                conn.execute(f"SET statement_timeout = '{int(self.statement_timeout_seconds)}s'")

            yield conn

        except psycopg.Error as e:
            logger.error(f"❌ PostgreSQL error: {type(e).__name__}: {e}")

            if conn and not conn.closed:
                conn.rollback()

            raise

        finally:
            if conn and not conn.closed:
                conn.close()
                logger.debug("🔒 Connection closed")

    @contextmanager
    def _get_cursor(self, conn=None):
        """
        Context manager for PostgreSQL cursors with auto-transaction handling.

        Transaction Behavior:
        --------------------
        - With conn: Caller controls transaction (no auto-commit)
        - Without conn: Auto-commits on success, auto-rollback on error
        """
        if conn:
            with conn.cursor() as cursor:
                yield cursor
        else:
            with self._get_connection() as conn:
                with conn.cursor() as cursor:
                    yield cursor
                    conn.commit()
