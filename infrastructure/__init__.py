# ============================================================================
# CONTEXT - INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Core Infrastructure - Database access
# PURPOSE: Shared infrastructure components for the geo lookup package
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PostgreSQLRepository
# DEPENDENCIES: psycopg, config
# ============================================================================

"""
Infrastructure Module

Provides PostgreSQL connection management (PostgreSQLRepository) shared by the
boundary/feature read path and the boundary ingestion write path.
"""

from .postgresql import PostgreSQLRepository

__version__ = "1.0.0"
__all__ = [
    "PostgreSQLRepository"
]
