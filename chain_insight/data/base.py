"""
Shared query plumbing of the data access layer.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from chain_insight.config.models import QueryConfig
from chain_insight.database.connection import DatabaseConnection
from chain_insight.utils.error_classification import PipelineError, database_error, timeout_error

logger = logging.getLogger(__name__)


def text_value(value: Any, default: str = "0") -> str:
    """Render a column value as a decimal string, ``default`` when empty."""
    if value is None or value == "":
        return default
    return str(value)


def int_value(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class BaseDataService:
    """
    Base class for the read-only data services.

    Every query runs under its own timeout. Primary queries raise a
    PipelineError (TIMEOUT or DATABASE_ERROR) so raw driver exceptions never
    leave the layer; secondary queries go through ``_run_optional`` which logs
    the failure and returns a fallback instead.
    """

    def __init__(self, connection: DatabaseConnection, config: Optional[QueryConfig] = None):
        """
        Initialize the service.

        Args:
            connection: Shared database connection
            config: Table names and per-query timeouts
        """
        self.connection = connection
        self.config = config or QueryConfig()

    async def _run_query(
        self,
        operation: str,
        sql: str,
        params: Optional[Mapping[str, Any]],
        timeout: float,
        context: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run one bounded query.

        Args:
            operation: Name used in logs and error context
            sql: Parameterized SQL text
            params: Bind parameters
            timeout: Seconds before the query is abandoned
            context: Identifiers added to a raised error

        Returns:
            Rows as dictionaries

        Raises:
            PipelineError: TIMEOUT when the bound is exceeded, DATABASE_ERROR
                for any other query fault
        """
        ctx = dict(context or {})
        ctx.setdefault("operation", operation)
        start_time = time.monotonic()

        try:
            rows = await asyncio.wait_for(self.connection.fetch_all(sql, params), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{operation} exceeded {timeout}s timeout")
            raise PipelineError(timeout_error(operation, ctx))
        except (SQLAlchemyError, OSError, RuntimeError) as e:
            logger.error(f"{operation} failed: {e}")
            raise PipelineError(database_error(str(e), ctx))

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.debug(f"{operation} returned {len(rows)} rows in {elapsed_ms:.0f}ms")
        return rows

    async def _run_optional(
        self,
        operation: str,
        sql: str,
        params: Optional[Mapping[str, Any]],
        timeout: float,
    ) -> Optional[List[Dict[str, Any]]]:
        """Best-effort variant of ``_run_query``; returns None on failure."""
        try:
            return await self._run_query(operation, sql, params, timeout)
        except PipelineError as e:
            logger.warning(f"Could not complete {operation} (non-critical): {e.error.message}")
            return None
