"""
Per-network connection handles, created lazily and reused.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from chain_insight.chains.registry import ChainRegistry, NetworkIdentity
from chain_insight.config.models import DatabaseConfig, QueryConfig
from chain_insight.data.blocks import BlockDataService
from chain_insight.data.transactions import TransactionDataService
from chain_insight.database.connection import DatabaseConnection
from chain_insight.utils.error_classification import PipelineError, invalid_request_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataClient:
    """The data services bound to one connection."""
    transactions: TransactionDataService
    blocks: BlockDataService


@dataclass(frozen=True)
class ConnectionHandle:
    """Query client and data client for one network."""
    network: NetworkIdentity
    query_client: DatabaseConnection
    data_client: DataClient


class ConnectionCache:
    """
    Memoizes one ConnectionHandle per network id.

    All networks share a single pooled DatabaseConnection. The first handle
    created for a network runs a liveness check; a failed check is logged and
    the handle is still returned.
    """

    def __init__(
        self,
        registry: ChainRegistry,
        database_config: Optional[DatabaseConfig] = None,
        query_config: Optional[QueryConfig] = None,
        connection: Optional[DatabaseConnection] = None,
    ):
        """
        Initialize the cache.

        Args:
            registry: Known networks
            database_config: Connection settings, used when no connection is given
            query_config: Tables and timeouts for the data services
            connection: Existing connection to share instead of creating one
        """
        self.registry = registry
        self.database_config = database_config or DatabaseConfig()
        self.query_config = query_config or QueryConfig()
        self._connection = connection
        self._owns_connection = connection is None
        self._handles: Dict[int, ConnectionHandle] = {}
        self._lock = asyncio.Lock()

    async def get_connection_handle(self, network_id: int) -> ConnectionHandle:
        """
        Return the handle for a network, creating it on first use.

        The liveness check of a new handle runs after the lock is released and
        under ``liveness_timeout``, so a slow database never holds up handles of
        other networks.

        Raises:
            PipelineError: CHAIN_ERROR for an unknown network id,
                VALIDATION_ERROR when no database URL is configured
        """
        network = self.registry.require(network_id)

        async with self._lock:
            handle = self._handles.get(network.chain_id)
            if handle is not None:
                return handle

            connection = self._shared_connection()
            handle = ConnectionHandle(
                network=network,
                query_client=connection,
                data_client=DataClient(
                    transactions=TransactionDataService(connection, self.query_config),
                    blocks=BlockDataService(connection, self.query_config),
                ),
            )
            self._handles[network.chain_id] = handle
            logger.info(f"Created connection handle for {network.name} ({network.chain_id})")

        await self._check_liveness(network, connection)
        return handle

    def _shared_connection(self) -> DatabaseConnection:
        if self._connection is None:
            config = self.database_config
            if not config.url and not config.async_url:
                env_url = os.getenv("DATABASE_URL")
                if not env_url:
                    raise PipelineError(invalid_request_error(
                        "database URL is not configured (set database.url or DATABASE_URL)",
                        {"operation": "connection setup"},
                    ))
                config = DatabaseConfig(**{**vars(config), "url": env_url})
            self._connection = DatabaseConnection(config)

        if not self._connection.is_initialized:
            self._connection.initialize()
        return self._connection

    async def _check_liveness(self, network: NetworkIdentity, connection: DatabaseConnection) -> bool:
        timeout = self.query_config.liveness_timeout
        try:
            alive = await asyncio.wait_for(connection.health_check_async(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Database liveness check for {network.name} exceeded {timeout}s, continuing")
            return False

        if alive:
            logger.info(f"Database connection verified for {network.name}")
        else:
            logger.warning(f"Database liveness check failed for {network.name}, continuing")
        return alive

    def cached_ids(self) -> List[int]:
        return list(self._handles)

    async def clear(self) -> None:
        """Drop cached handles and dispose the connection this cache created."""
        async with self._lock:
            self._handles.clear()
            if self._connection is not None and self._owns_connection:
                await self._connection.close_async()
                self._connection = None
        logger.info("Connection handle cache cleared")
