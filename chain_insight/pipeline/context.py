"""
Explicitly constructed application context shared by request handlers.
"""

import logging
from typing import Awaitable, Callable, Optional

from chain_insight.analysis.engine import AnalysisEngine
from chain_insight.cache.smart_cache import SmartCache
from chain_insight.chains.connections import ConnectionCache
from chain_insight.chains.registry import ChainRegistry
from chain_insight.config.models import AppConfig
from chain_insight.database.connection import DatabaseConnection
from chain_insight.formatting.formatter import AnalysisFormatter
from chain_insight.scheduling.maintenance import CacheMaintenanceScheduler
from chain_insight.utils.error_classification import ErrorClassifier

logger = logging.getLogger(__name__)

# (system prompt, user message) -> generated report
TextGenerator = Callable[[str, str], Awaitable[str]]


class AnalysisContext:
    """
    Everything a request needs, owned in one place.

    The registry, connection cache and analysis cache are the only shared
    state; they live here instead of in module globals so each context (and
    each test) gets its own. ``start()`` and ``close()`` bind the context to
    the process lifecycle.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: ChainRegistry,
        connections: ConnectionCache,
        cache: SmartCache,
        classifier: ErrorClassifier,
        engine: AnalysisEngine,
        formatter: AnalysisFormatter,
        text_generator: Optional[TextGenerator] = None,
        scheduler: Optional[CacheMaintenanceScheduler] = None,
    ):
        self.config = config
        self.registry = registry
        self.connections = connections
        self.cache = cache
        self.classifier = classifier
        self.engine = engine
        self.formatter = formatter
        self.text_generator = text_generator
        self.scheduler = scheduler
        self._started = False

    @classmethod
    def from_config(
        cls,
        config: Optional[AppConfig] = None,
        registry: Optional[ChainRegistry] = None,
        connection: Optional[DatabaseConnection] = None,
        text_generator: Optional[TextGenerator] = None,
        cache: Optional[SmartCache] = None,
    ) -> 'AnalysisContext':
        """
        Build a context from configuration.

        Args:
            config: Application configuration, defaults when omitted
            registry: Known networks, the built-in Hyperliquid networks when omitted
            connection: Existing database connection to share
            text_generator: Async callable producing a report from a system
                prompt and a message
            cache: Cache to use instead of one sized from ``config.cache``

        Returns:
            A context that has not been started yet
        """
        config = config or AppConfig()
        registry = registry or ChainRegistry()
        cache = cache or SmartCache(
            max_size=config.cache.max_size,
            eviction_fraction=config.cache.eviction_fraction,
            policies=config.cache.to_policies(),
        )
        scheduler = CacheMaintenanceScheduler(cache, config.maintenance) if config.maintenance.enabled else None

        return cls(
            config=config,
            registry=registry,
            connections=ConnectionCache(registry, config.database, config.queries, connection),
            cache=cache,
            classifier=ErrorClassifier(),
            engine=AnalysisEngine(config=config.analysis),
            formatter=AnalysisFormatter(),
            text_generator=text_generator,
            scheduler=scheduler,
        )

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start background maintenance. Safe to call more than once."""
        if self._started:
            return
        if self.scheduler is not None:
            await self.scheduler.start()
        self._started = True
        logger.info(f"Analysis context started for networks {self.registry.supported_ids()}")

    async def close(self) -> None:
        """Stop background maintenance and release database connections."""
        if self.scheduler is not None and self.scheduler.is_running:
            await self.scheduler.stop()
        await self.connections.clear()
        self._started = False
        logger.info("Analysis context closed")

    async def __aenter__(self) -> 'AnalysisContext':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()
