"""
Configuration data models and validation.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from chain_insight.cache.smart_cache import MINUTE, CacheKind, ExpiryPolicy

_IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$')
_INTERVAL_PATTERN = re.compile(r'^(\d+)([smhd])$')


@dataclass
class DatabaseConfig:
    """Database connection configuration."""
    url: Optional[str] = None
    async_url: Optional[str] = None
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False
    timeout: int = 30

    def resolve_async_url(self) -> Optional[str]:
        """
        URL for the async engine.

        An explicit ``async_url`` wins; otherwise plain PostgreSQL and SQLite
        URLs are mapped onto the asyncpg and aiosqlite drivers.
        """
        if self.async_url:
            return self.async_url
        if not self.url:
            return None
        if self.url.startswith("postgres://"):
            return "postgresql+asyncpg://" + self.url[len("postgres://"):]
        if self.url.startswith("postgresql://"):
            return "postgresql+asyncpg://" + self.url[len("postgresql://"):]
        if self.url.startswith("sqlite:///"):
            return "sqlite+aiosqlite:///" + self.url[len("sqlite:///"):]
        return self.url


@dataclass
class QueryConfig:
    """Tables and per-query timeouts (seconds) of the data access layer."""
    transaction_table: str = "source_1"
    block_table: str = "raw_1"
    logs_table: Optional[str] = None
    transaction_timeout: float = 3.0
    block_timeout: float = 3.0
    block_context_timeout: float = 2.0
    latest_block_timeout: float = 2.0
    sample_timeout: float = 2.0
    logs_timeout: float = 2.0
    history_timeout: float = 3.0
    activity_timeout: float = 2.0
    liveness_timeout: float = 2.0
    sample_limit: int = 20


@dataclass
class CacheConfig:
    """Analysis cache sizing and expiry (minutes)."""
    max_size: int = 1000
    eviction_fraction: float = 0.2
    transaction_freshness_minutes: float = 10
    transaction_fresh_ttl_minutes: float = 5
    transaction_settled_ttl_minutes: float = 60
    block_freshness_minutes: float = 30
    block_fresh_ttl_minutes: float = 5
    block_settled_ttl_minutes: float = 30

    def to_policies(self) -> Dict[CacheKind, ExpiryPolicy]:
        return {
            CacheKind.TRANSACTION: ExpiryPolicy(
                freshness_threshold=self.transaction_freshness_minutes * MINUTE,
                fresh_ttl=self.transaction_fresh_ttl_minutes * MINUTE,
                settled_ttl=self.transaction_settled_ttl_minutes * MINUTE,
            ),
            CacheKind.BLOCK: ExpiryPolicy(
                freshness_threshold=self.block_freshness_minutes * MINUTE,
                fresh_ttl=self.block_fresh_ttl_minutes * MINUTE,
                settled_ttl=self.block_settled_ttl_minutes * MINUTE,
            ),
        }


@dataclass
class MaintenanceConfig:
    """Background cache maintenance."""
    enabled: bool = True
    sweep_interval: str = "10m"
    stats_log_interval: str = "1h"
    timezone: str = "UTC"


@dataclass
class LoggingConfig:
    """Logging output configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    structured: bool = True
    console: bool = True
    max_file_size: int = 10 * 1024 * 1024
    backup_count: int = 5


@dataclass
class AnalysisConfig:
    """Analysis engine options."""
    include_network_metrics: bool = True
    context_blocks: int = 10
    address_history_limit: int = 10


@dataclass
class AppConfig:
    """Main configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    queries: QueryConfig = field(default_factory=QueryConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    maintenance: MaintenanceConfig = field(default_factory=MaintenanceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    def validate(self) -> List[str]:
        """
        Validate configuration settings.

        Returns:
            List of validation errors, empty if valid
        """
        errors = []

        for label, table in (
            ("transaction_table", self.queries.transaction_table),
            ("block_table", self.queries.block_table),
            ("logs_table", self.queries.logs_table),
        ):
            if table is not None and not _IDENTIFIER_PATTERN.match(table):
                errors.append(f"Invalid table name for {label}: {table}")

        for label, timeout in (
            ("transaction_timeout", self.queries.transaction_timeout),
            ("block_timeout", self.queries.block_timeout),
            ("block_context_timeout", self.queries.block_context_timeout),
            ("latest_block_timeout", self.queries.latest_block_timeout),
            ("sample_timeout", self.queries.sample_timeout),
            ("logs_timeout", self.queries.logs_timeout),
            ("activity_timeout", self.queries.activity_timeout),
            ("liveness_timeout", self.queries.liveness_timeout),
            ("history_timeout", self.queries.history_timeout),
        ):
            if timeout <= 0:
                errors.append(f"Query timeout {label} must be positive")

        if self.cache.max_size < 1:
            errors.append("Cache max_size must be at least 1")
        if not 0 < self.cache.eviction_fraction < 1:
            errors.append("Cache eviction_fraction must be between 0 and 1")

        for interval in (self.maintenance.sweep_interval, self.maintenance.stats_log_interval):
            if not self._is_valid_interval(interval):
                errors.append(f"Invalid interval format: {interval}")

        if self.database.pool_size <= 0:
            errors.append("Database pool size must be positive")

        if self.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Invalid log level: {self.logging.level}")

        return errors

    def _is_valid_interval(self, interval: str) -> bool:
        """Check interval format (e.g. '30s', '10m', '1h', '1d')."""
        match = _INTERVAL_PATTERN.match(interval or "")
        return bool(match) and int(match.group(1)) > 0
