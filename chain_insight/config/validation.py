"""
Configuration validation using Pydantic.
"""

import re
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from chain_insight.config.models import (
    AnalysisConfig,
    AppConfig,
    CacheConfig,
    DatabaseConfig,
    LoggingConfig,
    MaintenanceConfig,
    QueryConfig,
)

_TABLE_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$')


class LogLevelEnum(str, Enum):
    """Supported log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def validate_interval(value: str) -> str:
    """Validate interval format (e.g. '30s', '10m', '1h', '1d')."""
    if not value:
        raise ValueError("Interval cannot be empty")

    match = re.match(r'^(\d+)([smhd])$', value)
    if not match:
        raise ValueError(f"Invalid interval format: {value}. Expected format: number + unit (s/m/h/d)")

    number, unit = match.groups()
    number = int(number)
    if number < 1:
        raise ValueError(f"Interval must be positive: {value}")
    if unit == 's' and number < 10:
        raise ValueError(f"Second interval must be at least 10: {value}")
    if unit == 'd' and number > 7:
        raise ValueError(f"Day interval must be at most 7: {value}")

    return value


class DatabaseConfigValidator(BaseModel):
    """Pydantic model for database configuration validation."""
    url: Optional[str] = Field(default=None, description="Database connection URL")
    async_url: Optional[str] = Field(default=None, description="Explicit async driver URL")
    pool_size: int = Field(default=10, ge=1, le=100, description="Connection pool size")
    max_overflow: int = Field(default=20, ge=0, le=200, description="Pool overflow connections")
    echo: bool = Field(default=False, description="Enable SQL query logging")
    timeout: int = Field(default=30, ge=1, le=300, description="Connection timeout in seconds")

    @field_validator('url', 'async_url')
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if v is None or v == "":
            return None

        valid_prefixes = [
            'sqlite:///', 'sqlite+aiosqlite:///', 'postgres://',
            'postgresql://', 'postgresql+asyncpg://',
        ]
        if not any(v.startswith(prefix) for prefix in valid_prefixes):
            raise ValueError(f"Unsupported database URL format: {v}")

        return v


class QueryConfigValidator(BaseModel):
    """Pydantic model for data access configuration validation."""
    transaction_table: str = Field(default="source_1", description="Transaction table")
    block_table: str = Field(default="raw_1", description="Block table")
    logs_table: Optional[str] = Field(default=None, description="Optional receipt log table")
    transaction_timeout: float = Field(default=3.0, gt=0, le=60, description="Transaction query timeout")
    block_timeout: float = Field(default=3.0, gt=0, le=60, description="Block query timeout")
    block_context_timeout: float = Field(default=2.0, gt=0, le=60, description="Block context timeout")
    latest_block_timeout: float = Field(default=2.0, gt=0, le=60, description="Latest block lookup timeout")
    sample_timeout: float = Field(default=2.0, gt=0, le=60, description="Sample transaction timeout")
    logs_timeout: float = Field(default=2.0, gt=0, le=60, description="Receipt log timeout")
    history_timeout: float = Field(default=3.0, gt=0, le=60, description="Address/recent block timeout")
    activity_timeout: float = Field(default=2.0, gt=0, le=60, description="Address activity count timeout")
    liveness_timeout: float = Field(default=2.0, gt=0, le=60, description="Connection liveness check timeout")
    sample_limit: int = Field(default=20, ge=1, le=500, description="Sample transactions per block")

    @field_validator('transaction_table', 'block_table', 'logs_table')
    @classmethod
    def validate_table_name(cls, v):
        """Table names are interpolated into SQL, so only plain identifiers pass."""
        if v is None:
            return v
        if not _TABLE_NAME.match(v):
            raise ValueError(f"Invalid table name: {v}")
        return v


class CacheConfigValidator(BaseModel):
    """Pydantic model for cache configuration validation."""
    max_size: int = Field(default=1000, ge=1, le=1_000_000, description="Maximum cache entries")
    eviction_fraction: float = Field(default=0.2, gt=0, lt=1, description="Share evicted at capacity")
    transaction_freshness_minutes: float = Field(default=10, gt=0)
    transaction_fresh_ttl_minutes: float = Field(default=5, gt=0)
    transaction_settled_ttl_minutes: float = Field(default=60, gt=0)
    block_freshness_minutes: float = Field(default=30, gt=0)
    block_fresh_ttl_minutes: float = Field(default=5, gt=0)
    block_settled_ttl_minutes: float = Field(default=30, gt=0)


class MaintenanceConfigValidator(BaseModel):
    """Pydantic model for maintenance scheduling validation."""
    enabled: bool = Field(default=True, description="Run the background sweep")
    sweep_interval: str = Field(default="10m", description="Expired entry sweep interval")
    stats_log_interval: str = Field(default="1h", description="Minimum gap between stats logs")
    timezone: str = Field(default="UTC", description="Scheduler timezone")

    @field_validator('sweep_interval', 'stats_log_interval')
    @classmethod
    def validate_interval_format(cls, v):
        return validate_interval(v)


class LoggingConfigValidator(BaseModel):
    """Pydantic model for logging configuration validation."""
    level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Root log level")
    file: Optional[str] = Field(default=None, description="Rotating log file path")
    structured: bool = Field(default=True, description="JSON log output")
    console: bool = Field(default=True, description="Log to stdout")
    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1024, description="Bytes before rotation")
    backup_count: int = Field(default=5, ge=0, le=100, description="Rotated files kept")

    model_config = {
        "use_enum_values": True,
        "validate_default": True
    }

    @field_validator('level', mode='before')
    @classmethod
    def normalize_level(cls, v):
        return v.upper() if isinstance(v, str) else v


class AnalysisConfigValidator(BaseModel):
    """Pydantic model for analysis options validation."""
    include_network_metrics: bool = Field(default=True, description="Query recent blocks for network health")
    context_blocks: int = Field(default=10, ge=2, le=100, description="Recent blocks used as network context")
    address_history_limit: int = Field(default=10, ge=1, le=1000, description="Sender history rows fetched")


class AppConfigValidator(BaseModel):
    """Main configuration validator using Pydantic."""
    database: DatabaseConfigValidator = Field(default_factory=DatabaseConfigValidator)
    queries: QueryConfigValidator = Field(default_factory=QueryConfigValidator)
    cache: CacheConfigValidator = Field(default_factory=CacheConfigValidator)
    maintenance: MaintenanceConfigValidator = Field(default_factory=MaintenanceConfigValidator)
    logging: LoggingConfigValidator = Field(default_factory=LoggingConfigValidator)
    analysis: AnalysisConfigValidator = Field(default_factory=AnalysisConfigValidator)

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "use_enum_values": True
    }

    @model_validator(mode='after')
    def validate_ttl_ordering(self):
        """Settled entries must not expire sooner than fresh ones."""
        if self.cache.transaction_settled_ttl_minutes < self.cache.transaction_fresh_ttl_minutes:
            raise ValueError("transaction_settled_ttl_minutes must be >= transaction_fresh_ttl_minutes")
        if self.cache.block_settled_ttl_minutes < self.cache.block_fresh_ttl_minutes:
            raise ValueError("block_settled_ttl_minutes must be >= block_fresh_ttl_minutes")
        return self

    def to_app_config(self) -> AppConfig:
        """Convert to the dataclass configuration used at runtime."""
        return AppConfig(
            database=DatabaseConfig(**self.database.model_dump()),
            queries=QueryConfig(**self.queries.model_dump()),
            cache=CacheConfig(**self.cache.model_dump()),
            maintenance=MaintenanceConfig(**self.maintenance.model_dump()),
            logging=LoggingConfig(**self.logging.model_dump()),
            analysis=AnalysisConfig(**self.analysis.model_dump()),
        )


def validate_config_dict(config_data: Dict[str, Any]) -> AppConfigValidator:
    """
    Validate configuration dictionary using Pydantic.

    Args:
        config_data: Configuration dictionary

    Returns:
        Validated configuration object

    Raises:
        ValueError: If validation fails
    """
    try:
        return AppConfigValidator(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def get_env_var_mappings() -> Dict[str, str]:
    """
    Get mapping of environment variables to configuration paths.

    Returns:
        Dictionary mapping environment variable names to config paths
    """
    return {
        # Database configuration
        'DATABASE_URL': 'database.url',
        'CHAIN_INSIGHT_DB_URL': 'database.url',
        'CHAIN_INSIGHT_DB_ASYNC_URL': 'database.async_url',
        'CHAIN_INSIGHT_DB_POOL_SIZE': 'database.pool_size',
        'CHAIN_INSIGHT_DB_ECHO': 'database.echo',
        'CHAIN_INSIGHT_DB_TIMEOUT': 'database.timeout',

        # Query configuration
        'CHAIN_INSIGHT_TRANSACTION_TABLE': 'queries.transaction_table',
        'CHAIN_INSIGHT_BLOCK_TABLE': 'queries.block_table',
        'CHAIN_INSIGHT_LOGS_TABLE': 'queries.logs_table',
        'CHAIN_INSIGHT_QUERY_TIMEOUT': 'queries.transaction_timeout',

        # Cache configuration
        'CHAIN_INSIGHT_CACHE_MAX_SIZE': 'cache.max_size',

        # Maintenance configuration
        'CHAIN_INSIGHT_MAINTENANCE_ENABLED': 'maintenance.enabled',
        'CHAIN_INSIGHT_SWEEP_INTERVAL': 'maintenance.sweep_interval',

        # Logging configuration
        'CHAIN_INSIGHT_LOG_LEVEL': 'logging.level',
        'CHAIN_INSIGHT_LOG_FILE': 'logging.file',
        'CHAIN_INSIGHT_LOG_STRUCTURED': 'logging.structured',

        # Analysis configuration
        'CHAIN_INSIGHT_CONTEXT_BLOCKS': 'analysis.context_blocks',
    }
