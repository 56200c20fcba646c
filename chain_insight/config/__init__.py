"""
Configuration management for the chain-insight pipeline.
"""

from .models import (
    AnalysisConfig,
    AppConfig,
    CacheConfig,
    DatabaseConfig,
    LoggingConfig,
    MaintenanceConfig,
    QueryConfig,
)
from .manager import ConfigManager
from .validation import (
    AppConfigValidator,
    LogLevelEnum,
    get_env_var_mappings,
    validate_config_dict,
)

__all__ = [
    # Runtime models
    'AnalysisConfig',
    'AppConfig',
    'CacheConfig',
    'DatabaseConfig',
    'LoggingConfig',
    'MaintenanceConfig',
    'QueryConfig',

    # Manager
    'ConfigManager',

    # Validation
    'AppConfigValidator',
    'LogLevelEnum',
    'get_env_var_mappings',
    'validate_config_dict',
]
