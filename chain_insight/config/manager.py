"""
Configuration manager with hot-reloading support.
"""

import hashlib
import json
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from chain_insight.config.models import AppConfig
from chain_insight.config.validation import get_env_var_mappings, validate_config_dict

logger = logging.getLogger(__name__)

_INT_ENV_VARS = {
    'CHAIN_INSIGHT_DB_POOL_SIZE',
    'CHAIN_INSIGHT_DB_TIMEOUT',
    'CHAIN_INSIGHT_CACHE_MAX_SIZE',
    'CHAIN_INSIGHT_CONTEXT_BLOCKS',
}
_FLOAT_ENV_VARS = {'CHAIN_INSIGHT_QUERY_TIMEOUT'}
_BOOL_ENV_VARS = {
    'CHAIN_INSIGHT_DB_ECHO',
    'CHAIN_INSIGHT_MAINTENANCE_ENABLED',
    'CHAIN_INSIGHT_LOG_STRUCTURED',
}


class ConfigFileHandler(FileSystemEventHandler):
    """File system event handler for configuration file changes."""

    def __init__(self, config_manager: 'ConfigManager'):
        self.config_manager = config_manager
        self._last_reload_time = 0.0
        self._reload_debounce = 1.0

    def _schedule_reload(self, path: str) -> None:
        if os.path.abspath(path) != self.config_manager.config_file_path:
            return
        current_time = time.time()
        if current_time - self._last_reload_time > self._reload_debounce:
            self._last_reload_time = current_time
            # Small delay so the writer has finished
            threading.Timer(0.1, self.config_manager._reload_config).start()

    def on_modified(self, event):
        if not event.is_directory:
            self._schedule_reload(event.src_path)

    def on_moved(self, event):
        """Atomic writes show up as a move onto the config path."""
        if not event.is_directory:
            self._schedule_reload(event.dest_path)


class ConfigManager:
    """
    Configuration manager with hot-reloading capabilities.

    Supports YAML and JSON configuration files with environment variable
    overrides and automatic reloading when files change.
    """

    def __init__(self, config_file_path: str = "config.yaml"):
        """
        Initialize configuration manager.

        Args:
            config_file_path: Path to the configuration file
        """
        self.config_file_path = os.path.abspath(config_file_path)
        self._config: Optional[AppConfig] = None
        self._observer: Optional[Observer] = None
        self._change_callbacks: List[Callable[[AppConfig], None]] = []
        self._config_hash: Optional[str] = None
        self._reload_lock = threading.Lock()
        self._validation_errors: List[str] = []
        self._last_successful_config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """
        Load configuration from file with environment variable overrides.

        Returns:
            Loaded and validated configuration

        Raises:
            ValueError: If configuration is invalid and no previous good config exists
        """
        with self._reload_lock:
            if not os.path.exists(self.config_file_path):
                self._create_default_config()

            current_hash = self._calculate_config_hash()
            if self._config_hash == current_hash and self._config is not None:
                return self._config

            try:
                config_data = self._load_config_file()
                config_data = self._apply_env_overrides(config_data)
                validated = validate_config_dict(config_data)
                config = validated.to_app_config()

                errors = config.validate()
                if errors:
                    raise ValueError("; ".join(errors))

                self._config = config
                self._config_hash = current_hash
                self._validation_errors = []
                self._last_successful_config = config
                return config

            except (ValueError, OSError, yaml.YAMLError) as e:
                self._validation_errors = [str(e)]

                if self._last_successful_config is not None:
                    logger.warning(f"Config validation failed, using last known good config: {e}")
                    return self._last_successful_config

                raise ValueError(f"Configuration validation failed: {e}")

    def get_config(self) -> AppConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    def get_validation_errors(self) -> List[str]:
        return self._validation_errors.copy()

    def is_config_valid(self) -> bool:
        return len(self._validation_errors) == 0

    def validate_config_file(self) -> Tuple[bool, List[str]]:
        """
        Validate configuration file without loading it.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        if not os.path.exists(self.config_file_path):
            return False, ["Configuration file does not exist"]

        try:
            config_data = self._load_config_file()
            config_data = self._apply_env_overrides(config_data)
            errors = validate_config_dict(config_data).to_app_config().validate()
        except (ValueError, OSError, yaml.YAMLError) as e:
            return False, [str(e)]

        return not errors, errors

    def start_hot_reload(self) -> None:
        """Start watching configuration file for changes."""
        if self._observer is not None:
            return

        config_dir = os.path.dirname(self.config_file_path) or "."
        os.makedirs(config_dir, exist_ok=True)

        self._observer = Observer()
        self._observer.schedule(ConfigFileHandler(self), config_dir, recursive=False)
        self._observer.start()
        logger.info(f"Started watching configuration file: {self.config_file_path}")

    def stop_hot_reload(self) -> None:
        """Stop watching configuration file for changes."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info(f"Stopped watching configuration file: {self.config_file_path}")

    def is_hot_reload_active(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def add_change_callback(self, callback: Callable[[AppConfig], None]) -> None:
        """
        Add a callback to be called when configuration changes.

        Args:
            callback: Function to call with new configuration
        """
        self._change_callbacks.append(callback)

    def remove_change_callback(self, callback: Callable[[AppConfig], None]) -> None:
        if callback in self._change_callbacks:
            self._change_callbacks.remove(callback)

    def _reload_config(self) -> None:
        """Reload configuration from file and notify callbacks."""
        old_config = self._config
        if self._config_hash == self._calculate_config_hash():
            return

        logger.info(f"Configuration file changed, reloading: {self.config_file_path}")
        try:
            new_config = self.load_config()
        except ValueError as e:
            logger.error(f"Error reloading configuration: {e}")
            return

        if old_config == new_config:
            logger.info("Configuration content unchanged after reload")
            return

        logger.info("Configuration successfully reloaded with changes")
        for callback in self._change_callbacks:
            try:
                callback(new_config)
            except Exception as e:
                logger.error(f"Error in config change callback: {e}")

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration data from file."""
        with open(self.config_file_path, 'r') as f:
            if self.config_file_path.endswith(('.yaml', '.yml')):
                return yaml.safe_load(f) or {}
            if self.config_file_path.endswith('.json'):
                return json.load(f)
        raise ValueError(f"Unsupported config file format: {self.config_file_path}")

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path_str in get_env_var_mappings().items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue

            config_path = config_path_str.split('.')
            current = config_data
            for key in config_path[:-1]:
                if not isinstance(current.get(key), dict):
                    current[key] = {}
                current = current[key]

            current[config_path[-1]] = self._convert_env_value(env_var, env_value)

        return config_data

    def _convert_env_value(self, env_var: str, env_value: str) -> Any:
        """Convert environment variable value to appropriate type."""
        if env_var in _INT_ENV_VARS:
            return int(env_value)
        if env_var in _FLOAT_ENV_VARS:
            return float(env_value)
        if env_var in _BOOL_ENV_VARS:
            return env_value.lower() in ('true', '1', 'yes', 'on')
        return env_value

    def _create_default_config(self) -> None:
        """Create a default configuration file."""
        default_config = {
            'database': {
                'url': None,
                'pool_size': 10,
                'echo': False,
            },
            'queries': {
                'transaction_table': 'source_1',
                'block_table': 'raw_1',
                'logs_table': None,
                'transaction_timeout': 3.0,
                'block_timeout': 3.0,
                'block_context_timeout': 2.0,
                'sample_limit': 20,
            },
            'cache': {
                'max_size': 1000,
                'eviction_fraction': 0.2,
            },
            'maintenance': {
                'enabled': True,
                'sweep_interval': '10m',
                'stats_log_interval': '1h',
            },
            'logging': {
                'level': 'INFO',
                'file': None,
                'structured': True,
            },
            'analysis': {
                'include_network_metrics': True,
                'context_blocks': 10,
            },
        }

        config_dir = os.path.dirname(self.config_file_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)
        with open(self.config_file_path, 'w') as f:
            yaml.dump(default_config, f, default_flow_style=False, indent=2)
        logger.info(f"Created default configuration file: {self.config_file_path}")

    def _calculate_config_hash(self) -> str:
        """Hash of the configuration file content plus relevant environment variables."""
        if not os.path.exists(self.config_file_path):
            return ""

        with open(self.config_file_path, 'rb') as f:
            content = f.read()

        env_vars = []
        for env_var in get_env_var_mappings():
            env_value = os.getenv(env_var)
            if env_value is not None:
                env_vars.append(f"{env_var}={env_value}")

        combined_content = content + "|".join(sorted(env_vars)).encode()
        return hashlib.sha256(combined_content).hexdigest()
