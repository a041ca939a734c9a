"""
Configuration management for the sitecms client.
Loads settings from YAML files with environment variable overrides.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


DEFAULT_SETTINGS: Dict[str, Any] = {
    'cms': {
        'api_url': '',
        'timeout': 10,
    },
    'cache': {
        'dir': '',
    },
    'uploads': {
        'max_document_size_mb': 10,
    },
    'relay': {
        'host': 'localhost',
        'port': 5560,
    },
    'logging': {
        'level': 'INFO',
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Manages client configuration from YAML files."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to config file. If None, uses
                config/default_config.yaml when present, built-in defaults otherwise
        """
        self._explicit = config_path is not None
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "default_config.yaml"

        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            if self._explicit:
                raise FileNotFoundError(f"Config file not found: {self.config_path}")
            self._config = copy.deepcopy(DEFAULT_SETTINGS)
        else:
            with open(self.config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
            self._config = _merge(DEFAULT_SETTINGS, loaded)

        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        """Override config values from environment variables."""
        if 'SITECMS_API_URL' in os.environ:
            self._config['cms']['api_url'] = os.environ['SITECMS_API_URL']

        if 'SITECMS_CACHE_DIR' in os.environ:
            self._config['cache']['dir'] = os.environ['SITECMS_CACHE_DIR']

        if 'SITECMS_LOG_LEVEL' in os.environ:
            self._config['logging']['level'] = os.environ['SITECMS_LOG_LEVEL']

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'cms.api_url')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config = Config()
            >>> config.get('cms.timeout')
            10
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'cms.api_url')
            value: Value to set
        """
        keys = key.split('.')
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def save(self, path: Optional[str] = None) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Path to save to. If None, uses original config_path
        """
        save_path = Path(path) if path else self.config_path
        save_path.parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, 'w') as f:
            yaml.dump(self._config, f, default_flow_style=False, indent=2)

    @property
    def api_url(self) -> str:
        """Get CMS API base URL (empty means root-relative requests)."""
        return self.get('cms.api_url', '') or ''

    @property
    def timeout(self) -> float:
        """Get HTTP request timeout in seconds."""
        return self.get('cms.timeout', 10)

    @property
    def cache_dir(self) -> Optional[str]:
        """Get cache directory, or None for an in-memory cache."""
        return self.get('cache.dir') or None

    @property
    def max_document_size(self) -> int:
        """Get maximum document upload size in bytes."""
        return int(self.get('uploads.max_document_size_mb', 10)) * 1024 * 1024

    @property
    def relay_host(self) -> str:
        """Get change relay host."""
        return self.get('relay.host', 'localhost')

    @property
    def relay_port(self) -> int:
        """Get change relay port."""
        return int(self.get('relay.port', 5560))

    @property
    def log_level(self) -> str:
        """Get logging level name."""
        return str(self.get('logging.level', 'INFO')).upper()

    def __repr__(self) -> str:
        """String representation."""
        return f"Config(path={self.config_path})"


# Global config instance (can be imported by other modules)
_global_config: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Args:
        config_path: Path to config file (only used on first call)

    Returns:
        Config instance
    """
    global _global_config

    if _global_config is None:
        _global_config = Config(config_path)

    return _global_config


def reset_config() -> None:
    """Drop the global configuration instance."""
    global _global_config
    _global_config = None
