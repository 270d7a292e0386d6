"""YAML configuration loader and persisted preferences for TranslateBoard."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..models.segment import TranslationConfig, source_language_for

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "translateboard.yaml"
API_KEY_ENV_VAR = "TRANSLATEBOARD_API_KEY"

DEFAULTS: Dict[str, Any] = {
    "translation": {
        "api_key": "",
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai",
        "model": "gemini-2.0-flash-exp",
        "provider": "openai",
        "relay_url": "",
        "timeout_seconds": 60,
    },
    "recognition": {
        "engine": "google",
        "language": "zh-CN",
        "replay_file": "",
        "replay_interval_seconds": 1.0,
    },
    "google_cloud": {
        "credentials_path": "",
    },
    "audio": {
        "sample_rate": 16000,
        "chunk_size": 1600,
        "channels": 1,
    },
    "relay": {
        "host": "127.0.0.1",
        "port": 8787,
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/translateboard.log",
        "console_output": True,
    },
}

# Keys written back by save(); everything else is only ever read.
PREFERENCE_KEYS = (
    "translation.api_key",
    "translation.base_url",
    "translation.model",
    "translation.provider",
    "recognition.language",
)

PROVIDERS = ("openai", "deepseek")


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class TranslateBoardConfig:
    """TranslateBoard configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, uses translateboard.yaml
                        in the current directory. A missing file means defaults.
        """
        self.config_file = Path(config_path or DEFAULT_CONFIG_PATH)

        if self.config_file.exists():
            logger.info(f"Loading configuration from: {self.config_file}")
            self.config = _merge(DEFAULTS, self._load_config())
        else:
            logger.info(f"No configuration file at {self.config_file}; using defaults")
            self.config = copy.deepcopy(DEFAULTS)

        self._validate()
        self._resolve_paths(self.config)

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ValueError(f"Configuration must be a mapping: {self.config_file}")
        return config

    def _validate(self) -> None:
        source_language_for(self.get('recognition.language'))
        provider = self.get('translation.provider')
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown translation provider: {provider!r} (expected one of {PROVIDERS})")

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (('google_cloud', 'credentials_path'),
                             ('logging', 'file_path'),
                             ('recognition', 'replay_file')):
            path = config[section].get(key)
            if path and not os.path.isabs(path):
                config[section][key] = str(config_dir / path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'translation.base_url').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'recognition.language')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value if 'api_key' not in key_path else '***'}")

    def get_api_key(self) -> str:
        return os.environ.get(API_KEY_ENV_VAR) or self.get('translation.api_key', '')

    def translation_config(self) -> TranslationConfig:
        """Take an immutable snapshot of the translation settings."""
        return TranslationConfig(
            api_key=self.get_api_key(),
            base_url=self.get('translation.base_url'),
            model=self.get('translation.model'),
            relay_url=self.get('translation.relay_url') or None,
            timeout_seconds=float(self.get('translation.timeout_seconds', 60)),
        )

    def save(self) -> Path:
        """Persist the preference keys, keeping anything else already in the file."""
        existing = self._load_config() if self.config_file.exists() else {}
        for key_path in PREFERENCE_KEYS:
            section, key = key_path.split('.')
            existing.setdefault(section, {})[key] = self.get(key_path)

        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(existing, f, allow_unicode=True, sort_keys=False)
        logger.info(f"Preferences saved to: {self.config_file}")
        return self.config_file

    def get_google_credentials_path(self) -> str:
        """Return the absolute service account path; required by the google engine.

        Raises:
            ValueError: If no path is configured
            FileNotFoundError: If the file does not exist
        """
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            raise ValueError("Google credentials path not configured in translateboard.yaml")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())
