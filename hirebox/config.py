"""
Configuration Loader for HireBox
Loads and validates service configuration from config.yaml and the environment
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

# Environment variables that override the oauth section
OAUTH_ENV = {
    "gmail": {
        "client_id": "GMAIL_CLIENT_ID",
        "client_secret": "GMAIL_CLIENT_SECRET",
        "redirect_uri": "GMAIL_REDIRECT_URI",
    },
    "microsoft": {
        "client_id": "MICROSOFT_CLIENT_ID",
        "client_secret": "MICROSOFT_CLIENT_SECRET",
        "authority": "MICROSOFT_AUTHORITY",
        "redirect_uri": "MICROSOFT_REDIRECT_URI",
    },
}

DEFAULT_MICROSOFT_AUTHORITY = "https://login.microsoftonline.com/common"

SUPPORTED_AI_PROVIDERS = ("claude",)


class Config:
    """Configuration manager for HireBox."""

    def __init__(self, config_path: Optional[Path] = None, data: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration from a YAML file or an already-parsed dict.

        Args:
            config_path: Path to config.yaml (defaults to ./config.yaml)
            data: Raw configuration, used instead of reading a file
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        self.config_path = Path(config_path)
        self._data = data
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if self._data is not None:
            config = dict(self._data)
        else:
            if not self.config_path.exists():
                raise FileNotFoundError(
                    f"Config file not found: {self.config_path}\n"
                    f"Copy config.example.yaml to config.yaml and adjust it."
                )

            with open(self.config_path, "r") as f:
                config = yaml.safe_load(f) or {}

        self._validate_config(config)

        return config

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """Validate types and ranges of the known settings."""
        if not isinstance(config, dict):
            raise ValueError("Configuration root must be a mapping")

        for section in ("database", "ai", "ingestion", "oauth", "logging"):
            value = config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Config section '{section}' must be a mapping")

        provider = (config.get("ai") or {}).get("provider", "claude")
        if provider not in SUPPORTED_AI_PROVIDERS:
            available = ", ".join(SUPPORTED_AI_PROVIDERS)
            raise ValueError(f"Unknown ai.provider: '{provider}'. Available providers: {available}")

        ingestion = config.get("ingestion") or {}
        timeout = ingestion.get("timeout_seconds")
        if timeout is not None and (
            isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
        ):
            raise ValueError("ingestion.timeout_seconds must be a positive number or null")
        delay = ingestion.get("retry_base_delay")
        if delay is not None and (not isinstance(delay, (int, float)) or delay < 0):
            raise ValueError("ingestion.retry_base_delay must be a non-negative number")
        for key in ("max_retries", "max_messages"):
            value = ingestion.get(key)
            if value is not None and (not isinstance(value, int) or value < 0):
                raise ValueError(f"ingestion.{key} must be a non-negative integer")

    # ===== DATABASE =====

    @property
    def database_path(self) -> Optional[Path]:
        """Get the SQLite database path, if configured."""
        path = os.environ.get("HIREBOX_DB_PATH") or self.get("database.path")
        return Path(path) if path else None

    # ===== AI CONFIGURATION =====

    @property
    def ai_provider(self) -> str:
        """Get AI provider to use for scoring."""
        return self.get("ai.provider", "claude")

    @property
    def ai_model(self) -> str:
        """Get AI model to use for scoring."""
        return self.get("ai.model", "claude-sonnet-4-20250514")

    @property
    def ai_max_tokens(self) -> int:
        return self.get("ai.max_tokens", 300)

    # ===== INGESTION =====

    @property
    def fetch_timeout(self) -> Optional[float]:
        """Overall time budget for one fetch cycle in seconds (None = unbounded)."""
        # An explicit null disables the budget; only a missing key gets the default
        ingestion = self._config.get("ingestion") or {}
        return ingestion.get("timeout_seconds", 120)

    @property
    def max_retries(self) -> int:
        return self.get("ingestion.max_retries", 3)

    @property
    def retry_base_delay(self) -> float:
        return self.get("ingestion.retry_base_delay", 1.0)

    @property
    def max_messages(self) -> int:
        """Upper bound on candidate messages listed per cycle."""
        return self.get("ingestion.max_messages", 100)

    # ===== OAUTH =====

    def oauth_settings(self, provider: str) -> Dict[str, str]:
        """
        Get OAuth client settings for a provider.

        Environment variables take precedence over the YAML values.
        """
        provider = str(provider)
        settings = dict(self.get(f"oauth.{provider}", {}) or {})
        for key, env_var in OAUTH_ENV.get(provider, {}).items():
            value = os.environ.get(env_var)
            if value:
                settings[key] = value
        if provider == "microsoft":
            settings.setdefault("authority", DEFAULT_MICROSOFT_AUTHORITY)
        return settings

    # ===== LOGGING =====

    @property
    def log_level(self) -> Optional[str]:
        return os.environ.get("LOG_LEVEL") or self.get("logging.level")

    @property
    def json_logs(self) -> bool:
        return bool(self.get("logging.json", False))

    @property
    def log_file(self) -> Optional[str]:
        """Rotating JSON log file (None = console only outside production)."""
        return self.get("logging.file")

    @property
    def operation_log_dir(self) -> Optional[Path]:
        """Directory for per-cycle operation logs (disabled when unset)."""
        path = self.get("logging.operation_dir")
        return Path(path) if path else None

    # ===== UTILITY METHODS =====

    def reload(self) -> None:
        """Reload configuration from file."""
        self._config = self._load_config()

    def to_dict(self) -> Dict[str, Any]:
        """
        Return a copy of the raw configuration dictionary.

        Returns:
            Dict containing all configuration values
        """
        return dict(self._config)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key.

        Example: config.get('ingestion.timeout_seconds')
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value


# Global config instance
_config: Optional[Config] = None


def get_config(config_path: Optional[Path] = None) -> Config:
    """
    Get global configuration instance.
    Creates instance on first call, then returns cached instance.
    """
    global _config
    if _config is None or config_path is not None:
        _config = Config(config_path)
    return _config


def reload_config() -> None:
    """Reload configuration from file."""
    global _config
    if _config is not None:
        _config.reload()
    else:
        _config = Config()
