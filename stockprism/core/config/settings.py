"""Configuration management for the stockprism service and CLI."""

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from stockprism.core.exceptions import ConfigError

DEFAULT_BASE_URL = "https://www.alphavantage.co/query"


@dataclass
class ProviderConfig:
    """Upstream provider configuration."""

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 15.0
    allow_demo_key: bool = False
    user_agent: str = "stockprism/0.1.0"

    def require_api_key(self) -> str:
        """Return the configured api key or fail fast.

        Raises:
            ConfigError: when no key is configured, or a demo key is configured
                without ``allow_demo_key``.
        """
        api_key = (self.api_key or "").strip()
        if not api_key:
            raise ConfigError(
                "Alpha Vantage API key is not configured. Set the ALPHA_VANTAGE_API_KEY environment variable.",
                setting="providers.api_key",
            )
        if "demo" in api_key.lower() and not self.allow_demo_key:
            raise ConfigError(
                "The demo API key has limited functionality. Configure a valid API key "
                "or set STOCKPRISM_ALLOW_DEMO_KEY=true.",
                setting="providers.api_key",
            )
        return api_key


@dataclass
class StorageConfig:
    """Persistence configuration."""

    db_path: str = str(Path.home() / ".stockprism" / "stockprism.duckdb")
    threads: int = 1


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = None
    serialize: bool = True


@dataclass
class FallbackConfig:
    """Synthetic fallback configuration."""

    points: int = 100


@dataclass
class StockPrismConfig:
    """Main stockprism configuration."""

    providers: ProviderConfig = field(default_factory=ProviderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "StockPrismConfig":
        """Build a configuration from a nested dictionary."""
        return cls(
            providers=ProviderConfig(**config_dict.get("providers", {})),
            storage=StorageConfig(**config_dict.get("storage", {})),
            logging=LoggingConfig(**config_dict.get("logging", {})),
            fallback=FallbackConfig(**config_dict.get("fallback", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a nested dictionary."""
        return {
            "providers": asdict(self.providers),
            "storage": asdict(self.storage),
            "logging": asdict(self.logging),
            "fallback": asdict(self.fallback),
        }


def _deep_update(d: dict[str, Any], u: dict[str, Any]) -> dict[str, Any]:
    for k, v in u.items():
        if isinstance(v, dict):
            d[k] = _deep_update(d.get(k, {}), v)
        else:
            d[k] = v
    return d


class ConfigManager:
    """Loads configuration from a TOML file overlaid with environment variables."""

    def __init__(self, config_path: Path | None = None, use_env: bool = True):
        """Initialise the manager.

        Args:
            config_path: TOML file path, defaults to ``~/.stockprism/config.toml``
            use_env: overlay ``ALPHA_VANTAGE_API_KEY`` and ``STOCKPRISM_*`` variables
        """
        self.config_path = config_path or Path(
            os.getenv("STOCKPRISM_CONFIG", str(Path.home() / ".stockprism" / "config.toml"))
        )
        self.use_env = use_env
        self.config = self._load_config()

    def _load_config(self) -> StockPrismConfig:
        config_dict: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    config_dict = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                config_dict = {}

        if self.use_env:
            _deep_update(config_dict, load_config_from_env())

        try:
            return StockPrismConfig.from_dict(config_dict)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration in {self.config_path}: {e}") from e

    def get_config(self) -> StockPrismConfig:
        """Return the current configuration."""
        return self.config

    def update_config(self, **updates: Any) -> None:
        """Deep-merge ``updates`` into the current configuration."""
        config_dict = self.config.to_dict()
        _deep_update(config_dict, updates)
        self.config = StockPrismConfig.from_dict(config_dict)


def get_default_config() -> StockPrismConfig:
    """Return the default configuration."""
    return StockPrismConfig()


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env() -> dict[str, Any]:
    """Load configuration overrides from environment variables."""
    config: dict[str, Any] = {}

    provider_config: dict[str, Any] = {}
    api_key = os.getenv("ALPHA_VANTAGE_API_KEY")
    if api_key is not None:
        provider_config["api_key"] = api_key
    base_url = os.getenv("STOCKPRISM_BASE_URL")
    if base_url:
        provider_config["base_url"] = base_url
    timeout = os.getenv("STOCKPRISM_PROVIDER_TIMEOUT")
    if timeout is not None:
        try:
            provider_config["timeout"] = float(timeout)
        except ValueError as e:
            raise ConfigError(f"STOCKPRISM_PROVIDER_TIMEOUT must be a number, got {timeout!r}", setting="providers.timeout") from e
    allow_demo = os.getenv("STOCKPRISM_ALLOW_DEMO_KEY")
    if allow_demo is not None:
        provider_config["allow_demo_key"] = _env_bool(allow_demo)
    if provider_config:
        config["providers"] = provider_config

    storage_config: dict[str, Any] = {}
    db_path = os.getenv("STOCKPRISM_DB_PATH")
    if db_path:
        storage_config["db_path"] = db_path
    if storage_config:
        config["storage"] = storage_config

    logging_config: dict[str, Any] = {}
    level = os.getenv("STOCKPRISM_LOG_LEVEL")
    if level is not None:
        logging_config["level"] = level.upper()
    log_file = os.getenv("STOCKPRISM_LOG_FILE")
    if log_file is not None:
        logging_config["file"] = log_file
    if logging_config:
        config["logging"] = logging_config

    fallback_points = os.getenv("STOCKPRISM_FALLBACK_POINTS")
    if fallback_points is not None:
        try:
            config["fallback"] = {"points": int(fallback_points)}
        except ValueError as e:
            raise ConfigError(
                f"STOCKPRISM_FALLBACK_POINTS must be an integer, got {fallback_points!r}", setting="fallback.points"
            ) from e

    return config
