import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from YAML file specified by IDLINK_CONFIG_FILE env var."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get the value for a field from the YAML config."""
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML file."""
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load config from YAML file if specified."""
        config_file = os.environ.get("IDLINK_CONFIG_FILE")
        if config_file:
            path = Path(config_file)
            if path.exists():
                return yaml.safe_load(path.read_text()) or {}
        return {}


class Server(BaseModel):
    """Server configuration (nested in Config, uses env_nested_delimiter)."""

    name: str = "idlink"
    version: str = "0.1.0"
    description: str = "Federated identity resolution and account provisioning"
    host: str = "http://localhost:8000"  # Public base URL; provider callbacks hang off it


class DatabaseConfig(BaseModel):
    """Database configuration (nested in Config, uses env_nested_delimiter)."""

    url: str = "sqlite+aiosqlite:///~/.local/share/idlink/idlink.db"
    echo: bool = False
    auto_create: bool = True  # Create missing tables at startup (SQLite dev setups)


class LoggingConfig(BaseModel):
    """Logging configuration (nested in Config, uses env_nested_delimiter)."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @property
    def file(self) -> str | None:
        """Get log file path from IDLINK_LOG_FILE env var."""
        return os.environ.get("IDLINK_LOG_FILE")


# =============================================================================
# Authentication Configuration
# =============================================================================


class ProviderConfig(BaseModel):
    """OAuth client configuration for one identity provider.

    An empty client_id leaves the provider disabled.
    """

    client_id: str = ""
    client_secret: str = ""
    scope: list[str] | None = None  # None = provider default
    sandbox: bool = False  # Only meaningful for ORCiD

    @property
    def enabled(self) -> bool:
        return bool(self.client_id)


class JwtConfig(BaseModel):
    """JWT configuration for session tokens and signed flow tokens."""

    secret: str = ""  # Must be set in production
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 30  # 30 days


# Names that can never be claimed by generated or chosen usernames
DEFAULT_RESERVED_USERNAMES = [
    "404",
    "about",
    "account",
    "admin",
    "administrator",
    "anonymous",
    "api",
    "attachments",
    "auth",
    "dev",
    "everyone",
    "files",
    "groups",
    "help",
    "home",
    "login",
    "logout",
    "me",
    "oauth",
    "public",
    "root",
    "search",
    "session",
    "settings",
    "signin",
    "signup",
    "support",
    "system",
    "user",
    "users",
    "v1",
    "v2",
]


class AuthConfig(BaseModel):
    """Authentication configuration."""

    jwt: JwtConfig = JwtConfig()
    providers: dict[str, ProviderConfig] = {}  # provider name -> client config
    reserved_usernames: list[str] = DEFAULT_RESERVED_USERNAMES
    flow_cookie_name: str = "idlink_flow"
    flow_ttl_seconds: int = 600  # One OAuth round trip
    cookie_secure: bool = True
    provision_attempts: int = 5  # Retries when a username claim loses a race

    def enabled_providers(self) -> dict[str, ProviderConfig]:
        return {name: cfg for name, cfg in self.providers.items() if cfg.enabled}


class Config(BaseSettings):
    # These are BaseModel, so env_nested_delimiter handles their env vars
    server: Server = Server()
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    auth: AuthConfig = AuthConfig()

    model_config = {
        "env_prefix": "IDLINK_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",  # Allows IDLINK_DATABASE__URL override
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - IDLINK_CONFIG_FILE yaml
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def callback_url(self, provider: str, *, reauthorize: bool = False) -> str:
        """Provider redirect target, e.g. {host}/v2/oauth/github/callback."""
        base = self.server.host.rstrip("/")
        suffix = "authz/callback" if reauthorize else "callback"
        return f"{base}/v2/oauth/{provider}/{suffix}"


def configure_logging(config: LoggingConfig) -> None:
    """Configure Python logging based on config.

    Should be called early in application startup so all loggers pick up
    the configuration.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(config.level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(config.level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.debug("Logging configured: level=%s, file=%s", config.level, config.file)
