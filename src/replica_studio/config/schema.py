"""Configuration schema using Pydantic.

Why this exists:
- Type-safe configuration with validation
- Environment variable support
- Multiple deployment profiles (local, staging)
- Clear documentation of all settings

How to extend:
1. Add new fields to existing config classes
2. Create new config classes for new components
3. Update config.toml with new settings
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SessionStoreType(str, Enum):
    """Supported session stores."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class PlatformConfig(BaseModel):
    """Remote agent-hosting platform connection settings."""

    base_url: str = "https://api.sensay.io/v1"
    api_version: str = "2025-03-25"
    timeout: float = Field(default=30.0, gt=0)


class ReplicaDefaultsConfig(BaseModel):
    """Defaults applied to newly created replicas."""

    llm_provider: str = "openai"
    llm_model: str = "gpt-4o"
    seed_title: str = "Replica Behavior Guide"
    seed_guide_path: Optional[Path] = None

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in paths."""
        if self.seed_guide_path:
            self.seed_guide_path = self.seed_guide_path.expanduser()


class TrackerConfig(BaseModel):
    """Knowledge status polling settings."""

    poll_interval: float = Field(default=5.0, gt=0, description="Seconds between knowledge base refreshes")


class SessionStoreConfig(BaseModel):
    """Credential/session store configuration."""

    store_type: SessionStoreType = SessionStoreType.SQLITE
    connection_string: str = "sqlite:///~/.replica-studio/session.db"

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in connection string."""
        if self.connection_string and "~" in self.connection_string:
            self.connection_string = self.connection_string.replace(
                "~", str(Path.home())
            )


class LoggingConfig(BaseModel):
    """Log output configuration."""

    log_dir: Path = Field(default=Path.home() / ".replica-studio" / "logs")
    enable_file: bool = False
    max_days: int = Field(default=30, gt=0)


class AppConfig(BaseSettings):
    """Main application configuration.

    Sources, highest priority first:
    1. Environment variables (prefixed with REPLICA_STUDIO_, including
       those loaded from a .env file)
    2. Keyword arguments (the loader passes the TOML file's values here)
    3. Defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="REPLICA_STUDIO_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Application settings
    app_name: str = "replica-studio"
    log_level: LogLevel = LogLevel.INFO
    json_logs: bool = False
    data_dir: Path = Field(default=Path.home() / ".replica-studio")

    # Component configurations
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    replica_defaults: ReplicaDefaultsConfig = Field(default_factory=ReplicaDefaultsConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    session_store: SessionStoreConfig = Field(default_factory=SessionStoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment overrides win over values read from config.toml
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    def model_post_init(self, __context: Any) -> None:
        """Post-initialization: create data directory if needed."""
        self.data_dir = self.data_dir.expanduser()
        self.data_dir.mkdir(parents=True, exist_ok=True)
