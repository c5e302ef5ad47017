"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wagerfeed.services.supabase.config import SupabaseConfig

logger = logging.getLogger(__name__)

_YAML_SECTIONS = ("server", "feed", "signed_urls", "detector", "supabase")


class ConfigurationError(RuntimeError):
    """Required configuration is missing or invalid."""


class ServerConfig(BaseModel):
    """HTTP server parameters."""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:8081"]
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_origins(cls, v: str | list[str]) -> list[str]:
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


class FeedConfig(BaseModel):
    """Feed pagination parameters."""

    page_size: int = 10
    max_page_size: int = 50


class SignedUrlConfig(BaseModel):
    """Avatar signed URL parameters."""

    bucket: str = "avatars"
    validity_seconds: int = 24 * 60 * 60


class DetectorConfig(BaseModel):
    """Change detector schedule."""

    enabled: bool = True
    interval_seconds: int = 60
    overlap_seconds: int = 5


class Settings(BaseSettings):
    """Main configuration class."""

    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Paths
    data_dir: Path = Path("data")

    # API Keys
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    logfire_token: str = ""

    # Nested configuration sections
    server: ServerConfig = Field(default_factory=ServerConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    signed_urls: SignedUrlConfig = Field(default_factory=SignedUrlConfig)
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @field_validator("supabase_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def validate_for_server(self) -> None:
        """Fail fast when the keys needed to reach storage are missing."""
        missing = [
            name
            for name in ("supabase_url", "supabase_service_role_key")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

    def public_dump(self) -> dict:
        """Effective configuration without secrets."""
        return self.model_dump(
            mode="json",
            exclude={"supabase_service_role_key", "logfire_token"},
        )

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in _YAML_SECTIONS:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    section_dict = section.model_dump()
                    section_dict.update(yaml_config[section_name] or {})
                    setattr(self, section_name, section.__class__(**section_dict))

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
