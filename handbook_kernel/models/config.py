"""Server and client configuration."""

import os
from enum import Enum
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from handbook_kernel.models.errors import ConfigError


CACHE_KEY = "handbook_data_cache"
DEFAULT_PEOPLE_SHEET = "Офис"
DEFAULT_ROOMS_SHEET = "Кабинеты"


class ReloadFailurePolicy(str, Enum):
    DISCARD = "discard"     # Empty the slot; requests fail until the source parses again
    PRESERVE = "preserve"   # Keep serving the last good snapshot


class ServerConfig(BaseModel):
    """Configuration for the handbook API server."""

    source_file: Path
    host: str = "0.0.0.0"
    port: int = Field(default=3001, ge=1, le=65535)
    allowed_origins: List[str] = []
    environment: str = "development"
    log_level: str = "info"
    log_dir: Optional[Path] = Path("logs")
    people_sheet: str = DEFAULT_PEOPLE_SHEET
    rooms_sheet: str = DEFAULT_ROOMS_SHEET
    reload_failure_policy: ReloadFailurePolicy = ReloadFailurePolicy.DISCARD

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        env_file: Optional[str] = None,
    ) -> "ServerConfig":
        """
        Build the config from environment variables.

        A .env file is loaded first (without overriding real variables) unless
        an explicit mapping is given. HANDBOOK_SOURCE_FILE is required.
        """
        if env is None:
            load_dotenv(env_file)
            env = os.environ

        source = env.get("HANDBOOK_SOURCE_FILE")
        if not source:
            raise ConfigError("Missing environment variable: HANDBOOK_SOURCE_FILE")

        values = {"source_file": source}
        optional = {
            "HOST": "host",
            "PORT": "port",
            "ENVIRONMENT": "environment",
            "LOG_LEVEL": "log_level",
            "HANDBOOK_PEOPLE_SHEET": "people_sheet",
            "HANDBOOK_ROOMS_SHEET": "rooms_sheet",
            "HANDBOOK_RELOAD_FAILURE_POLICY": "reload_failure_policy",
        }
        for var, field in optional.items():
            if env.get(var):
                values[field] = env[var]

        origins = env.get("ALLOWED_ORIGINS")
        if origins:
            values["allowed_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        if "LOG_DIR" in env:
            values["log_dir"] = env["LOG_DIR"] or None

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid server configuration: {e}") from e


class ClientConfig(BaseModel):
    """Configuration for the offline-capable handbook client."""

    api_url: str = "http://localhost:3001/api/handbook"
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    probe_timeout_seconds: float = Field(default=2.0, gt=0)
    max_cache_age_hours: int = Field(default=12, ge=0)
    cache_key: str = CACHE_KEY
    cache_db_path: str = "handbook_cache.db"

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        env_file: Optional[str] = None,
    ) -> "ClientConfig":
        if env is None:
            load_dotenv(env_file)
            env = os.environ

        mapping = {
            "HANDBOOK_API_URL": "api_url",
            "HANDBOOK_FETCH_TIMEOUT": "fetch_timeout_seconds",
            "HANDBOOK_PROBE_TIMEOUT": "probe_timeout_seconds",
            "HANDBOOK_MAX_CACHE_AGE_HOURS": "max_cache_age_hours",
            "HANDBOOK_CACHE_DB": "cache_db_path",
        }
        values = {field: env[var] for var, field in mapping.items() if env.get(var)}

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid client configuration: {e}") from e
