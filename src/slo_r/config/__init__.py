"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="slo-r", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== NerdGraph ==========
    nerdgraph_url: str = Field(
        default="https://api.newrelic.com/graphql",
        description="NerdGraph GraphQL endpoint"
    )
    new_relic_api_key: Optional[str] = Field(
        default=None,
        description="User API key sent in the API-Key header"
    )
    nerdpack_id: Optional[str] = Field(
        default=None,
        description="Nerdpack UUID that owns the entity storage collection"
    )
    nerdgraph_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for NerdGraph calls",
        ge=0.1,
        le=120
    )
    nerdgraph_max_retries: int = Field(
        default=3,
        description="Attempts per NerdGraph call before giving up",
        ge=1,
        le=10
    )

    # ========== SLO Documents ==========
    slo_collection: str = Field(
        default="nr1-csg-slo-r",
        description="Entity storage collection holding SLO documents"
    )
    slo_tag_key: str = Field(
        default="slor",
        description="Entity tag marking entities that own SLO documents"
    )
    registry_config_path: Path = Field(
        default=Path("slo_registry.yaml"),
        description="YAML file listing the entities whose SLOs are tracked"
    )

    # ========== Polling ==========
    poll_interval_seconds: int = Field(
        default=60,
        description="Seconds between SLO metric refreshes",
        ge=1
    )
    default_time_range_minutes: int = Field(
        default=30,
        description="Duration of the current scope when no time range is set",
        ge=1
    )

    # ========== Presentation ==========
    define_slo_url: Optional[str] = Field(
        default=None,
        description="Link offered by the empty state to define a new SLO"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class SloScope(str, Enum):
    """Compliance windows computed for every SLO."""
    CURRENT = "current"
    SEVEN_DAY = "7_day"
    THIRTY_DAY = "30_day"


class SloIndicator(str, Enum):
    """Indicators an SLO document can declare."""
    ERROR_BUDGET = "error_budget"    # Transaction defects vs. totals
    AVAILABILITY = "availability"    # Alert-driven
    CAPACITY = "capacity"            # Alert-driven
    LATENCY = "latency"              # Alert-driven


class ViewKind(str, Enum):
    """What the SLO list currently shows."""
    LOADING = "loading"
    EMPTY = "empty"
    TABLE = "table"
    GRID = "grid"


# ========== Lists for validation ==========

SLO_SCOPES = [SloScope.CURRENT, SloScope.SEVEN_DAY, SloScope.THIRTY_DAY]
ERROR_BUDGET_INDICATOR = SloIndicator.ERROR_BUDGET.value
