"""Engine Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - Every setting has a default; the engine runs with no environment at all
    - get_settings() is cached (lru_cache): single instance per process
    - Core functions never read settings; the service shell passes values in
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from retailops.core.domain_types import CollectionSchema


class Settings(BaseSettings):
    """Engine settings from RETAILOPS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RETAILOPS_", env_file=".env", case_sensitive=False,
    )

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"
    trace_decisions: bool = False

    # Audit / repair
    identity_field: str = "id"
    prefer_latest_on_repair: bool = False
    # Extra collection name → schema mappings, e.g. {"courses": "training"}
    collection_schemas: dict[str, CollectionSchema] = {}

    @field_validator("collection_schemas", mode="before")
    @classmethod
    def lower_collection_names(cls, v: object) -> object:
        """Collection names are matched case-insensitively."""
        if isinstance(v, dict):
            return {str(k).strip().lower(): val for k, val in v.items()}
        return v

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
