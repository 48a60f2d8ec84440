from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    # App
    app_name: str = "AccessGate"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./accessgate.db"

    # Authorization
    unmapped_route_policy: Literal["deny", "allow"] = "deny"
    authz_excluded_paths: str = "/health,/health/ready,/docs,/redoc,/openapi.json,/favicon.ico"
    route_bindings_file: Optional[str] = None  # YAML synced into route_bindings at startup

    @property
    def authz_excluded_paths_list(self) -> list[str]:
        return [p.strip() for p in self.authz_excluded_paths.split(",") if p.strip()]

    # Audit API
    audit_page_size_max: int = 100

    # Logging
    log_level: str = "INFO"
    log_dir: str = "/var/log/accessgate"
    log_file_enabled: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ACCESSGATE_",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
