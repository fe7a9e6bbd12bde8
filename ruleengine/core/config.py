"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "Rule Engine"
    debug: bool = False
    cors_origins: str = "*"
    log_level: str = "INFO"

    # Storage
    database_url: str = "sqlite:///data/ruleengine.db"
    multi_tenant_enabled: bool = False
    tenant_database_url: str = "sqlite:///data/ruleengine_{tenant}.db"

    # Execution
    max_rule_firings: int = 1000
    execution_deadline_seconds: float = 60.0
    webhook_timeout_seconds: float = 30.0

    # Schema import
    fetch_timeout_seconds: float = 30.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def cors_origin_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
