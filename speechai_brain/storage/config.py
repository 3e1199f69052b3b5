"""
Document store settings (``SPEECHAI_DB_*`` environment variables).
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Which document store backend to use and how to reach PostgreSQL."""

    model_config = SettingsConfigDict(env_prefix="SPEECHAI_DB_", env_file=".env", extra="ignore")

    backend: Literal["postgres", "memory"] = Field(
        default="postgres",
        description="'postgres' persists documents; 'memory' keeps them in process",
    )
    url: Optional[str] = Field(
        default=None,
        description="Full PostgreSQL URL; overrides the individual connection fields",
    )
    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    database: str = Field(default="speechai")
    user: str = Field(default="speechai")
    password: str = Field(default="")

    min_pool_size: int = Field(default=1, ge=1)
    max_pool_size: int = Field(default=10, ge=1)
    connect_timeout: float = Field(default=10.0, description="Seconds to wait for a connection")
    command_timeout: float = Field(default=15.0, description="Seconds before a query is cancelled")

    @property
    def enabled(self) -> bool:
        """True when a PostgreSQL pool is required."""
        return self.backend == "postgres"

    @property
    def dsn(self) -> str:
        if self.url:
            return self.url
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"

    @property
    def display_target(self) -> str:
        """Connection target without credentials, for logs."""
        if self.url:
            return self.url.rsplit("@", 1)[-1]
        return f"{self.host}:{self.port}/{self.database}"


db_settings = DatabaseConfig()
