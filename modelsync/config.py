"""Configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """modelsync settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Database
    database_url: str = ":memory:"
    environment: str = "development"
    # Environment name -> connection target, e.g. {"test": ":memory:", "production": "data/app.db"}
    environments: dict[str, str] = Field(default_factory=dict)

    def resolve_target(self, environment: str | None = None) -> str:
        """Return the connection target for an environment.

        Falls back to ``database_url`` when the environment has no entry.
        """
        name = environment or self.environment
        target = self.environments.get(name, self.database_url).strip()
        if not target:
            msg = f"No connection target configured for environment {name!r}"
            raise ValueError(msg)
        return target
