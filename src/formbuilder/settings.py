"""Runtime settings loaded from `.env` and environment variables."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from formbuilder.exceptions import SettingsError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "savedForms"


class Settings(BaseSettings):
    """Package settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    project_name: str = "formbuilder"
    app_env: str = Field(
        default="dev",
        validation_alias="APP_ENV",
        description="Application environment, e.g. 'dev', 'prod'.",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level, e.g. 'INFO', 'DEBUG'.",
    )
    log_json: bool = Field(
        default=True,
        validation_alias="LOG_JSON",
        description="Enable JSON formatted logs.",
    )
    log_file: str | None = Field(
        default=None,
        validation_alias="LOG_FILE",
        description="File path for log output.",
    )

    storage_dir: str = Field(
        default=".formbuilder",
        validation_alias="STORAGE_DIR",
        description="Directory backing the file key-value storage.",
    )
    storage_key: str = Field(
        default=DEFAULT_STORAGE_KEY,
        min_length=1,
        validation_alias="STORAGE_KEY",
        description="Key of the slot holding the saved schemas.",
    )
    derivation_max_passes: int = Field(
        default=10,
        ge=1,
        validation_alias="DERIVATION_MAX_PASSES",
        description="Maximum recomputation passes for derived fields.",
    )
    formula_max_length: int = Field(
        default=2000,
        ge=1,
        validation_alias="FORMULA_MAX_LENGTH",
        description="Maximum accepted length of a derived-field formula.",
    )

    @property
    def storage_path(self) -> Path:
        """Return the storage directory as a path."""
        return Path(self.storage_dir)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance.

    Raises:
        SettingsError: If settings cannot be loaded or validated.

    Returns:
        Settings: The loaded settings instance.
    """
    try:
        return Settings()
    except Exception as exc:
        if _is_missing_settings_error(exc):
            ensure_env_file_exists()
            try:
                return Settings()
            except Exception as retry_exc:
                raise SettingsError(exc=retry_exc) from retry_exc
        raise SettingsError(exc=exc) from exc


def ensure_env_file_exists(
    *,
    env_path: Path = Path(".env"),
    template_path: Path = Path(".env.template"),
) -> None:
    """Create `.env` from template when missing.

    Args:
        env_path (Path): Target environment file path.
        template_path (Path): Template file path.
    """
    if env_path.exists() or not template_path.exists():
        return
    env_path.write_text(template_path.read_text(encoding="utf-8"), encoding="utf-8")
    logger.info(
        "Created environment file from template",
        extra={"env_path": str(env_path), "template_path": str(template_path)},
    )


def _is_missing_settings_error(exc: Exception) -> bool:
    """Return whether the settings failure is due to missing values.

    Args:
        exc (Exception): Caught settings initialization error.

    Returns:
        bool: True when the error represents missing settings values.
    """
    if not isinstance(exc, ValidationError):
        return False
    return any(error.get("type") == "missing" for error in exc.errors())
