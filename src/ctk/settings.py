import json
from pathlib import Path

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ctk.utils.paths import (
    get_default_blocker_path,
    get_default_data_dir,
    get_default_log_dir,
)


class Settings(BaseSettings):
    """Application-wide settings managed via .env and config.json."""

    debug: bool = Field(default=False, description="Master toggle for verbose logging")

    # Paths
    data_dir: Path = Field(default_factory=get_default_data_dir)
    log_dir: Path = Field(default_factory=get_default_log_dir)

    def model_post_init(self, __context):
        # Ensure paths are absolute
        self.data_dir = self.data_dir.resolve()
        self.log_dir = self.log_dir.resolve()

    @property
    def config_file(self) -> Path:
        return self.data_dir / "config.json"

    # Export format
    file_extension: str = ".ctbbl"
    random_name_prefix: str = "ctk_"

    # Filesystem browser
    executable_extensions: list[str] = [".exe"]
    search_workers: int = Field(default=1, ge=1)

    # Cold Turkey
    blocker_path: Path = Field(default_factory=get_default_blocker_path)
    settings_export_command: list[str] = Field(
        default_factory=list,
        description="Command that prints Cold Turkey's settings as JSON",
    )

    model_config = SettingsConfigDict(
        env_prefix="CTK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# (config path, mtime) of the last config.json that was merged
_cache_key: tuple[Path, float] | None = None
_cached_settings: Settings | None = None


def _read_config_file(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def load_settings() -> Settings:
    """Loads settings, merging with config.json if it exists."""
    global _cache_key, _cached_settings

    initial = Settings()
    config_path = initial.config_file

    if not config_path.exists():
        _cache_key = None
        _cached_settings = initial
        return initial

    key = (config_path, config_path.stat().st_mtime)
    if key == _cache_key and _cached_settings is not None:
        return _cached_settings

    try:
        overrides = _read_config_file(config_path)
        merged = Settings(**{**initial.model_dump(), **overrides})
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring {config_path}: {e}")
        _cached_settings = initial
        return initial

    _cache_key = key
    _cached_settings = merged
    return merged


# The single source of truth for the app
settings = load_settings()
