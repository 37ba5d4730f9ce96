from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

MIN_SCREENSHOT_TTL_HOURS = 1.0
MIN_DATASET_TTL_SECONDS = 5.0


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = FileRotationSettings()


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = FileLoggingSettings()

    # Per-logger level overrides, e.g. {"aiohttp.access": "WARNING"}
    loggers: dict[str, str] = Field(default_factory=lambda: {"aiohttp.access": "WARNING"})


class ServerSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = "0.0.0.0"
    port: int = 3000

    # Shared-cache window advertised on /api/shops
    edge_cache_seconds: int = 60
    edge_stale_seconds: int = 300


class ScreenshotSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    cache_dir: str = "data/cache/screenshots"
    ttl_hours: float = 168.0

    # Bump whenever the key scheme or the provider crop/size changes
    version: str = "v3"

    fetch_timeout_seconds: float = 30.0
    providers: Sequence[str] = ("thum_io",)
    warm_concurrency: int = 4

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=max(MIN_SCREENSHOT_TTL_HOURS, self.ttl_hours))


class NotionPropertyMap(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "Name"
    url: str = "URL"
    category: str = "Category/Type"
    tags: str = "Tags"
    notes: str = "Notes"


class NotionSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    api_key: str = ""
    database_id: str = ""
    api_base_url: str = "https://api.notion.com/v1"
    api_version: str = "2022-06-28"
    timeout_seconds: float = 30.0
    property_map: NotionPropertyMap = NotionPropertyMap()


class DatasetSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    source: Literal["notion", "file"] = "notion"
    ttl_seconds: float = 300.0
    file_path: str = "data/shops.json"
    notion: NotionSettings = NotionSettings()

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=max(MIN_DATASET_TTL_SECONDS, self.ttl_seconds))


class GallerySettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "http://localhost:3000"
    page_size: int = Field(default=12, ge=1)
    listing_timeout_seconds: float = 30.0
    preload_timeout_seconds: float = 7.0
    near_bottom_threshold_px: float = 260.0
    viewport_fill_slack_px: float = 120.0


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: LoggingSettings = LoggingSettings()
    server: ServerSettings = ServerSettings()
    screenshots: ScreenshotSettings = ScreenshotSettings()
    dataset: DatasetSettings = DatasetSettings()
    gallery: GallerySettings = GallerySettings()


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    Implementations may use these to control where configuration is read from.
    """

    yaml_path: str = "data/config/config.yaml"
    env_prefix: str = "APP__"
    dotenv_path: Optional[str] = "data/.env"
