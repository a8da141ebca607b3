from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GEOPLOTTER_",
        case_sensitive=False,
    )

    # Map provider (public access token handed to the browser widget).
    mapbox_public_key: str | None = None
    map_center_longitude: float = 90.4125
    map_center_latitude: float = 23.8103
    map_zoom: float = 9.0

    # Rendering
    default_color: str = "FF0000"
    layer_opacity: float = 0.4

    # Remote geohash endpoints
    fetch_timeout_s: float = 10.0

    # Mounted views
    max_views: int = 64
    max_timer_s: int = 86_400

    # CORS (dev defaults)
    cors_allow_origin: str = "http://localhost:3000"
    cors_allow_credentials: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
