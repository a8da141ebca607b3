from __future__ import annotations

import re

import httpx
from fastapi import Depends, Query, Request

from geoplotter.core.errors import APIError
from geoplotter.core.settings import Settings, get_settings
from geoplotter.services.features import RenderMode
from geoplotter.services.views import ViewConfig, ViewRegistry, resolve_sources


_HEX_COLOR_RE = re.compile(r"^[0-9A-Fa-f]{6}$")


def get_registry(request: Request) -> ViewRegistry:
    return request.app.state.views


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _is_http_url(value: str) -> bool:
    try:
        parsed = httpx.URL(value)
    except httpx.InvalidURL:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.host)


def _parse_colors(value: str | None) -> list[str]:
    colors = _split_list(value)
    bad = [c for c in colors if not _HEX_COLOR_RE.match(c)]
    if bad:
        raise APIError(
            code="COLOR_INVALID",
            message="colors must be 6-digit hex values without '#'",
            status_code=422,
            details={"invalid": bad},
        )
    return [c.upper() for c in colors]


def get_view_config(
    geohashes: str | None = Query(
        default=None, description="Comma-separated geohash codes"
    ),
    url: str | None = Query(default=None, description="Remote geohash endpoint"),
    urls: str | None = Query(
        default=None, description="Comma-separated remote geohash endpoints"
    ),
    colors: str | None = Query(
        default=None, description="Hex color per remote source, positional"
    ),
    timer: int = Query(default=0, ge=0, description="Refresh interval in seconds"),
    label: str | None = Query(default=None, max_length=200),
    mode: RenderMode = Query(default=RenderMode.BOXES),
    settings: Settings = Depends(get_settings),
) -> ViewConfig:
    if timer > settings.max_timer_s:
        raise APIError(
            code="TIMER_INVALID",
            message=f"timer must be <= {settings.max_timer_s} seconds",
            status_code=422,
        )

    endpoints = [url.strip()] if url and url.strip() else []
    endpoints += _split_list(urls)
    bad_urls = [u for u in endpoints if not _is_http_url(u)]
    if bad_urls:
        raise APIError(
            code="URL_INVALID",
            message="urls must be absolute http(s) URLs",
            status_code=422,
            details={"invalid": bad_urls},
        )

    sources = resolve_sources(
        geohashes=geohashes,
        urls=endpoints,
        colors=_parse_colors(colors),
        default_color=settings.default_color.upper(),
    )
    return ViewConfig(sources=sources, interval_s=timer, mode=mode, label=label)
