from __future__ import annotations

import datetime as dt
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from geoplotter.core.settings import Settings
from geoplotter.services.features import RenderMode
from geoplotter.services.pipeline import RenderPlan, RunReport, apply_plan, collect_plan
from geoplotter.services.render_sync import RenderSync, SurfaceHandle
from geoplotter.services.scheduler import RefreshScheduler
from geoplotter.services.sources import SourceSpec, clean_codes
from geoplotter.services.surface import MapSurface


logger = logging.getLogger(__name__)


LITERAL_SOURCE_ID = "geohashes"


class ViewLimitReached(Exception):
    pass


@dataclass(frozen=True)
class ViewConfig:
    sources: tuple[SourceSpec, ...]
    interval_s: int = 0
    mode: RenderMode = RenderMode.BOXES
    label: str | None = None


def resolve_sources(
    *,
    geohashes: str | None,
    urls: list[str],
    colors: list[str],
    default_color: str,
) -> tuple[SourceSpec, ...]:
    """Build SourceSpecs from the view's query keys.

    Each remote source takes its color from the same position in ``colors``;
    missing positions and the literal source use ``default_color``.
    """

    out: list[SourceSpec] = []
    if geohashes:
        codes = clean_codes(geohashes.split(","))
        if codes:
            out.append(
                SourceSpec.literal(LITERAL_SOURCE_ID, codes, color_tag=default_color)
            )
    for i, url in enumerate(urls):
        color = colors[i] if i < len(colors) else default_color
        out.append(SourceSpec.remote(f"geo-{i + 1}", url, color_tag=color))
    return tuple(out)


def _isoformat_z(value: dt.datetime) -> str:
    s = value.isoformat()
    if s.endswith("+00:00"):
        return s.removesuffix("+00:00") + "Z"
    return s


def _report_dict(report: RunReport | None) -> dict[str, Any] | None:
    if report is None:
        return None
    return {
        "source_counts": report.source_counts,
        "unavailable_sources": report.unavailable_sources,
        "decode_error_count": report.decode_error_count,
        "displayed_count": report.displayed_count,
        "marker_count": report.marker_count,
        "label": report.label,
    }


class MapView:
    """One mounted map view: owns its surface handle and its schedule."""

    def __init__(
        self,
        view_id: str,
        config: ViewConfig,
        *,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self.id = view_id
        self.config = config
        self.created_at = dt.datetime.now(dt.timezone.utc)
        self.surface = MapSurface()
        self.handle = SurfaceHandle(self.surface)
        self.sync = RenderSync(self.handle)
        self.last_report: RunReport | None = None
        self.viewport: dict[str, Any] | None = None

        self._settings = settings
        self._http_client = http_client
        self.scheduler: RefreshScheduler[RenderPlan] = RefreshScheduler(
            self._collect, self._apply, sleep=sleep
        )

    def activate(self) -> None:
        self.surface.on_viewport_change(self._on_viewport_change)
        self.surface.on_ready(lambda: self.scheduler.activate(self.config.interval_s))
        self.surface.mark_ready()

    def deactivate(self, *, abort_runs: bool = False) -> None:
        self.scheduler.deactivate(abort_runs=abort_runs)
        self.handle.release()

    async def _collect(self) -> RenderPlan:
        return await collect_plan(
            self.config.sources,
            mode=self.config.mode,
            label=self.config.label,
            opacity=self._settings.layer_opacity,
            timeout_s=self._settings.fetch_timeout_s,
            http_client=self._http_client,
        )

    def _apply(self, plan: RenderPlan) -> None:
        if apply_plan(self.sync, plan):
            self.last_report = plan.report

    def _on_viewport_change(self, viewport: dict[str, Any]) -> None:
        self.viewport = dict(viewport)

    def state(self) -> dict[str, Any]:
        return {
            "view_id": self.id,
            "created_at": _isoformat_z(self.created_at),
            "timer": self.config.interval_s,
            "mode": self.config.mode.value,
            "label": self.config.label,
            "sources": [
                {
                    "id": s.id,
                    "kind": s.kind.value,
                    "color": s.color_tag,
                    "url": s.url,
                }
                for s in self.config.sources
            ],
            "schedule_state": self.scheduler.state.value,
            "runs_started": self.scheduler.runs_started,
            "runs_applied": self.scheduler.runs_applied,
            "viewport": self.viewport,
            "report": _report_dict(self.last_report),
            "surface": self.surface.snapshot(),
        }


class ViewRegistry:
    """Process-wide set of mounted views."""

    def __init__(
        self,
        *,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._sleep = sleep
        self._views: dict[str, MapView] = {}

    def __len__(self) -> int:
        return len(self._views)

    def get(self, view_id: str) -> MapView | None:
        return self._views.get(view_id)

    async def mount(self, config: ViewConfig, *, view_id: str | None = None) -> MapView:
        """Activate a new view and wait for its immediate first run."""

        if view_id is None and len(self._views) >= self._settings.max_views:
            raise ViewLimitReached(f"at most {self._settings.max_views} views")

        view = MapView(
            view_id or uuid.uuid4().hex,
            config,
            settings=self._settings,
            http_client=self._http_client,
            sleep=self._sleep,
        )
        self._views[view.id] = view
        view.activate()
        logger.info(
            "View mounted (view_id=%s sources=%d timer=%s)",
            view.id,
            len(config.sources),
            config.interval_s,
        )
        await view.scheduler.drain()
        return view

    async def reconfigure(self, view_id: str, config: ViewConfig) -> MapView | None:
        if not self.unmount(view_id):
            return None
        return await self.mount(config, view_id=view_id)

    def unmount(self, view_id: str) -> bool:
        view = self._views.pop(view_id, None)
        if view is None:
            return False
        view.deactivate()
        logger.info("View unmounted (view_id=%s)", view_id)
        return True

    async def close(self) -> None:
        """Unmount everything, cancel in-flight runs and wait for them to unwind."""

        views, self._views = self._views, {}
        for view in views.values():
            view.deactivate(abort_runs=True)
        for view in views.values():
            await view.scheduler.drain()
