from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from geoplotter.api.deps import get_view_config
from geoplotter.core.settings import Settings, get_settings
from geoplotter.services.pipeline import collect_plan
from geoplotter.services.views import ViewConfig


router = APIRouter(prefix="/v1/map", tags=["map"])


class MapConfigResponse(BaseModel):
    access_token: str | None
    center: list[float]
    zoom: float


class SourceGeometryOut(BaseModel):
    source_id: str
    data: dict[str, Any]
    paint: dict[str, Any]
    layer_type: str


class AnnotationOut(BaseModel):
    latitude: float
    longitude: float
    text: str
    color: str


class RunReportOut(BaseModel):
    source_counts: list[int]
    unavailable_sources: list[str]
    decode_error_count: int
    displayed_count: int
    marker_count: int
    label: str | None = None


class MapRenderResponse(BaseModel):
    sources: list[SourceGeometryOut]
    annotations: list[AnnotationOut]
    invalid_codes: list[str]
    report: RunReportOut


@router.get("/config", response_model=MapConfigResponse)
async def map_config(settings: Settings = Depends(get_settings)) -> MapConfigResponse:
    return MapConfigResponse(
        access_token=settings.mapbox_public_key,
        center=[settings.map_center_longitude, settings.map_center_latitude],
        zoom=settings.map_zoom,
    )


@router.get("", response_model=MapRenderResponse)
async def render_map(
    config: ViewConfig = Depends(get_view_config),
    settings: Settings = Depends(get_settings),
) -> MapRenderResponse:
    """Single pipeline run without a mounted view; ``timer`` is ignored."""

    plan = await collect_plan(
        config.sources,
        mode=config.mode,
        label=config.label,
        opacity=settings.layer_opacity,
        timeout_s=settings.fetch_timeout_s,
    )
    report = plan.report
    return MapRenderResponse(
        sources=[
            SourceGeometryOut(
                source_id=g.source_id,
                data=g.collection,
                paint=g.paint.to_paint(),
                layer_type=g.paint.layer_type,
            )
            for g in plan.features.geometries
        ],
        annotations=[
            AnnotationOut(
                latitude=a.latitude,
                longitude=a.longitude,
                text=a.text,
                color=a.color,
            )
            for a in plan.features.annotations
        ],
        invalid_codes=plan.invalid_codes,
        report=RunReportOut(
            source_counts=report.source_counts,
            unavailable_sources=report.unavailable_sources,
            decode_error_count=report.decode_error_count,
            displayed_count=report.displayed_count,
            marker_count=report.marker_count,
            label=report.label,
        ),
    )
