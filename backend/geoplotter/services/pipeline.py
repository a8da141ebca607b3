from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import httpx

from geoplotter.services.aggregation import aggregate
from geoplotter.services.features import FeatureSet, RenderMode, build_features
from geoplotter.services.render_sync import RenderSync, SurfaceNotReady
from geoplotter.services.sources import SourceSpec, ingest_sources


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunReport:
    source_counts: list[int]
    unavailable_sources: list[str]
    decode_error_count: int
    displayed_count: int
    marker_count: int
    label: str | None = None


@dataclass
class RenderPlan:
    features: FeatureSet
    report: RunReport
    invalid_codes: list[str] = field(default_factory=list)


async def collect_plan(
    sources: Sequence[SourceSpec],
    *,
    mode: RenderMode = RenderMode.BOXES,
    label: str | None = None,
    opacity: float = 0.4,
    timeout_s: float = 10.0,
    http_client: httpx.AsyncClient | None = None,
) -> RenderPlan:
    """Ingest, decode, aggregate and build geometry for one run.

    The remote fan-out is the only await; everything after it is synchronous.
    """

    ingested = await ingest_sources(
        sources, timeout_s=timeout_s, http_client=http_client
    )
    result = aggregate(ingested)
    features = build_features(list(sources), result, mode=mode, opacity=opacity)

    report = RunReport(
        source_counts=[len(item.codes) for item in ingested],
        unavailable_sources=[item.source.id for item in ingested if not item.available],
        decode_error_count=result.decode_error_count,
        displayed_count=len(result.decoded),
        marker_count=len(result.markers),
        label=label,
    )
    return RenderPlan(features=features, report=report, invalid_codes=result.invalid_codes)


def apply_plan(sync: RenderSync, plan: RenderPlan) -> bool:
    """Upsert every source collection and swap the annotation set.

    Returns False when the surface was not ready or already released; the run
    is skipped and nothing is raised.
    """

    try:
        for geometry in plan.features.geometries:
            sync.upsert(geometry.source_id, geometry.collection, geometry.paint)
        sync.replace_annotations(plan.features.annotations)
    except SurfaceNotReady as e:
        logger.warning("Skipping render upsert: %s", e)
        return False
    return True
