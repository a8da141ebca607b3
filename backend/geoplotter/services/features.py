from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from geoplotter.services.aggregation import (
    AggregatedMarker,
    AggregationResult,
    DecodedCode,
)
from geoplotter.services.sources import SourceSpec
from geoplotter.utils.geohash import BoundingBox


class RenderMode(str, enum.Enum):
    BOXES = "boxes"
    MARKERS = "markers"


@dataclass(frozen=True)
class PaintStyle:
    color: str
    opacity: float = 0.4
    layer_type: str = "fill"

    def to_paint(self) -> dict[str, Any]:
        # Display-layer paint properties in the map widget's naming.
        color = f"#{self.color}"
        if self.layer_type == "circle":
            return {"circle-color": color, "circle-opacity": self.opacity}
        return {"fill-color": color, "fill-opacity": self.opacity}


@dataclass(frozen=True)
class Annotation:
    """Point label drawn next to the geometry (popup text)."""

    latitude: float
    longitude: float
    text: str
    color: str


@dataclass
class SourceGeometry:
    source_id: str
    collection: dict[str, Any]
    paint: PaintStyle


@dataclass
class FeatureSet:
    geometries: list[SourceGeometry] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)


def bbox_ring(bbox: BoundingBox) -> list[list[float]]:
    """Explicitly closed five-point ring, counter-clockwise from south-west."""

    return [
        [bbox.min_lon, bbox.min_lat],
        [bbox.max_lon, bbox.min_lat],
        [bbox.max_lon, bbox.max_lat],
        [bbox.min_lon, bbox.max_lat],
        [bbox.min_lon, bbox.min_lat],
    ]


def polygon_feature(item: DecodedCode) -> dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [bbox_ring(item.bbox)]},
        "properties": {"code": item.code},
    }


def marker_feature(marker: AggregatedMarker) -> dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {
            "type": "Point",
            "coordinates": [marker.point.longitude, marker.point.latitude],
        },
        "properties": {
            "code": marker.code,
            "count": marker.count,
            "color": marker.color_tag,
        },
    }


def feature_collection(features: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": features}


def build_features(
    sources: list[SourceSpec],
    result: AggregationResult,
    *,
    mode: RenderMode = RenderMode.BOXES,
    opacity: float = 0.4,
) -> FeatureSet:
    """Turn one aggregation into per-source collections plus annotations.

    Every source gets a collection, even an empty one, so a source that stops
    returning codes clears its previous geometry on the next upsert.
    """

    grouped: dict[str, list[dict[str, Any]]] = {s.id: [] for s in sources}
    annotations: list[Annotation] = []

    if mode is RenderMode.BOXES:
        # Not deduplicated: each occurrence draws its own box and label.
        for item in result.decoded:
            grouped.setdefault(item.source_id, []).append(polygon_feature(item))
            annotations.append(
                Annotation(
                    latitude=item.point.latitude,
                    longitude=item.point.longitude,
                    text=item.code,
                    color=item.color_tag,
                )
            )
    else:
        for marker in result.markers:
            grouped.setdefault(marker.source_id, []).append(marker_feature(marker))
            annotations.append(
                Annotation(
                    latitude=marker.point.latitude,
                    longitude=marker.point.longitude,
                    text=str(marker.count),
                    color=marker.color_tag,
                )
            )

    layer_type = "fill" if mode is RenderMode.BOXES else "circle"
    colors = {s.id: s.color_tag for s in sources}
    out = FeatureSet(annotations=annotations)
    for source_id, features in grouped.items():
        out.geometries.append(
            SourceGeometry(
                source_id=source_id,
                collection=feature_collection(features),
                paint=PaintStyle(
                    color=colors.get(source_id, "FF0000"),
                    opacity=opacity,
                    layer_type=layer_type,
                ),
            )
        )
    return out
