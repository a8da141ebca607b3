from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from geoplotter.services.sources import IngestedSource
from geoplotter.utils.geohash import (
    BoundingBox,
    DecodedPoint,
    InvalidGeohash,
    decode_bounding_box,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedCode:
    """One occurrence of a code in one source."""

    source_id: str
    color_tag: str
    code: str
    point: DecodedPoint
    bbox: BoundingBox


@dataclass
class AggregatedMarker:
    code: str
    color_tag: str
    point: DecodedPoint
    # Source of the first occurrence; determines which collection draws it.
    source_id: str
    count: int = 1

    @property
    def key(self) -> tuple[str, str]:
        return (self.code, self.color_tag)


@dataclass
class AggregationResult:
    markers: list[AggregatedMarker] = field(default_factory=list)
    decoded: list[DecodedCode] = field(default_factory=list)
    decode_error_count: int = 0
    invalid_codes: list[str] = field(default_factory=list)


def aggregate(ingested: Sequence[IngestedSource]) -> AggregationResult:
    """Decode every raw code and fold occurrences by (code, color tag).

    Iteration follows source order, then occurrence order within a source. The
    first occurrence's point is kept; later ones only bump the count.
    Invalid codes are dropped and counted.
    """

    result = AggregationResult()
    by_key: dict[tuple[str, str], AggregatedMarker] = {}

    for item in ingested:
        source = item.source
        for code in item.codes:
            try:
                bbox = decode_bounding_box(code)
            except InvalidGeohash as e:
                result.decode_error_count += 1
                result.invalid_codes.append(code)
                logger.debug("Dropping geohash (source=%s): %s", source.id, e)
                continue

            # Decoding is case-insensitive, so keys are too.
            code = code.lower()
            point = bbox.center
            result.decoded.append(
                DecodedCode(
                    source_id=source.id,
                    color_tag=source.color_tag,
                    code=code,
                    point=point,
                    bbox=bbox,
                )
            )

            key = (code, source.color_tag)
            marker = by_key.get(key)
            if marker is None:
                marker = AggregatedMarker(
                    code=code,
                    color_tag=source.color_tag,
                    point=point,
                    source_id=source.id,
                )
                by_key[key] = marker
                result.markers.append(marker)
            else:
                marker.count += 1

    if result.decode_error_count:
        logger.warning(
            "Dropped %d invalid geohash code(s)", result.decode_error_count
        )
    return result
