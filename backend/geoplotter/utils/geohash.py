from __future__ import annotations

"""Stdlib-only geohash encode/decode.

Codes are case-insensitive on input and 1..12 characters long; each character
carries 5 bits, alternating longitude/latitude starting with longitude.
"""

from dataclasses import dataclass

_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {c: i for i, c in enumerate(_BASE32)}

MAX_PRECISION = 12


class InvalidGeohash(ValueError):
    """Raised for empty, over-long, or out-of-alphabet geohash codes."""

    def __init__(self, code: str, reason: str) -> None:
        super().__init__(f"Invalid geohash {code!r}: {reason}")
        self.code = code
        self.reason = reason


@dataclass(frozen=True, slots=True)
class DecodedPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class BoundingBox:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    def contains(self, point: DecodedPoint) -> bool:
        return (
            self.min_lat <= point.latitude <= self.max_lat
            and self.min_lon <= point.longitude <= self.max_lon
        )

    def contains_box(self, other: BoundingBox) -> bool:
        return (
            self.min_lat <= other.min_lat
            and other.max_lat <= self.max_lat
            and self.min_lon <= other.min_lon
            and other.max_lon <= self.max_lon
        )

    @property
    def center(self) -> DecodedPoint:
        return DecodedPoint(
            latitude=(self.min_lat + self.max_lat) / 2.0,
            longitude=(self.min_lon + self.max_lon) / 2.0,
        )


def encode(latitude: float, longitude: float, *, precision: int = 9) -> str:
    if precision <= 0 or precision > MAX_PRECISION:
        raise ValueError(f"precision must be in 1..{MAX_PRECISION}")
    if not -90.0 <= latitude <= 90.0:
        raise ValueError("latitude must be in [-90, 90]")
    if not -180.0 <= longitude <= 180.0:
        raise ValueError("longitude must be in [-180, 180]")

    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0

    bits = [16, 8, 4, 2, 1]
    bit = 0
    ch = 0
    even = True
    out: list[str] = []

    while len(out) < precision:
        if even:
            mid = (lon_min + lon_max) / 2.0
            if longitude >= mid:
                ch |= bits[bit]
                lon_min = mid
            else:
                lon_max = mid
        else:
            mid = (lat_min + lat_max) / 2.0
            if latitude >= mid:
                ch |= bits[bit]
                lat_min = mid
            else:
                lat_max = mid

        even = not even
        if bit < 4:
            bit += 1
            continue

        out.append(_BASE32[ch])
        bit = 0
        ch = 0

    return "".join(out)


def decode_bounding_box(geohash: str) -> BoundingBox:
    """Narrow both axes by bisection and return the final ranges."""

    if not geohash:
        raise InvalidGeohash(geohash, "must be non-empty")
    if len(geohash) > MAX_PRECISION:
        raise InvalidGeohash(geohash, f"longer than {MAX_PRECISION} characters")

    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0
    even = True

    for c in geohash.lower():
        try:
            cd = _DECODE_MAP[c]
        except KeyError as e:
            raise InvalidGeohash(geohash, f"invalid character {c!r}") from e

        for mask in (16, 8, 4, 2, 1):
            if even:
                mid = (lon_min + lon_max) / 2.0
                if cd & mask:
                    lon_min = mid
                else:
                    lon_max = mid
            else:
                mid = (lat_min + lat_max) / 2.0
                if cd & mask:
                    lat_min = mid
                else:
                    lat_max = mid
            even = not even

    return BoundingBox(
        min_lat=lat_min, min_lon=lon_min, max_lat=lat_max, max_lon=lon_max
    )


def decode(geohash: str) -> DecodedPoint:
    """Center of the cell."""

    return decode_bounding_box(geohash).center

