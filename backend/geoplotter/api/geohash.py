from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel

from geoplotter.core.errors import APIError
from geoplotter.utils.geohash import (
    MAX_PRECISION,
    InvalidGeohash,
    decode_bounding_box,
    encode,
)


router = APIRouter(prefix="/v1/geohash", tags=["geohash"])


class PointOut(BaseModel):
    latitude: float
    longitude: float


class BoundingBoxOut(BaseModel):
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float


class DecodeResponse(BaseModel):
    code: str
    precision: int
    point: PointOut
    bbox: BoundingBoxOut


class EncodeResponse(BaseModel):
    code: str
    precision: int


@router.get("/{code}/decode", response_model=DecodeResponse)
async def decode_geohash(code: str) -> DecodeResponse:
    try:
        bbox = decode_bounding_box(code)
    except InvalidGeohash as e:
        raise APIError(
            code="GEOHASH_INVALID",
            message=str(e),
            status_code=422,
            details={"code": code, "reason": e.reason},
        )

    center = bbox.center
    return DecodeResponse(
        code=code.lower(),
        precision=len(code),
        point=PointOut(latitude=center.latitude, longitude=center.longitude),
        bbox=BoundingBoxOut(
            min_lat=bbox.min_lat,
            min_lon=bbox.min_lon,
            max_lat=bbox.max_lat,
            max_lon=bbox.max_lon,
        ),
    )


@router.get("/encode", response_model=EncodeResponse)
async def encode_point(
    latitude: float = Query(..., ge=-90.0, le=90.0),
    longitude: float = Query(..., ge=-180.0, le=180.0),
    precision: int = Query(9, ge=1, le=MAX_PRECISION),
) -> EncodeResponse:
    code = encode(latitude, longitude, precision=precision)
    return EncodeResponse(code=code, precision=precision)
