from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from geoplotter.api.deps import get_registry, get_view_config
from geoplotter.core.errors import APIError, view_not_found
from geoplotter.services.views import ViewConfig, ViewLimitReached, ViewRegistry


router = APIRouter(prefix="/v1/views", tags=["views"])


class ViewportIn(BaseModel):
    longitude: float = Field(ge=-180.0, le=180.0)
    latitude: float = Field(ge=-90.0, le=90.0)
    zoom: float = Field(ge=0.0, le=24.0)


@router.post("", status_code=201)
async def mount_view(
    config: ViewConfig = Depends(get_view_config),
    registry: ViewRegistry = Depends(get_registry),
) -> dict[str, Any]:
    try:
        view = await registry.mount(config)
    except ViewLimitReached as e:
        raise APIError(
            code="VIEW_LIMIT_REACHED",
            message=f"Too many mounted views ({e})",
            status_code=429,
        )
    return view.state()


@router.get("/{view_id}")
async def get_view(
    view_id: str,
    registry: ViewRegistry = Depends(get_registry),
) -> dict[str, Any]:
    view = registry.get(view_id)
    if view is None:
        raise view_not_found(view_id)
    return view.state()


@router.put("/{view_id}")
async def reconfigure_view(
    view_id: str,
    config: ViewConfig = Depends(get_view_config),
    registry: ViewRegistry = Depends(get_registry),
) -> dict[str, Any]:
    # Old timer is cancelled and its surface released before the new mount.
    view = await registry.reconfigure(view_id, config)
    if view is None:
        raise view_not_found(view_id)
    return view.state()


@router.put("/{view_id}/viewport")
async def update_viewport(
    view_id: str,
    payload: ViewportIn,
    registry: ViewRegistry = Depends(get_registry),
) -> dict[str, Any]:
    view = registry.get(view_id)
    if view is None:
        raise view_not_found(view_id)
    view.surface.viewport_changed(payload.model_dump())
    return {"view_id": view.id, "viewport": view.viewport}


@router.delete("/{view_id}", status_code=204)
async def unmount_view(
    view_id: str,
    registry: ViewRegistry = Depends(get_registry),
) -> Response:
    if not registry.unmount(view_id):
        raise view_not_found(view_id)
    return Response(status_code=204)
