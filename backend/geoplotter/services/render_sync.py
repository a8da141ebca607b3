from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from geoplotter.services.features import Annotation, PaintStyle


logger = logging.getLogger(__name__)


class SurfaceNotReady(Exception):
    """The rendering surface cannot accept mutations right now."""


class SurfaceReleased(SurfaceNotReady):
    """The owning view was deactivated; the surface must not be touched."""


class RenderSurface(Protocol):
    """Capabilities RenderSync needs from the map widget's addressable store."""

    @property
    def is_ready(self) -> bool: ...

    def has_source(self, source_id: str) -> bool: ...

    def add_source(self, source_id: str, data: dict[str, Any]) -> None: ...

    def set_source_data(self, source_id: str, data: dict[str, Any]) -> None: ...

    def add_layer(self, layer_id: str, source_id: str, paint: PaintStyle) -> None: ...

    def add_annotation(self, annotation: Annotation) -> str: ...

    def remove_annotation(self, annotation_id: str) -> None: ...

    def on_ready(self, callback: Callable[[], None]) -> None: ...

    def on_viewport_change(self, callback: Callable[[dict[str, Any]], None]) -> None: ...

    def release(self) -> None: ...


class SurfaceHandle:
    """Explicitly owned reference to a surface.

    Created when a view activates, released when it deactivates. After release
    every ``acquire`` raises SurfaceReleased so late writers become no-ops.
    """

    def __init__(self, surface: RenderSurface) -> None:
        self._surface: RenderSurface | None = surface

    @property
    def alive(self) -> bool:
        return self._surface is not None

    def acquire(self) -> RenderSurface:
        surface = self._surface
        if surface is None:
            raise SurfaceReleased("surface has been released")
        if not surface.is_ready:
            raise SurfaceNotReady("surface is not ready")
        return surface

    def release(self) -> None:
        surface, self._surface = self._surface, None
        if surface is not None:
            surface.release()


def layer_id_for(source_id: str) -> str:
    return f"{source_id}-layer"


class RenderSync:
    """Reconciles geometry and annotations into a surface with upsert semantics."""

    def __init__(self, handle: SurfaceHandle) -> None:
        self._handle = handle
        self._annotation_ids: list[str] = []

    @property
    def handle(self) -> SurfaceHandle:
        return self._handle

    def upsert(
        self, source_id: str, collection: dict[str, Any], paint: PaintStyle
    ) -> bool:
        """Create the source and its layer if absent, else replace its data.

        Returns True when the source was created. Raises SurfaceNotReady (or
        SurfaceReleased) without mutating anything.
        """

        surface = self._handle.acquire()
        if not surface.has_source(source_id):
            surface.add_source(source_id, collection)
            surface.add_layer(layer_id_for(source_id), source_id, paint)
            return True

        # Never recreate the layer: it keeps z-order and avoids duplicate ids.
        surface.set_source_data(source_id, collection)
        return False

    def replace_annotations(self, annotations: list[Annotation]) -> list[str]:
        """Remove the previous run's annotations, then add the new set."""

        surface = self._handle.acquire()
        previous, self._annotation_ids = self._annotation_ids, []
        for annotation_id in previous:
            surface.remove_annotation(annotation_id)
        for annotation in annotations:
            self._annotation_ids.append(surface.add_annotation(annotation))
        return list(self._annotation_ids)
