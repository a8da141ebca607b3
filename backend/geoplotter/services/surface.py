from __future__ import annotations

"""Server-side rendering surface mirrored by the browser map widget.

The widget polls ``snapshot()`` and applies sources, layers and popups to its
own map instance; the server never talks to the map provider directly.
"""

import copy
import itertools
from collections.abc import Callable
from typing import Any

from geoplotter.services.features import Annotation, PaintStyle


class DuplicateLayerError(Exception):
    pass


class MapSurface:
    def __init__(self, *, ready: bool = False) -> None:
        self._ready = ready
        self._released = False
        self._sources: dict[str, dict[str, Any]] = {}
        self._layers: dict[str, dict[str, Any]] = {}
        self._annotations: dict[str, Annotation] = {}
        self._ids = itertools.count(1)
        self._ready_callbacks: list[Callable[[], None]] = []
        self._viewport_callbacks: list[Callable[[dict[str, Any]], None]] = []
        self.revision = 0

    @property
    def is_ready(self) -> bool:
        return self._ready and not self._released

    @property
    def released(self) -> bool:
        return self._released

    # Widget capabilities

    def on_ready(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the surface is ready (immediately if it is)."""

        if self._released:
            return
        if self._ready:
            callback()
            return
        self._ready_callbacks.append(callback)

    def on_viewport_change(self, callback: Callable[[dict[str, Any]], None]) -> None:
        self._viewport_callbacks.append(callback)

    def mark_ready(self) -> None:
        if self._ready or self._released:
            return
        self._ready = True
        callbacks, self._ready_callbacks = self._ready_callbacks, []
        for cb in callbacks:
            cb()

    def viewport_changed(self, viewport: dict[str, Any]) -> None:
        for cb in list(self._viewport_callbacks):
            cb(viewport)

    # Mutations (RenderSync only)

    def has_source(self, source_id: str) -> bool:
        return source_id in self._sources

    def add_source(self, source_id: str, data: dict[str, Any]) -> None:
        if source_id in self._sources:
            raise ValueError(f"source already exists: {source_id!r}")
        self._sources[source_id] = copy.deepcopy(data)
        self.revision += 1

    def set_source_data(self, source_id: str, data: dict[str, Any]) -> None:
        if source_id not in self._sources:
            raise KeyError(source_id)
        self._sources[source_id] = copy.deepcopy(data)
        self.revision += 1

    def add_layer(self, layer_id: str, source_id: str, paint: PaintStyle) -> None:
        if layer_id in self._layers:
            raise DuplicateLayerError(f"layer already exists: {layer_id!r}")
        self._layers[layer_id] = {
            "id": layer_id,
            "source": source_id,
            "type": paint.layer_type,
            "paint": paint.to_paint(),
        }
        self.revision += 1

    def add_annotation(self, annotation: Annotation) -> str:
        annotation_id = f"ann-{next(self._ids)}"
        self._annotations[annotation_id] = annotation
        self.revision += 1
        return annotation_id

    def remove_annotation(self, annotation_id: str) -> None:
        if self._annotations.pop(annotation_id, None) is not None:
            self.revision += 1

    def release(self) -> None:
        self._released = True
        self._sources.clear()
        self._layers.clear()
        self._annotations.clear()
        self._ready_callbacks.clear()
        self._viewport_callbacks.clear()

    # Reads

    def source_data(self, source_id: str) -> dict[str, Any]:
        return self._sources[source_id]

    def source_ids(self) -> list[str]:
        return list(self._sources)

    def layer_ids(self) -> list[str]:
        return list(self._layers)

    def annotation_count(self) -> int:
        return len(self._annotations)

    def snapshot(self) -> dict[str, Any]:
        return {
            "revision": self.revision,
            "ready": self.is_ready,
            "sources": copy.deepcopy(self._sources),
            "layers": list(self._layers.values()),
            "annotations": [
                {
                    "id": annotation_id,
                    "latitude": a.latitude,
                    "longitude": a.longitude,
                    "text": a.text,
                    "color": a.color,
                }
                for annotation_id, a in self._annotations.items()
            ],
        }
