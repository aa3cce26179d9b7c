# SPDX-License-Identifier: Apache-2.0
"""Live (editable) overlay surface and snapshot/restore.

A LiveOverlay is the mutable object graph attached to the page being
edited. Everything at rest is an OverlaySnapshot; objects themselves are
immutable, so a snapshot can share them with the overlay it was taken
from.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Optional, Union

from PIL import Image

from .errors import OverlayRestoreError
from .models import (
    BakedPatch,
    OverlayObject,
    OverlaySnapshot,
    RedactionMarker,
)
from .renderer import OverlayRenderer

logger = logging.getLogger(__name__)

SnapshotSource = Union[OverlaySnapshot, dict[str, Any], str]


class LiveOverlay:
    """Editable overlay bound to one page raster.

    Attributes:
        width: Raster width in pixels
        height: Raster height in pixels
        scale: Render scale of the raster the overlay is drawn on
    """

    def __init__(
        self,
        width: int,
        height: int,
        scale: Optional[float] = None,
        renderer: Optional[OverlayRenderer] = None,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Overlay size must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.scale = scale
        self._renderer = renderer or OverlayRenderer()
        self._objects: list[OverlayObject] = []
        self._selected_id: Optional[str] = None
        self._disposed = False

    def __len__(self) -> int:
        return len(self._objects)

    @property
    def objects(self) -> tuple[OverlayObject, ...]:
        """Objects in z-order (index 0 is the bottom)."""
        return tuple(self._objects)

    @property
    def disposed(self) -> bool:
        """Whether the overlay has been released."""
        return self._disposed

    @property
    def selected_id(self) -> Optional[str]:
        """Identifier of the selected object, if any."""
        return self._selected_id

    def _ensure_live(self) -> None:
        if self._disposed:
            raise RuntimeError("Overlay has been disposed")

    def _index_of(self, object_id: str) -> int:
        for index, obj in enumerate(self._objects):
            if obj.object_id == object_id:
                return index
        raise KeyError(f"No overlay object with id {object_id}")

    def get(self, object_id: str) -> OverlayObject:
        """Find an object by id."""
        return self._objects[self._index_of(object_id)]

    def add(self, obj: OverlayObject) -> OverlayObject:
        """Add an object on top of all others."""
        self._ensure_live()
        self._objects.append(obj)
        return obj

    def insert_at_back(self, obj: OverlayObject) -> OverlayObject:
        """Add an object beneath all others."""
        self._ensure_live()
        self._objects.insert(0, obj)
        return obj

    def remove(self, object_id: str) -> OverlayObject:
        """Remove an object and return it."""
        self._ensure_live()
        obj = self._objects.pop(self._index_of(object_id))
        if self._selected_id == object_id:
            self._selected_id = None
        return obj

    def replace(self, object_id: str, obj: OverlayObject) -> OverlayObject:
        """Replace an object in place, keeping its z-index."""
        self._ensure_live()
        index = self._index_of(object_id)
        self._objects[index] = obj
        if self._selected_id == object_id:
            self._selected_id = obj.object_id
        return obj

    def select(self, object_id: Optional[str]) -> None:
        """Select an object (None clears the selection)."""
        self._ensure_live()
        if object_id is not None:
            obj = self.get(object_id)
            if isinstance(obj, BakedPatch) and not obj.selectable:
                raise ValueError(f"Object {object_id} is not selectable")
        self._selected_id = object_id

    def move(self, object_id: str, dx: float, dy: float) -> OverlayObject:
        """Translate an object by (dx, dy) pixels."""
        self._ensure_live()
        obj = self.get(object_id)
        if hasattr(obj, "rect"):
            rect = obj.rect
            moved = dataclasses.replace(
                obj, rect=dataclasses.replace(rect, x=rect.x + dx, y=rect.y + dy)
            )
        else:
            moved = dataclasses.replace(obj, x=obj.x + dx, y=obj.y + dy)
        return self.replace(object_id, moved)

    def scale_marker(self, object_id: str, scale_x: float, scale_y: float) -> RedactionMarker:
        """Set the live transform of a redaction marker."""
        self._ensure_live()
        obj = self.get(object_id)
        if not isinstance(obj, RedactionMarker):
            raise TypeError(f"Only redaction markers can be scaled, got {obj.kind.value}")
        if scale_x <= 0 or scale_y <= 0:
            raise ValueError("Scale factors must be positive")
        scaled = dataclasses.replace(obj, scale_x=scale_x, scale_y=scale_y)
        self.replace(object_id, scaled)
        return scaled

    def pending_markers(self) -> list[RedactionMarker]:
        """Redaction markers awaiting bake, in z-order.

        Every marker still on the overlay is unbaked; baking replaces it.
        """
        return [obj for obj in self._objects if isinstance(obj, RedactionMarker)]

    def to_snapshot(self) -> OverlaySnapshot:
        """Capture the current object graph without modifying it."""
        return OverlaySnapshot(
            objects=tuple(self._objects),
            width=self.width,
            height=self.height,
            scale=self.scale,
        )

    def load_snapshot(self, snapshot: OverlaySnapshot) -> None:
        """Replace all objects with those of a snapshot."""
        self._ensure_live()
        self._objects = list(snapshot.objects)
        self._selected_id = None

    def render_to_raster(self, width: int, height: int) -> Image.Image:
        """Render objects onto a transparent RGBA raster."""
        return self._renderer.render(self._objects, width, height)

    def dispose(self) -> None:
        """Release the overlay. Further edits raise RuntimeError."""
        self._objects = []
        self._selected_id = None
        self._disposed = True


def snapshot(live_overlay: LiveOverlay) -> OverlaySnapshot:
    """Capture a live overlay as an at-rest snapshot."""
    return live_overlay.to_snapshot()


def _parse_snapshot(source: SnapshotSource) -> OverlaySnapshot:
    if isinstance(source, OverlaySnapshot):
        return source
    if isinstance(source, str):
        return OverlaySnapshot.from_json(source)
    return OverlaySnapshot.from_dict(source)


def _validate(snap: OverlaySnapshot, width: int, height: int, scale: Optional[float]) -> None:
    if snap.width is not None and snap.height is not None:
        if (snap.width, snap.height) != (width, height):
            raise ValueError(
                f"Snapshot was authored for {snap.width}x{snap.height}, "
                f"target raster is {width}x{height}"
            )
    if snap.scale is not None and scale is not None and abs(snap.scale - scale) > 1e-6:
        raise ValueError(f"Snapshot scale {snap.scale} does not match {scale}")
    for obj in snap.objects:
        if isinstance(obj, BakedPatch):
            left, upper, right, lower = obj.rect.to_pixel_box()
            if obj.pixels.size != (right - left, lower - upper):
                raise ValueError(
                    f"Baked patch {obj.object_id} pixel size {obj.pixels.size} "
                    f"does not match its rectangle"
                )


async def restore(
    source: SnapshotSource,
    width: Optional[int] = None,
    height: Optional[int] = None,
    scale: Optional[float] = None,
    renderer: Optional[OverlayRenderer] = None,
    page: Optional[int] = None,
) -> LiveOverlay:
    """Rebuild a live overlay from a snapshot or its portable form.

    Portable forms (dict or JSON text) are decoded off the event loop,
    since baked patches carry embedded PNG data.

    Args:
        source: Snapshot, snapshot dict, or snapshot JSON
        width: Target raster width (defaults to the snapshot's)
        height: Target raster height (defaults to the snapshot's)
        scale: Target render scale
        renderer: Renderer for the new overlay
        page: Page index, used in error reports

    Raises:
        OverlayRestoreError: If the snapshot is corrupt or was authored
            for a different raster geometry
    """
    try:
        if isinstance(source, OverlaySnapshot):
            snap = source
        else:
            snap = await asyncio.to_thread(_parse_snapshot, source)
        width = width if width is not None else snap.width
        height = height if height is not None else snap.height
        if width is None or height is None:
            raise ValueError("Target raster size is unknown")
        _validate(snap, width, height, scale)
    except (ValueError, KeyError, TypeError, OSError) as exc:
        raise OverlayRestoreError(
            "Snapshot could not be restored", page=page, cause=exc
        ) from exc

    overlay = LiveOverlay(
        width,
        height,
        scale=scale if scale is not None else snap.scale,
        renderer=renderer,
    )
    overlay.load_snapshot(snap)
    logger.debug("Restored %d overlay objects (page %s)", len(snap), page)
    return overlay
