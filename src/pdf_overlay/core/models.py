# SPDX-License-Identifier: Apache-2.0
"""Data models for per-page overlay state.

This module defines the overlay object variants layered on top of a
rendered page raster and the snapshot format used to keep a page's
edits at rest while another page is being edited.
"""

from __future__ import annotations

import base64
import io
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from PIL import Image

SCHEMA_VERSION = "1.0.0"


def new_object_id() -> str:
    """Generate a fresh overlay object identifier."""
    return uuid.uuid4().hex


class ObjectKind(str, Enum):
    """Discriminant of an overlay object."""

    TEXT = "text"
    REDACTION = "redaction"
    BAKED_PATCH = "baked_patch"
    ERASE = "erase"


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in page-raster pixel space (origin top-left).

    Attributes:
        x: Left X coordinate
        y: Top Y coordinate
        w: Width
        h: Height
    """

    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        """Right X coordinate."""
        return self.x + self.w

    @property
    def bottom(self) -> float:
        """Bottom Y coordinate."""
        return self.y + self.h

    @property
    def is_empty(self) -> bool:
        """Whether the rectangle has no area."""
        return self.w <= 0 or self.h <= 0

    def to_pixel_box(self) -> tuple[int, int, int, int]:
        """Round to a (left, upper, right, lower) box for PIL."""
        left = int(round(self.x))
        upper = int(round(self.y))
        return (left, upper, left + int(round(self.w)), upper + int(round(self.h)))

    def clip(self, width: int, height: int) -> Rect:
        """Clip to a raster of the given size.

        Returns a zero-area rectangle when nothing is left.
        """
        left, upper, right, lower = self.to_pixel_box()
        left = max(0, min(left, width))
        right = max(0, min(right, width))
        upper = max(0, min(upper, height))
        lower = max(0, min(lower, height))
        return Rect(
            x=float(left),
            y=float(upper),
            w=float(max(0, right - left)),
            h=float(max(0, lower - upper)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rect:
        """Create from dictionary."""
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            w=float(data["w"]),
            h=float(data["h"]),
        )


def encode_png(image: Image.Image) -> str:
    """Encode an image as base64 PNG text."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def decode_png(data: str) -> Image.Image:
    """Decode base64 PNG text into an RGBA image."""
    raw = base64.b64decode(data.encode("ascii"), validate=True)
    with Image.open(io.BytesIO(raw)) as img:
        img.load()
        return img.convert("RGBA")


@dataclass(frozen=True)
class TextAnnotation:
    """Free text drawn on the page.

    Attributes:
        x: Left X coordinate of the text box
        y: Top Y coordinate of the text box
        text: Text content
        font_size: Font size in raster pixels
        color: Any color string understood by PIL (e.g. "black", "#ff0000")
        object_id: Internal identifier (ignored by equality)
    """

    x: float
    y: float
    text: str
    font_size: float = 16.0
    color: str = "black"
    object_id: str = field(default_factory=new_object_id, compare=False)

    kind = ObjectKind.TEXT

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "id": self.object_id,
            "x": self.x,
            "y": self.y,
            "text": self.text,
            "font_size": self.font_size,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextAnnotation:
        """Create from dictionary."""
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            text=str(data["text"]),
            font_size=float(data.get("font_size", 16.0)),
            color=str(data.get("color", "black")),
            object_id=data.get("id") or new_object_id(),
        )


@dataclass(frozen=True)
class RedactionMarker:
    """Placeholder rectangle awaiting bake.

    ``scale_x`` and ``scale_y`` hold the live transform applied to the
    marker after it was placed; the effective size is ``rect.w * scale_x``
    by ``rect.h * scale_y``.
    """

    rect: Rect
    scale_x: float = 1.0
    scale_y: float = 1.0
    pending: bool = True
    object_id: str = field(default_factory=new_object_id, compare=False)

    kind = ObjectKind.REDACTION

    @property
    def effective_rect(self) -> Rect:
        """Rectangle with the live scale applied."""
        return Rect(
            x=self.rect.x,
            y=self.rect.y,
            w=self.rect.w * self.scale_x,
            h=self.rect.h * self.scale_y,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "id": self.object_id,
            "rect": self.rect.to_dict(),
            "scale_x": self.scale_x,
            "scale_y": self.scale_y,
            "pending": self.pending,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RedactionMarker:
        """Create from dictionary."""
        return cls(
            rect=Rect.from_dict(data["rect"]),
            scale_x=float(data.get("scale_x", 1.0)),
            scale_y=float(data.get("scale_y", 1.0)),
            object_id=data.get("id") or new_object_id(),
        )


@dataclass(frozen=True, eq=False)
class BakedPatch:
    """Blurred pixels permanently replacing a redaction marker.

    Equality compares the rectangle and the pixel content, not the
    image object identity.
    """

    rect: Rect
    pixels: Image.Image
    selectable: bool = True
    object_id: str = field(default_factory=new_object_id, compare=False)

    kind = ObjectKind.BAKED_PATCH

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BakedPatch):
            return NotImplemented
        return (
            self.rect == other.rect
            and self.selectable == other.selectable
            and self.pixels.size == other.pixels.size
            and self.pixels.mode == other.pixels.mode
            and self.pixels.tobytes() == other.pixels.tobytes()
        )

    __hash__ = None  # type: ignore[assignment]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "id": self.object_id,
            "rect": self.rect.to_dict(),
            "selectable": self.selectable,
            "pixels": encode_png(self.pixels),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BakedPatch:
        """Create from dictionary."""
        return cls(
            rect=Rect.from_dict(data["rect"]),
            pixels=decode_png(data["pixels"]),
            selectable=bool(data.get("selectable", True)),
            object_id=data.get("id") or new_object_id(),
        )


@dataclass(frozen=True)
class EraseMarker:
    """Solid rectangle covering page content."""

    rect: Rect
    fill_color: str = "white"
    object_id: str = field(default_factory=new_object_id, compare=False)

    kind = ObjectKind.ERASE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "id": self.object_id,
            "rect": self.rect.to_dict(),
            "fill_color": self.fill_color,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EraseMarker:
        """Create from dictionary."""
        return cls(
            rect=Rect.from_dict(data["rect"]),
            fill_color=str(data.get("fill_color", "white")),
            object_id=data.get("id") or new_object_id(),
        )


OverlayObject = Union[TextAnnotation, RedactionMarker, BakedPatch, EraseMarker]

_OBJECT_TYPES: dict[ObjectKind, Any] = {
    ObjectKind.TEXT: TextAnnotation,
    ObjectKind.REDACTION: RedactionMarker,
    ObjectKind.BAKED_PATCH: BakedPatch,
    ObjectKind.ERASE: EraseMarker,
}


def object_from_dict(data: dict[str, Any]) -> OverlayObject:
    """Create an overlay object from its dictionary form.

    Raises:
        ValueError: If the kind is missing or unknown
    """
    try:
        kind = ObjectKind(data["kind"])
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unknown overlay object kind: {data.get('kind')!r}") from exc
    result: OverlayObject = _OBJECT_TYPES[kind].from_dict(data)
    return result


@dataclass(frozen=True)
class OverlaySnapshot:
    """At-rest copy of one page's overlay.

    Attributes:
        objects: Overlay objects in z-order (index 0 is the bottom)
        width: Width of the raster the overlay was authored against
        height: Height of the raster the overlay was authored against
        scale: Render scale of that raster
    """

    objects: tuple[OverlayObject, ...] = ()
    width: int | None = None
    height: int | None = None
    scale: float | None = None

    def __len__(self) -> int:
        return len(self.objects)

    @property
    def is_empty(self) -> bool:
        """Whether the snapshot holds no objects."""
        return not self.objects

    @classmethod
    def empty(
        cls,
        width: int | None = None,
        height: int | None = None,
        scale: float | None = None,
    ) -> OverlaySnapshot:
        """Create an empty snapshot."""
        return cls(objects=(), width=width, height=height, scale=scale)

    def count(self, kind: ObjectKind) -> int:
        """Count objects of the given kind."""
        return sum(1 for obj in self.objects if obj.kind is kind)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "version": SCHEMA_VERSION,
            "width": self.width,
            "height": self.height,
            "scale": self.scale,
            "objects": [obj.to_dict() for obj in self.objects],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OverlaySnapshot:
        """Create from dictionary.

        Raises:
            ValueError: If version is unsupported or an object is malformed
        """
        version = data.get("version", SCHEMA_VERSION)
        if version != SCHEMA_VERSION:
            raise ValueError(
                f"Unsupported schema version: {version} (expected {SCHEMA_VERSION})"
            )
        width = data.get("width")
        height = data.get("height")
        scale = data.get("scale")
        return cls(
            objects=tuple(object_from_dict(obj) for obj in data.get("objects", [])),
            width=int(width) if width is not None else None,
            height=int(height) if height is not None else None,
            scale=float(scale) if scale is not None else None,
        )

    def to_json(self, indent: int | None = None) -> str:
        """Export to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> OverlaySnapshot:
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))
