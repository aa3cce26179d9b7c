# SPDX-License-Identifier: Apache-2.0
"""Overlay rasterization with Pillow.

Draws overlay objects in z-order onto a transparent RGBA layer that can
be alpha-composited over a page raster.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from PIL import Image, ImageColor, ImageDraw, ImageFont

from .models import (
    BakedPatch,
    EraseMarker,
    OverlayObject,
    RedactionMarker,
    Rect,
    TextAnnotation,
)

# Pending redaction preview: rgba(0,0,0,0.1) fill, dashed black outline
MARKER_FILL = (0, 0, 0, 26)
MARKER_OUTLINE = (0, 0, 0, 255)
MARKER_DASH = (5, 5)

TRANSPARENT = (0, 0, 0, 0)


@lru_cache(maxsize=32)
def _load_font(font_path: Optional[str], size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    if font_path is not None:
        return ImageFont.truetype(font_path, size)
    return ImageFont.load_default(size=size)


def _rgba(color: str) -> tuple[int, int, int, int]:
    r, g, b, a = ImageColor.getcolor(color, "RGBA")  # type: ignore[misc]
    return (r, g, b, a)


class OverlayRenderer:
    """Render overlay objects to a transparent raster."""

    def __init__(self, font_path: Optional[Path] = None) -> None:
        """Initialize OverlayRenderer.

        Args:
            font_path: TrueType font for text annotations. Pillow's
                built-in font is used when None.
        """
        self._font_path = str(font_path) if font_path is not None else None

    def render(
        self, objects: Iterable[OverlayObject], width: int, height: int
    ) -> Image.Image:
        """Render objects (bottom first) to a new transparent RGBA image."""
        layer = Image.new("RGBA", (width, height), TRANSPARENT)
        for obj in objects:
            if isinstance(obj, BakedPatch):
                self._draw_patch(layer, obj)
            elif isinstance(obj, EraseMarker):
                self._draw_erase(layer, obj)
            elif isinstance(obj, TextAnnotation):
                self._draw_text(layer, obj)
            elif isinstance(obj, RedactionMarker):
                self._draw_marker(layer, obj)
            else:
                raise TypeError(f"Unsupported overlay object: {type(obj).__name__}")
        return layer

    def _draw_patch(self, layer: Image.Image, patch: BakedPatch) -> None:
        left, upper, _, _ = patch.rect.to_pixel_box()
        pixels = patch.pixels.convert("RGBA")
        # Opaque: the patch replaces whatever lies underneath it in the layer
        layer.paste(pixels, (left, upper))

    def _draw_erase(self, layer: Image.Image, marker: EraseMarker) -> None:
        _fill_rect(layer, marker.rect, _rgba(marker.fill_color))

    def _draw_text(self, layer: Image.Image, annotation: TextAnnotation) -> None:
        if not annotation.text:
            return
        font = _load_font(self._font_path, max(1, int(round(annotation.font_size))))
        draw = ImageDraw.Draw(layer)
        draw.multiline_text(
            (annotation.x, annotation.y),
            annotation.text,
            fill=_rgba(annotation.color),
            font=font,
        )

    def _draw_marker(self, layer: Image.Image, marker: RedactionMarker) -> None:
        box = _draw_box(marker.effective_rect)
        if box is None:
            return
        _fill_rect(layer, marker.effective_rect, MARKER_FILL)
        draw = ImageDraw.Draw(layer)
        left, upper, right, lower = box
        for start, end in _dashes(left, right):
            draw.line([(start, upper), (end, upper)], fill=MARKER_OUTLINE)
            draw.line([(start, lower), (end, lower)], fill=MARKER_OUTLINE)
        for start, end in _dashes(upper, lower):
            draw.line([(left, start), (left, end)], fill=MARKER_OUTLINE)
            draw.line([(right, start), (right, end)], fill=MARKER_OUTLINE)


def _draw_box(rect: Rect) -> Optional[tuple[int, int, int, int]]:
    """Inclusive pixel box for ImageDraw, or None for empty rects."""
    left, upper, right, lower = rect.to_pixel_box()
    if right <= left or lower <= upper:
        return None
    return (left, upper, right - 1, lower - 1)


def _dashes(start: int, end: int) -> list[tuple[int, int]]:
    on, off = MARKER_DASH
    segments = []
    pos = start
    while pos <= end:
        segments.append((pos, min(pos + on - 1, end)))
        pos += on + off
    return segments


def _fill_rect(layer: Image.Image, rect: Rect, fill: tuple[int, int, int, int]) -> None:
    """Blend a solid rectangle over the layer ("over" compositing)."""
    left, upper, right, lower = rect.to_pixel_box()
    left, upper = max(0, left), max(0, upper)
    right, lower = min(layer.width, right), min(layer.height, lower)
    if right <= left or lower <= upper:
        return
    block = Image.new("RGBA", (right - left, lower - upper), fill)
    layer.alpha_composite(block, dest=(left, upper))
