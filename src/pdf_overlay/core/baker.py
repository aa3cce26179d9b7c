# SPDX-License-Identifier: Apache-2.0
"""Redaction baking.

Turns pending redaction markers into blurred pixel patches cut from the
page's base raster.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from PIL import Image, ImageFilter

from .models import BakedPatch, Rect, RedactionMarker
from .overlay import LiveOverlay

logger = logging.getLogger(__name__)

# Gaussian radius (pixels) at blur factor 1.0
DEFAULT_BLUR_RADIUS = 10.0


@dataclass
class BakeConfig:
    """Redaction blur configuration.

    Attributes:
        blur_factor: Blur intensity relative to default_radius.
        default_radius: Gaussian blur radius in pixels at factor 1.0.
    """

    blur_factor: float = 0.8
    default_radius: float = DEFAULT_BLUR_RADIUS

    def __post_init__(self) -> None:
        if self.blur_factor <= 0:
            raise ValueError(f"blur_factor must be positive, got {self.blur_factor}")
        if self.default_radius <= 0:
            raise ValueError(f"default_radius must be positive, got {self.default_radius}")

    @property
    def radius(self) -> float:
        """Effective Gaussian blur radius."""
        return self.blur_factor * self.default_radius


@dataclass
class BakeResult:
    """Outcome of one bake pass."""

    baked: int = 0
    dropped: int = 0

    @property
    def total(self) -> int:
        """Markers processed in the pass."""
        return self.baked + self.dropped


class RedactionBaker:
    """Bake redaction markers into blurred patches."""

    def __init__(self, config: BakeConfig | None = None) -> None:
        """Initialize RedactionBaker.

        Args:
            config: Blur configuration.
        """
        self._config = config or BakeConfig()

    def blur(self, region: Image.Image) -> Image.Image:
        """Blur an extracted region."""
        return region.filter(ImageFilter.GaussianBlur(radius=self._config.radius))

    async def bake(self, overlay: LiveOverlay, base_raster: Image.Image) -> BakeResult:
        """Bake every pending redaction marker of a live overlay.

        All regions are cut from the untouched base raster before any blur
        runs, so overlapping markers never blur each other's output. Blurs
        run concurrently off the event loop; the overlay is only updated
        once all of them have finished. If any blur fails, the overlay is
        left exactly as it was, including markers outside the raster.

        Args:
            overlay: Live overlay of the page.
            base_raster: The page's base raster, at the overlay's scale.

        Returns:
            Counts of baked and dropped markers.
        """
        if base_raster.size != (overlay.width, overlay.height):
            raise ValueError(
                f"Base raster {base_raster.size} does not match overlay "
                f"{overlay.width}x{overlay.height}"
            )

        markers = overlay.pending_markers()
        result = BakeResult()
        if not markers:
            return result

        jobs: list[tuple[RedactionMarker, Rect, Image.Image]] = []
        dropped: list[RedactionMarker] = []
        for marker in markers:
            target = marker.effective_rect.clip(base_raster.width, base_raster.height)
            if target.is_empty:
                logger.warning(
                    "Dropping redaction %s: %s lies outside the %dx%d raster",
                    marker.object_id,
                    marker.effective_rect,
                    base_raster.width,
                    base_raster.height,
                )
                dropped.append(marker)
                continue
            jobs.append((marker, target, base_raster.crop(target.to_pixel_box())))

        blurred = await asyncio.gather(
            *(asyncio.to_thread(self.blur, region) for _, _, region in jobs)
        )

        for marker in dropped:
            overlay.remove(marker.object_id)
            result.dropped += 1
        for (marker, target, _), pixels in zip(jobs, blurred):
            patch = BakedPatch(rect=target, pixels=pixels)
            overlay.replace(marker.object_id, patch)
            result.baked += 1
            logger.debug(
                "Baked redaction %s into patch %s at %s",
                marker.object_id,
                patch.object_id,
                target,
            )

        return result
