# SPDX-License-Identifier: Apache-2.0
"""Flatten a page raster and its overlay into one image."""

from __future__ import annotations

import logging
from typing import Optional

from PIL import Image

from .errors import CompositeError
from .models import OverlaySnapshot
from .renderer import OverlayRenderer

logger = logging.getLogger(__name__)


class Compositor:
    """Merge base rasters with rendered overlays using "over" blending."""

    def __init__(self, renderer: Optional[OverlayRenderer] = None) -> None:
        """Initialize Compositor.

        Args:
            renderer: Overlay renderer. A default OverlayRenderer is used
                when None.
        """
        self._renderer = renderer or OverlayRenderer()

    def composite(
        self,
        base_raster: Image.Image,
        overlay: OverlaySnapshot,
        page: Optional[int] = None,
    ) -> Image.Image:
        """Alpha-composite an overlay snapshot over a base raster.

        Args:
            base_raster: Page raster. Never modified.
            overlay: Snapshot to render, bottom object first.
            page: Page index, used in error reports.

        Returns:
            New RGBA image with the same size as base_raster.

        Raises:
            CompositeError: If the overlay geometry does not match the raster
        """
        width, height = base_raster.size
        if overlay.width is not None and overlay.height is not None:
            if (overlay.width, overlay.height) != (width, height):
                raise CompositeError(
                    f"Overlay authored for {overlay.width}x{overlay.height}, "
                    f"base raster is {width}x{height}",
                    page=page,
                )

        if base_raster.mode != "RGBA":
            base = base_raster.convert("RGBA")
        else:
            base = base_raster.copy()
        if overlay.is_empty:
            return base

        layer = self._renderer.render(overlay.objects, width, height)
        if layer.size != base.size:
            raise CompositeError(
                f"Rendered overlay is {layer.size[0]}x{layer.size[1]}, "
                f"base raster is {width}x{height}",
                page=page,
            )

        flattened = Image.alpha_composite(base, layer)
        logger.debug("Composited %d objects onto %dx%d raster", len(overlay), width, height)
        return flattened
