# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: in-memory PDFs and fake page sources."""

from __future__ import annotations

import io
from typing import Callable

import pytest
from PIL import Image


def patterned_raster(width: int, height: int, seed: int = 0) -> Image.Image:
    """Non-uniform RGBA raster, so blurring visibly changes pixels."""
    tile = Image.new("L", (8, 8), 0)
    tile.paste(255, (0, 0, 4, 4))
    tile.paste(255, (4, 4, 8, 8))
    checker = Image.new("L", (width, height))
    for y in range(0, height, 8):
        for x in range(0, width, 8):
            checker.paste(tile, (x, y))

    red = Image.linear_gradient("L").resize((width, height))
    green = (
        Image.linear_gradient("L")
        .transpose(Image.Transpose.ROTATE_90)
        .resize((width, height))
    )
    blue = checker.point(lambda v: (v + 60 * seed) % 256)
    alpha = Image.new("L", (width, height), 255)
    return Image.merge("RGBA", (red, green, blue, alpha))


class FakePageSource:
    """PageSource returning deterministic patterned rasters.

    Page sizes are given in points; rasters are sized ``points * scale``.
    """

    def __init__(self, sizes: list[tuple[int, int]], fail_on: int | None = None) -> None:
        self.sizes = sizes
        self.fail_on = fail_on
        self.render_calls: list[tuple[int, float]] = []
        self.closed = False
        self._cache: dict[tuple[int, float], Image.Image] = {}

    @property
    def page_count(self) -> int:
        return len(self.sizes)

    def render_page(self, index: int, scale: float) -> Image.Image:
        self.render_calls.append((index, scale))
        if index == self.fail_on:
            raise RuntimeError(f"cannot render page {index}")
        key = (index, scale)
        if key not in self._cache:
            width, height = self.sizes[index - 1]
            self._cache[key] = patterned_raster(
                int(round(width * scale)), int(round(height * scale)), seed=index
            )
        return self._cache[key].copy()

    def close(self) -> None:
        self.closed = True


class CapturingBuilder:
    """DocumentBuilder that keeps added pages instead of writing a PDF."""

    def __init__(self, fail_on_page: int | None = None) -> None:
        self.pages: list[tuple[Image.Image, float, float]] = []
        self.fail_on_page = fail_on_page
        self.finalized = False
        self.closed = False

    def add_page(self, image: Image.Image, width: float, height: float) -> None:
        if self.fail_on_page is not None and len(self.pages) + 1 == self.fail_on_page:
            raise OSError("disk full")
        self.pages.append((image.copy(), width, height))

    def finalize(self) -> bytes:
        self.finalized = True
        return b"%PDF-fake"

    def close(self) -> None:
        self.closed = True


def build_pdf(sizes: list[tuple[int, int]]) -> bytes:
    """Build a PDF whose pages are images of the given point sizes."""
    images = [
        Image.new("RGB", size, color=(255, 255 - 40 * i, 255))
        for i, size in enumerate(sizes)
    ]
    buffer = io.BytesIO()
    images[0].save(
        buffer,
        format="PDF",
        resolution=72.0,
        save_all=True,
        append_images=images[1:],
    )
    return buffer.getvalue()


@pytest.fixture
def pdf_factory() -> Callable[[list[tuple[int, int]]], bytes]:
    """Return a function that builds in-memory PDFs."""
    return build_pdf


@pytest.fixture
def fake_source() -> type[FakePageSource]:
    """Return the FakePageSource class."""
    return FakePageSource


@pytest.fixture
def capturing_builder() -> type[CapturingBuilder]:
    """Return the CapturingBuilder class."""
    return CapturingBuilder


@pytest.fixture
def raster_factory() -> Callable[..., Image.Image]:
    """Return a function that builds patterned rasters."""
    return patterned_raster


@pytest.fixture
def two_page_pdf() -> bytes:
    """Two pages: 200x300 pt and 300x200 pt."""
    return build_pdf([(200, 300), (300, 200)])
