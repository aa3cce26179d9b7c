# SPDX-License-Identifier: Apache-2.0
"""Editing session: one document, its per-page edits, and the live page."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union

from PIL import Image

from pdf_overlay.core.baker import BakeConfig, BakeResult, RedactionBaker
from pdf_overlay.core.compositor import Compositor
from pdf_overlay.core.document import PageSource, SourceDocument
from pdf_overlay.core.errors import NoDocumentError
from pdf_overlay.core.models import (
    EraseMarker,
    OverlayObject,
    Rect,
    RedactionMarker,
    TextAnnotation,
)
from pdf_overlay.core.overlay import LiveOverlay
from pdf_overlay.core.page_store import PageEditStore
from pdf_overlay.core.renderer import OverlayRenderer
from pdf_overlay.pipeline.export_pipeline import (
    ExportConfig,
    ExportPipeline,
    ExportResult,
    ProgressCallback,
)

logger = logging.getLogger(__name__)

DocumentSource = Union[Path, str, bytes]


@dataclass
class SessionConfig:
    """Editing session configuration.

    Attributes:
        scale: Render scale shared by on-screen editing and export.
        font_path: TrueType font for text annotations (Pillow default if None).
        bake: Redaction blur settings.
    """

    scale: float = 1.5
    font_path: Path | None = None
    bake: BakeConfig = field(default_factory=BakeConfig)


class EditorSession:
    """Interactive editing session over a single PDF.

    Navigation, baking, editing and export all run under one lock, so the
    commit -> load -> restore sequence of a page switch is never observed
    half-done and two operations never touch the live overlay at once.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        document_factory: Callable[[DocumentSource], PageSource] = SourceDocument,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self._config = config or SessionConfig()
        if self._config.scale <= 0:
            raise ValueError(f"Scale must be positive, got {self._config.scale}")
        self._document_factory = document_factory
        self._progress_callback = progress_callback
        self._renderer = OverlayRenderer(self._config.font_path)
        self._compositor = Compositor(self._renderer)
        self._baker = RedactionBaker(self._config.bake)
        self._store = PageEditStore()
        self._lock = asyncio.Lock()

        self._document: Optional[PageSource] = None
        self._current_page: Optional[int] = None
        self._live: Optional[LiveOverlay] = None
        self._base: Optional[Image.Image] = None

    @property
    def is_loaded(self) -> bool:
        """Whether a document is open."""
        return self._document is not None

    @property
    def scale(self) -> float:
        """Render scale of the session."""
        return self._config.scale

    @property
    def page_count(self) -> Optional[int]:
        """Page count of the open document."""
        return self._document.page_count if self._document is not None else None

    @property
    def current_page(self) -> Optional[int]:
        """1-based index of the page being edited."""
        return self._current_page

    @property
    def store(self) -> PageEditStore:
        """Per-page overlay snapshots."""
        return self._store

    @property
    def live_overlay(self) -> LiveOverlay:
        """Overlay of the current page."""
        return self._require_live()[0]

    @property
    def base_raster(self) -> Image.Image:
        """Base raster of the current page."""
        return self._require_live()[1]

    def _require_document(self) -> PageSource:
        if self._document is None:
            raise NoDocumentError("No document is loaded")
        return self._document

    def _require_live(self) -> tuple[LiveOverlay, Image.Image, int]:
        self._require_document()
        if self._live is None or self._base is None or self._current_page is None:
            raise NoDocumentError("No page is open")
        return self._live, self._base, self._current_page

    async def open_document(self, source: DocumentSource) -> int:
        """Load a new document and show its first page.

        Prior edits are discarded. If the input cannot be decoded the
        session is left exactly as it was.

        Returns:
            Page count of the new document.

        Raises:
            DecodeError: If the input is not a readable PDF
            RenderError: If the first page cannot be rendered
        """
        async with self._lock:
            document = await asyncio.to_thread(self._document_factory, source)
            try:
                base = await asyncio.to_thread(document.render_page, 1, self._config.scale)
            except Exception:
                _close(document)
                raise

            if self._live is not None:
                self._live.dispose()
            _close(self._document)
            self._store.clear_all()

            self._document = document
            self._base = base
            self._current_page = 1
            self._live = await self._store.switch(
                None,
                None,
                1,
                base.width,
                base.height,
                scale=self._config.scale,
                renderer=self._renderer,
            )
            logger.info("Loaded document with %d pages", document.page_count)
            return document.page_count

    async def go_to_page(self, page_index: int) -> None:
        """Switch the live overlay to another page.

        Raises:
            ValueError: If page_index is outside 1..page_count
            RenderError: If the target page cannot be rendered; the current
                page stays live
        """
        async with self._lock:
            await self._switch_to(page_index)

    async def next_page(self) -> None:
        """Go to the next page; no-op on the last page."""
        async with self._lock:
            _, _, current = self._require_live()
            if current < self._require_document().page_count:
                await self._switch_to(current + 1)

    async def previous_page(self) -> None:
        """Go to the previous page; no-op on the first page."""
        async with self._lock:
            _, _, current = self._require_live()
            if current > 1:
                await self._switch_to(current - 1)

    async def _switch_to(self, page_index: int) -> None:
        live, _, current = self._require_live()
        document = self._require_document()
        count = document.page_count
        if not 1 <= page_index <= count:
            raise ValueError(f"Page {page_index} is out of range (1..{count})")
        if page_index == current:
            return

        # Render first so a failure leaves the current page untouched
        base = await asyncio.to_thread(document.render_page, page_index, self._config.scale)
        self._live = await self._store.switch(
            current,
            live,
            page_index,
            base.width,
            base.height,
            scale=self._config.scale,
            renderer=self._renderer,
        )
        self._base = base
        self._current_page = page_index
        logger.debug("Switched from page %d to page %d", current, page_index)

    async def add_object(self, obj: OverlayObject) -> OverlayObject:
        """Add an arbitrary overlay object on top of the current page."""
        async with self._lock:
            live, _, _ = self._require_live()
            return live.add(obj)

    async def add_text(
        self,
        text: str = "Your Text Here",
        x: float = 100,
        y: float = 100,
        font_size: float = 16,
        color: str = "black",
    ) -> TextAnnotation:
        """Add a text annotation on top of the current page."""
        async with self._lock:
            live, _, _ = self._require_live()
            annotation = TextAnnotation(x=x, y=y, text=text, font_size=font_size, color=color)
            live.add(annotation)
            return annotation

    async def add_redaction(
        self, x: float = 100, y: float = 100, w: float = 100, h: float = 50
    ) -> RedactionMarker:
        """Place a redaction marker on top of the current page."""
        async with self._lock:
            live, _, _ = self._require_live()
            marker = RedactionMarker(rect=Rect(x, y, w, h))
            live.add(marker)
            return marker

    async def add_erase(
        self,
        x: float = 100,
        y: float = 100,
        w: float = 100,
        h: float = 50,
        fill: str = "white",
    ) -> EraseMarker:
        """Place an erase rectangle beneath all other objects."""
        async with self._lock:
            live, _, _ = self._require_live()
            marker = EraseMarker(rect=Rect(x, y, w, h), fill_color=fill)
            live.insert_at_back(marker)
            return marker

    async def bake_redactions(self) -> BakeResult:
        """Bake every pending redaction marker on the current page."""
        async with self._lock:
            live, base, page = self._require_live()
            result = await self._baker.bake(live, base)
            logger.info(
                "Page %d: baked %d redactions, dropped %d", page, result.baked, result.dropped
            )
            return result

    async def preview(self) -> Image.Image:
        """Flattened image of the current page as it would export."""
        async with self._lock:
            live, base, page = self._require_live()
            return await asyncio.to_thread(
                self._compositor.composite, base, live.to_snapshot(), page
            )

    async def export(self, config: ExportConfig | None = None) -> ExportResult:
        """Export every page as a flattened PDF.

        The live page is committed first and restored afterwards, so
        editing can continue after export.

        Raises:
            ValueError: If config.scale differs from the session scale
            ExportError: If any page fails
        """
        config = config or ExportConfig()
        if config.scale is not None and abs(config.scale - self._config.scale) > 1e-6:
            raise ValueError(
                f"Export scale {config.scale} differs from session scale "
                f"{self._config.scale}; overlays would be misplaced"
            )
        export_config = ExportConfig(
            scale=self._config.scale,
            title=config.title,
            producer=config.producer,
            output_path=config.output_path,
        )

        async with self._lock:
            live, base, page = self._require_live()
            # Commit the live page and reattach a fresh overlay for it
            self._live = await self._store.switch(
                page,
                live,
                page,
                base.width,
                base.height,
                scale=self._config.scale,
                renderer=self._renderer,
            )
            pipeline = ExportPipeline(
                self._require_document(),
                self._store,
                config=export_config,
                compositor=self._compositor,
                progress_callback=self._progress_callback,
            )
            return await pipeline.export()

    def edits_summary(self) -> dict[int, dict[str, Any]]:
        """Object counts per edited page (committed state plus the live page)."""
        summary: dict[int, dict[str, Any]] = {}
        for page in self._store.pages():
            snap = self._store.load_into(page)
            if page == self._current_page and self._live is not None:
                snap = self._live.to_snapshot()
            if snap.is_empty:
                continue
            counts: dict[str, Any] = {}
            for obj in snap.objects:
                counts[obj.kind.value] = counts.get(obj.kind.value, 0) + 1
            summary[page] = counts
        return summary

    async def close(self) -> None:
        """Release the document and all edit state."""
        async with self._lock:
            if self._live is not None:
                self._live.dispose()
            _close(self._document)
            self._store.clear_all()
            self._document = None
            self._live = None
            self._base = None
            self._current_page = None


def _close(document: Optional[PageSource]) -> None:
    close = getattr(document, "close", None)
    if callable(close):
        close()
