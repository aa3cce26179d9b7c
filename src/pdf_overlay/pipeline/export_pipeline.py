# SPDX-License-Identifier: Apache-2.0
"""Export pipeline: flatten every page and assemble the output PDF."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol, runtime_checkable

from pdf_overlay.core.compositor import Compositor
from pdf_overlay.core.document import PageSource
from pdf_overlay.core.errors import CompositeError, ExportError, RenderError
from pdf_overlay.core.models import ObjectKind
from pdf_overlay.core.page_store import PageEditStore
from pdf_overlay.output.pdf_writer import DEFAULT_PRODUCER, DocumentBuilder, PdfBuilder

logger = logging.getLogger(__name__)

DEFAULT_SCALE = 1.5


@runtime_checkable
class ProgressCallback(Protocol):
    """Receives ("export", pages_done, page_count, message) after each page."""

    def __call__(self, stage: str, current: int, total: int, message: str = "") -> None: ...


@dataclass
class ExportConfig:
    """Export configuration."""

    # Render scale; DEFAULT_SCALE when None
    scale: float | None = None

    title: str | None = None
    producer: str = DEFAULT_PRODUCER

    # Also write the result here when set
    output_path: Path | None = None


@dataclass
class ExportResult:
    """Export pipeline result."""

    pdf_bytes: bytes
    stats: dict[str, Any] | None = None


class ExportPipeline:
    """Render, composite, and reassemble every page in order.

    Pages are processed strictly sequentially. The caller is responsible
    for committing the live page to the store (and finishing any pending
    bake) before export starts.
    """

    def __init__(
        self,
        document: PageSource,
        store: PageEditStore,
        config: ExportConfig | None = None,
        compositor: Compositor | None = None,
        builder_factory: Callable[[ExportConfig], DocumentBuilder] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize ExportPipeline."""
        self._document = document
        self._store = store
        self._config = config or ExportConfig()
        self._compositor = compositor or Compositor()
        self._builder_factory = builder_factory or _default_builder
        self._progress_callback = progress_callback

    async def export(self) -> ExportResult:
        """Produce the flattened output document.

        Raises:
            ExportError: If any page fails; no output is produced.
        """
        scale = self._config.scale if self._config.scale is not None else DEFAULT_SCALE
        total = self._document.page_count
        builder = self._builder_factory(self._config)
        stats = {"pages": 0, "baked_patches": 0, "annotations": 0}

        try:
            for index in range(1, total + 1):
                await self._export_page(builder, index, scale, stats)
                self._notify("export", index, total)
            pdf_bytes = builder.finalize()
        except ExportError:
            _discard(builder)
            raise
        except Exception as exc:
            _discard(builder)
            raise ExportError("Failed to assemble output document", cause=exc) from exc

        if self._config.output_path is not None:
            output_path = self._config.output_path
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(pdf_bytes)

        logger.info("Exported %d pages (%d bytes)", total, len(pdf_bytes))
        return ExportResult(pdf_bytes=pdf_bytes, stats=stats)

    async def _export_page(
        self,
        builder: DocumentBuilder,
        index: int,
        scale: float,
        stats: dict[str, int],
    ) -> None:
        try:
            base = await asyncio.to_thread(self._document.render_page, index, scale)
        except RenderError as exc:
            raise ExportError("Page rasterization failed", page=index, cause=exc) from exc
        except Exception as exc:
            raise ExportError(
                "Page rasterization failed",
                page=index,
                cause=RenderError("Failed to render page", page=index, cause=exc),
            ) from exc

        snap = self._store.load_into(index)
        if snap.count(ObjectKind.REDACTION):
            logger.warning(
                "Page %d has %d unbaked redaction markers; they export as outlines",
                index,
                snap.count(ObjectKind.REDACTION),
            )
        if snap.scale is not None and abs(snap.scale - scale) > 1e-6:
            raise ExportError(
                f"Overlay authored at scale {snap.scale}, export renders at {scale}",
                page=index,
            )

        try:
            flattened = await asyncio.to_thread(
                self._compositor.composite, base, snap, index
            )
        except CompositeError as exc:
            raise ExportError("Page compositing failed", page=index, cause=exc) from exc
        except Exception as exc:
            raise ExportError(
                "Page compositing failed",
                page=index,
                cause=CompositeError(str(exc), page=index, cause=exc),
            ) from exc

        try:
            builder.add_page(flattened, flattened.width, flattened.height)
        except Exception as exc:
            raise ExportError("Failed to add output page", page=index, cause=exc) from exc

        stats["pages"] += 1
        stats["baked_patches"] += snap.count(ObjectKind.BAKED_PATCH)
        stats["annotations"] += len(snap)
        logger.info(
            "Exported page %d: %dx%d, %d overlay objects",
            index,
            flattened.width,
            flattened.height,
            len(snap),
        )

    def _notify(self, stage: str, current: int, total: int, message: str = "") -> None:
        if self._progress_callback is None:
            return
        self._progress_callback(stage, current, total, message)


def _default_builder(config: ExportConfig) -> DocumentBuilder:
    return PdfBuilder(title=config.title, producer=config.producer)


def _discard(builder: DocumentBuilder) -> None:
    close = getattr(builder, "close", None)
    if callable(close):
        close()
