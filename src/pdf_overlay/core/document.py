# SPDX-License-Identifier: Apache-2.0
"""Source PDF decoding and page rasterization using pypdfium2."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Union

import pypdfium2 as pdfium  # type: ignore[import-untyped]
from PIL import Image

from .errors import DecodeError, RenderError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


class PageSource(Protocol):
    """Anything that can rasterize 1-based pages at a given scale."""

    @property
    def page_count(self) -> int: ...

    def render_page(self, index: int, scale: float) -> Image.Image: ...


class SourceDocument:
    """Decoded source PDF.

    Pages are addressed with 1-based indexes. Rendered rasters are RGBA
    PIL images sized ``page_size * scale``.

    Example:
        >>> with SourceDocument(Path("input.pdf")) as doc:
        ...     raster = doc.render_page(1, scale=1.5)
    """

    def __init__(self, source: Union[Path, str, bytes]) -> None:
        """Open a PDF from a path or raw bytes.

        Args:
            source: Path to PDF file or PDF bytes

        Raises:
            DecodeError: If the input is missing or not a readable PDF
            TypeError: If source is not Path, str, or bytes
        """
        self._pdf: Optional[pdfium.PdfDocument] = None

        if isinstance(source, bytes):
            data = source
            self._source_name = "bytes"
        elif isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise DecodeError(f"PDF file not found: {path}")
            data = path.read_bytes()
            self._source_name = path.name
        else:
            raise TypeError(
                f"source must be Path, str, or bytes, got {type(source).__name__}"
            )

        if PDF_MAGIC not in data[:1024]:
            raise DecodeError(f"Not a PDF document: {self._source_name}")

        try:
            self._pdf = pdfium.PdfDocument(data)
        except pdfium.PdfiumError as exc:
            raise DecodeError(
                f"Failed to decode PDF: {self._source_name}", cause=exc
            ) from exc

        if len(self._pdf) == 0:
            self.close()
            raise DecodeError(f"PDF has no pages: {self._source_name}")

        logger.info("Opened %s (%d pages)", self._source_name, len(self._pdf))

    def __enter__(self) -> SourceDocument:
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Any,
    ) -> None:
        """Context manager exit."""
        self.close()

    def close(self) -> None:
        """Close the PDF document and release resources."""
        if self._pdf is not None:
            self._pdf.close()
            self._pdf = None

    @property
    def name(self) -> str:
        """Source file name, or "bytes"."""
        return self._source_name

    @property
    def page_count(self) -> int:
        """Get the number of pages in the document."""
        return len(self._ensure_open())

    def _ensure_open(self) -> pdfium.PdfDocument:
        if self._pdf is None:
            raise RuntimeError("PDF document is not open")
        return self._pdf

    def _check_index(self, index: int) -> None:
        count = self.page_count
        if not 1 <= index <= count:
            raise RenderError(
                f"Page index out of range (1..{count})", page=index
            )

    def page_size(self, index: int) -> tuple[float, float]:
        """Get page (width, height) in PDF points."""
        self._check_index(index)
        page = self._ensure_open()[index - 1]
        try:
            width, height = page.get_size()
        finally:
            page.close()
        return float(width), float(height)

    def render_page(self, index: int, scale: float) -> Image.Image:
        """Rasterize a page.

        Args:
            index: 1-based page index
            scale: Pixels per PDF point (must be positive)

        Returns:
            RGBA image of the rendered page.

        Raises:
            RenderError: If the index or scale is invalid, or PDFium fails
        """
        self._check_index(index)
        if scale <= 0:
            raise RenderError(f"Render scale must be positive, got {scale}", page=index)

        pdf = self._ensure_open()
        try:
            page = pdf[index - 1]
            try:
                bitmap = page.render(scale=scale)
                image = bitmap.to_pil().convert("RGBA")
            finally:
                page.close()
        except pdfium.PdfiumError as exc:
            raise RenderError("Failed to render page", page=index, cause=exc) from exc

        logger.debug(
            "Rendered page %d at scale %.2f: %dx%d", index, scale, image.width, image.height
        )
        return image
