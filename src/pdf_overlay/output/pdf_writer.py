# SPDX-License-Identifier: Apache-2.0
"""Raster-page PDF writer.

Builds a new PDF where each page is a single full-page image, using
pypdfium2 for page assembly and pikepdf for document info and the final
compressed save.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Optional, Protocol

import pikepdf  # type: ignore[import-untyped]
import pypdfium2 as pdfium  # type: ignore[import-untyped]
from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_PRODUCER = "pdf-overlay"


class DocumentBuilder(Protocol):
    """Output document assembly."""

    def add_page(self, image: Image.Image, width: float, height: float) -> None: ...

    def finalize(self) -> bytes: ...


class PdfBuilder:
    """Assemble raster pages into a PDF document.

    Example:
        >>> builder = PdfBuilder(title="Edited")
        >>> builder.add_page(image, image.width, image.height)
        >>> pdf_bytes = builder.finalize()
    """

    def __init__(
        self,
        title: Optional[str] = None,
        producer: str = DEFAULT_PRODUCER,
    ) -> None:
        """Initialize PdfBuilder.

        Args:
            title: Document title written to the info dictionary.
            producer: Producer written to the info dictionary.
        """
        self._title = title
        self._producer = producer
        self._pdf: Optional[pdfium.PdfDocument] = pdfium.PdfDocument.new()
        self._page_count = 0

    @property
    def page_count(self) -> int:
        """Number of pages added so far."""
        return self._page_count

    def _ensure_open(self) -> pdfium.PdfDocument:
        if self._pdf is None:
            raise RuntimeError("PdfBuilder has already been finalized")
        return self._pdf

    def add_page(self, image: Image.Image, width: float, height: float) -> None:
        """Append a page of width x height points covered by the image.

        Args:
            image: Page image. Alpha is dropped; pages are opaque.
            width: Page width in points.
            height: Page height in points.
        """
        pdf = self._ensure_open()
        if width <= 0 or height <= 0:
            raise ValueError(f"Page size must be positive, got {width}x{height}")

        rgb = image.convert("RGB") if image.mode != "RGB" else image
        page = pdf.new_page(width, height)
        pdf_image = pdfium.PdfImage.new(pdf)
        bitmap = pdfium.PdfBitmap.from_pil(rgb)
        try:
            pdf_image.set_bitmap(bitmap)
            # Unit square image space -> full page
            pdf_image.set_matrix(pdfium.PdfMatrix().scale(width, height))
            page.insert_obj(pdf_image)
            page.gen_content()
        finally:
            bitmap.close()
            pdf_image.close()
            page.close()

        self._page_count += 1
        logger.debug(
            "Added page %d: %gx%g pt from %dx%d image",
            self._page_count,
            width,
            height,
            image.width,
            image.height,
        )

    def finalize(self) -> bytes:
        """Serialize the document and close the builder."""
        pdf = self._ensure_open()
        if self._page_count == 0:
            raise ValueError("Cannot finalize a document without pages")

        buffer = BytesIO()
        try:
            pdf.save(buffer)
        finally:
            pdf.close()
            self._pdf = None

        output = BytesIO()
        with pikepdf.open(BytesIO(buffer.getvalue())) as doc:
            if self._title:
                doc.docinfo["/Title"] = self._title
            doc.docinfo["/Producer"] = self._producer
            doc.save(
                output,
                compress_streams=True,
                object_stream_mode=pikepdf.ObjectStreamMode.generate,
            )

        logger.info("Finalized PDF: %d pages, %d bytes", self._page_count, output.tell())
        return output.getvalue()

    def close(self) -> None:
        """Discard the document without serializing it."""
        if self._pdf is not None:
            self._pdf.close()
            self._pdf = None
