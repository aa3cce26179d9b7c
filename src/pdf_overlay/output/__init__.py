# SPDX-License-Identifier: Apache-2.0
"""Output document writers."""

from .pdf_writer import DEFAULT_PRODUCER, DocumentBuilder, PdfBuilder

__all__ = [
    "DEFAULT_PRODUCER",
    "DocumentBuilder",
    "PdfBuilder",
]
