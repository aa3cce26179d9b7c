# SPDX-License-Identifier: Apache-2.0
"""Export pipeline package."""

from pdf_overlay.core.errors import (
    CompositeError,
    DecodeError,
    ExportError,
    NoDocumentError,
    OverlayRestoreError,
    PipelineError,
    RenderError,
)
from .export_pipeline import ExportConfig, ExportPipeline, ExportResult, ProgressCallback

__all__ = [
    "CompositeError",
    "DecodeError",
    "ExportConfig",
    "ExportError",
    "ExportPipeline",
    "ExportResult",
    "NoDocumentError",
    "OverlayRestoreError",
    "PipelineError",
    "ProgressCallback",
    "RenderError",
]
