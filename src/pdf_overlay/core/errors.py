# SPDX-License-Identifier: Apache-2.0
"""Error definitions."""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for editor and export errors."""

    default_stage = "pipeline"

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        cause: Exception | None = None,
        page: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.cause = cause
        self.page = page

    def __str__(self) -> str:
        text = f"[{self.stage}] {self.message}"
        if self.page is not None:
            text += f" (page {self.page})"
        if self.cause is not None:
            text += f" (caused by {type(self.cause).__name__}: {self.cause})"
        return text


class DecodeError(PipelineError):
    """Input is not a readable PDF document."""

    default_stage = "decode"


class RenderError(PipelineError):
    """A page failed to rasterize."""

    default_stage = "render"


class OverlayRestoreError(PipelineError):
    """A stored snapshot could not be restored into a live overlay."""

    default_stage = "restore"


class CompositeError(PipelineError):
    """Rendered overlay does not match the base raster."""

    default_stage = "composite"


class ExportError(PipelineError):
    """Export aborted; no output document was produced."""

    default_stage = "export"


class NoDocumentError(PipelineError):
    """Operation requires a loaded document."""

    default_stage = "session"
