# SPDX-License-Identifier: Apache-2.0
"""Core overlay editing modules."""

from .baker import BakeConfig, BakeResult, RedactionBaker
from .compositor import Compositor
from .document import PageSource, SourceDocument
from .errors import (
    CompositeError,
    DecodeError,
    ExportError,
    NoDocumentError,
    OverlayRestoreError,
    PipelineError,
    RenderError,
)
from .models import (
    BakedPatch,
    EraseMarker,
    ObjectKind,
    OverlayObject,
    OverlaySnapshot,
    Rect,
    RedactionMarker,
    TextAnnotation,
)
from .overlay import LiveOverlay, restore, snapshot
from .page_store import PageEditStore
from .renderer import OverlayRenderer

__all__ = [
    "BakeConfig",
    "BakeResult",
    "BakedPatch",
    "CompositeError",
    "Compositor",
    "DecodeError",
    "EraseMarker",
    "ExportError",
    "LiveOverlay",
    "NoDocumentError",
    "ObjectKind",
    "OverlayObject",
    "OverlayRenderer",
    "OverlayRestoreError",
    "OverlaySnapshot",
    "PageEditStore",
    "PageSource",
    "PipelineError",
    "Rect",
    "RedactionBaker",
    "RedactionMarker",
    "RenderError",
    "SourceDocument",
    "TextAnnotation",
    "restore",
    "snapshot",
]
