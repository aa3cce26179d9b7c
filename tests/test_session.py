# SPDX-License-Identifier: Apache-2.0
"""Tests for the editing session."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pypdfium2 as pdfium  # type: ignore[import-untyped]
import pytest

from pdf_overlay.core.compositor import Compositor
from pdf_overlay.core.errors import DecodeError, NoDocumentError
from pdf_overlay.core.models import (
    BakedPatch,
    EraseMarker,
    ObjectKind,
    OverlaySnapshot,
    Rect,
    RedactionMarker,
    TextAnnotation,
)
from pdf_overlay.pipeline import export_pipeline
from pdf_overlay.pipeline.export_pipeline import ExportConfig
from pdf_overlay.session import EditorSession, SessionConfig


@pytest.fixture
def source(fake_source: Any) -> Any:
    """Three-page fake document (200x300 pt each)."""
    return fake_source([(200, 300), (200, 300), (300, 200)])


@pytest.fixture
def session(source: Any) -> EditorSession:
    """Session whose documents all come from the fake source."""
    return EditorSession(document_factory=lambda _: source)


class TestSessionConfig:
    """Tests for SessionConfig."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = SessionConfig()
        assert config.scale == 1.5
        assert config.font_path is None
        assert config.bake.blur_factor == 0.8

    def test_invalid_scale(self) -> None:
        """Test non-positive scales are rejected."""
        with pytest.raises(ValueError):
            EditorSession(SessionConfig(scale=0))


class TestEditorSession:
    """Tests for EditorSession."""

    async def test_requires_document(self) -> None:
        """Test operations before loading raise NoDocumentError."""
        session = EditorSession()
        assert not session.is_loaded
        assert session.page_count is None
        with pytest.raises(NoDocumentError):
            await session.add_text()
        with pytest.raises(NoDocumentError):
            await session.go_to_page(1)
        with pytest.raises(NoDocumentError):
            await session.export()

    async def test_open_document(self, session: EditorSession, source: Any) -> None:
        """Test loading shows page 1 with an empty overlay."""
        assert await session.open_document(b"%PDF") == 3
        assert session.is_loaded
        assert session.current_page == 1
        assert len(session.live_overlay) == 0
        assert session.base_raster.size == (300, 450)
        assert source.render_calls[0] == (1, 1.5)

    async def test_add_defaults(self, session: EditorSession) -> None:
        """Test default positions and sizes of new objects."""
        await session.open_document(b"%PDF")
        text = await session.add_text()
        marker = await session.add_redaction()
        erase = await session.add_erase()

        assert (text.x, text.y, text.text, text.font_size) == (100, 100, "Your Text Here", 16)
        assert marker.rect == Rect(100, 100, 100, 50)
        # Erase rectangles go beneath everything else
        assert session.live_overlay.objects == (erase, text, marker)

    async def test_navigation_keeps_edits(self, session: EditorSession) -> None:
        """Test edits survive page switches."""
        await session.open_document(b"%PDF")
        text = await session.add_text("page one")
        await session.go_to_page(2)
        assert len(session.live_overlay) == 0
        await session.add_erase(0, 0, 10, 10)
        await session.go_to_page(1)

        assert session.live_overlay.objects == (text,)
        assert session.edits_summary() == {1: {"text": 1}, 2: {"erase": 1}}

    async def test_next_and_previous(self, session: EditorSession) -> None:
        """Test stepping stops at document bounds."""
        await session.open_document(b"%PDF")
        await session.previous_page()
        assert session.current_page == 1
        await session.next_page()
        await session.next_page()
        await session.next_page()
        assert session.current_page == 3
        assert session.base_raster.size == (450, 300)
        await session.previous_page()
        assert session.current_page == 2

    async def test_go_to_invalid_page(self, session: EditorSession) -> None:
        """Test out-of-range pages are rejected."""
        await session.open_document(b"%PDF")
        with pytest.raises(ValueError):
            await session.go_to_page(4)
        assert session.current_page == 1

    async def test_render_failure_keeps_current_page(self, fake_source: Any) -> None:
        """Test a page that cannot render leaves the current page live."""
        source = fake_source([(100, 100), (100, 100)], fail_on=2)
        session = EditorSession(document_factory=lambda _: source)
        await session.open_document(b"%PDF")
        text = await session.add_text()

        with pytest.raises(RuntimeError):
            await session.go_to_page(2)

        assert session.current_page == 1
        assert session.live_overlay.objects == (text,)

    async def test_decode_failure_keeps_state(self, source: Any) -> None:
        """Test a bad document leaves the previous one loaded."""
        documents = iter([source])

        def factory(data: Any) -> Any:
            if data == b"broken":
                raise DecodeError("Not a PDF document: bytes")
            return next(documents)

        session = EditorSession(document_factory=factory)
        await session.open_document(b"%PDF")
        text = await session.add_text()

        with pytest.raises(DecodeError):
            await session.open_document(b"broken")

        assert session.page_count == 3
        assert session.current_page == 1
        assert session.live_overlay.objects == (text,)
        assert not source.closed

    async def test_new_document_discards_edits(
        self, fake_source: Any, source: Any
    ) -> None:
        """Test loading another document resets edits."""
        other = fake_source([(100, 100)])
        documents = iter([source, other])
        session = EditorSession(document_factory=lambda _: next(documents))
        await session.open_document(b"%PDF")
        await session.add_text()
        await session.go_to_page(2)

        assert await session.open_document(b"%PDF") == 1
        assert source.closed
        assert session.store.pages() == [1]
        assert len(session.live_overlay) == 0

    async def test_bake_redactions(self, session: EditorSession) -> None:
        """Test baking turns markers into patches."""
        await session.open_document(b"%PDF")
        await session.add_redaction(10, 10, 40, 20)
        await session.add_redaction(500, 500, 10, 10)

        result = await session.bake_redactions()

        assert (result.baked, result.dropped) == (1, 1)
        (patch,) = session.live_overlay.objects
        assert isinstance(patch, BakedPatch)
        assert patch.rect == Rect(10, 10, 40, 20)

    async def test_preview(self, session: EditorSession) -> None:
        """Test preview matches compositing the live overlay."""
        await session.open_document(b"%PDF")
        await session.add_erase(0, 0, 30, 30)
        preview = await session.preview()
        assert preview.size == (300, 450)
        assert preview.getpixel((5, 5)) == (255, 255, 255, 255)

    async def test_export_scale_mismatch(self, session: EditorSession) -> None:
        """Test exporting at a scale other than the session's is refused."""
        await session.open_document(b"%PDF")
        with pytest.raises(ValueError, match="scale"):
            await session.export(ExportConfig(scale=2.0))

    async def test_export_commits_live_page(
        self,
        session: EditorSession,
        source: Any,
        capturing_builder: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test the live page's edits reach the export and stay editable."""
        builder = capturing_builder()
        monkeypatch.setattr(export_pipeline, "_default_builder", lambda _: builder)

        await session.open_document(b"%PDF")
        await session.add_erase(0, 0, 30, 30)
        await session.go_to_page(2)
        marker = await session.add_redaction(100, 100, 100, 50)
        await session.bake_redactions()

        result = await session.export()

        assert result.stats is not None
        assert result.stats["pages"] == 3
        assert len(builder.pages) == 3
        assert builder.pages[0][0].getpixel((5, 5)) == (255, 255, 255, 255)
        assert session.store.load_into(2).count(ObjectKind.BAKED_PATCH) == 1
        # Page 2 is still live after export
        assert session.current_page == 2
        assert len(session.live_overlay) == 1
        assert session.live_overlay.objects[0].object_id != marker.object_id

    async def test_navigation_without_edits_exports_base(
        self,
        session: EditorSession,
        source: Any,
        capturing_builder: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test visiting pages without editing leaves output unchanged."""
        builder = capturing_builder()
        monkeypatch.setattr(export_pipeline, "_default_builder", lambda _: builder)

        await session.open_document(b"%PDF")
        await session.go_to_page(2)
        await session.go_to_page(1)
        await session.export()

        expected = Compositor().composite(source.render_page(1, 1.5), OverlaySnapshot.empty())
        assert builder.pages[0][0].tobytes() == expected.tobytes()

    async def test_progress_callback(self, source: Any) -> None:
        """Test export progress reaches the session callback."""
        callback = MagicMock()
        session = EditorSession(document_factory=lambda _: source, progress_callback=callback)
        await session.open_document(b"%PDF")
        await session.export()
        assert callback.call_count == 3

    async def test_close(self, session: EditorSession, source: Any) -> None:
        """Test close releases the document."""
        await session.open_document(b"%PDF")
        await session.close()
        assert not session.is_loaded
        assert source.closed
        with pytest.raises(NoDocumentError):
            _ = session.live_overlay


class TestEditorSessionIntegration:
    """End-to-end session over a real PDF."""

    async def test_edit_bake_export(self, two_page_pdf: bytes) -> None:
        """Test editing and exporting a real document."""
        session = EditorSession()
        assert await session.open_document(two_page_pdf) == 2
        assert session.base_raster.size == (300, 450)

        await session.add_object(TextAnnotation(x=10, y=10, text="Reviewed"))
        await session.add_redaction(50, 50, 100, 50)
        await session.bake_redactions()
        await session.next_page()
        await session.add_object(EraseMarker(rect=Rect(0, 0, 40, 40)))

        result = await session.export(ExportConfig(title="Reviewed"))
        await session.close()

        pdf = pdfium.PdfDocument(result.pdf_bytes)
        try:
            assert len(pdf) == 2
            assert pdf[0].get_size() == pytest.approx((300, 450))
            assert pdf[1].get_size() == pytest.approx((450, 300))
        finally:
            pdf.close()

    async def test_open_invalid_bytes(self) -> None:
        """Test non-PDF input raises DecodeError and loads nothing."""
        session = EditorSession()
        with pytest.raises(DecodeError):
            await session.open_document(b"not a pdf at all")
        assert not session.is_loaded

    async def test_marker_round_trip_through_store(self, two_page_pdf: bytes) -> None:
        """Test unbaked markers survive navigation unchanged."""
        session = EditorSession()
        await session.open_document(two_page_pdf)
        marker = await session.add_redaction()
        await session.next_page()
        await session.previous_page()
        (restored,) = session.live_overlay.objects
        assert isinstance(restored, RedactionMarker)
        assert restored == marker
        await session.close()
