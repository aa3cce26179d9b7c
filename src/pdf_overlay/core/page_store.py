# SPDX-License-Identifier: Apache-2.0
"""Per-page overlay state kept across page navigation."""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from .errors import OverlayRestoreError
from .models import OverlaySnapshot
from .overlay import LiveOverlay, restore, snapshot
from .renderer import OverlayRenderer

logger = logging.getLogger(__name__)


class PageEditStore:
    """Mapping of 1-based page index to the page's overlay snapshot.

    Only the page being edited has a live overlay; every other page is
    held here as a snapshot. Pages get an empty entry on first visit and
    are updated on every commit.
    """

    def __init__(self) -> None:
        self._entries: dict[int, OverlaySnapshot] = {}

    def __contains__(self, page_index: object) -> bool:
        return page_index in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def pages(self) -> list[int]:
        """Page indexes that have an entry, in ascending order."""
        return sorted(self._entries)

    def commit_current(self, page_index: int, live_overlay: LiveOverlay) -> OverlaySnapshot:
        """Store a snapshot of the live overlay, then dispose of it.

        Must run before the live overlay is destroyed or reused for another
        page; skipping it loses the page's edits.
        """
        if live_overlay.disposed:
            raise RuntimeError(
                f"Cannot commit page {page_index}: live overlay was already disposed"
            )
        snap = snapshot(live_overlay)
        self._entries[page_index] = snap
        live_overlay.dispose()
        logger.debug("Committed page %d (%d objects)", page_index, len(snap))
        return snap

    def load_into(self, page_index: int) -> OverlaySnapshot:
        """Return the stored snapshot, creating an empty one on first visit."""
        snap = self._entries.get(page_index)
        if snap is None:
            snap = OverlaySnapshot.empty()
            self._entries[page_index] = snap
        return snap

    def peek(self, page_index: int) -> Optional[OverlaySnapshot]:
        """Stored snapshot, or None without creating an entry."""
        return self._entries.get(page_index)

    def clear_all(self) -> None:
        """Drop every entry (used when a new document is loaded)."""
        self._entries.clear()

    async def switch(
        self,
        old_page: Optional[int],
        live_overlay: Optional[LiveOverlay],
        new_page: int,
        width: int,
        height: int,
        scale: Optional[float] = None,
        renderer: Optional[OverlayRenderer] = None,
    ) -> LiveOverlay:
        """Commit the old page, then load and restore the new one.

        A snapshot that cannot be restored is replaced by an empty overlay
        for that page only; other pages keep their stored state.

        Returns:
            The live overlay for new_page.
        """
        if old_page is not None and live_overlay is not None:
            self.commit_current(old_page, live_overlay)

        snap = self.load_into(new_page)
        try:
            return await restore(
                snap,
                width=width,
                height=height,
                scale=scale,
                renderer=renderer,
                page=new_page,
            )
        except OverlayRestoreError as exc:
            logger.warning("Discarding edits of page %d: %s", new_page, exc)
            self._entries[new_page] = OverlaySnapshot.empty()
            return LiveOverlay(width, height, scale=scale, renderer=renderer)
