# SPDX-License-Identifier: Apache-2.0
"""
PDF Overlay - CLI Tool

Applies text, erase, and redaction overlays to a PDF and exports a
flattened copy. Redaction boxes are baked into blurred pixels.

Usage:
    overlay-pdf <input.pdf> --edits edits.json [options]

Examples:
    overlay-pdf scan.pdf --edits edits.json              # Apply edits, blur redactions
    overlay-pdf scan.pdf --edits edits.json -o out.pdf
    overlay-pdf scan.pdf --edits edits.json --no-bake    # Keep redaction outlines
    overlay-pdf scan.pdf                                 # Flatten without edits
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

from pdf_overlay.core.baker import BakeConfig
from pdf_overlay.core.errors import PipelineError
from pdf_overlay.core.models import ObjectKind, OverlayObject, object_from_dict
from pdf_overlay.pipeline.export_pipeline import ExportConfig
from pdf_overlay.session import EditorSession, SessionConfig

logger = logging.getLogger(__name__)

# Default output directory
DEFAULT_OUTPUT_DIR = "./output/"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument Namespace.
    """
    parser = argparse.ArgumentParser(
        prog="overlay-pdf",
        description="PDF Overlay Tool - Annotate, erase, and redact PDF pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Edits file format (page numbers start at 1):
  {
    "1": [
      {"kind": "text", "x": 100, "y": 100, "text": "Approved", "font_size": 16},
      {"kind": "redaction", "rect": {"x": 100, "y": 100, "w": 100, "h": 50}},
      {"kind": "erase", "rect": {"x": 20, "y": 20, "w": 50, "h": 50}}
    ]
  }

Coordinates are pixels of the page rendered at --scale.
""",
    )

    parser.add_argument(
        "input",
        type=Path,
        help="Path to PDF file to edit",
    )

    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help=f"Output file path (default: {DEFAULT_OUTPUT_DIR}<input>_edited.pdf)",
    )

    parser.add_argument(
        "-e",
        "--edits",
        type=Path,
        help="JSON file with overlay objects per page",
    )

    parser.add_argument(
        "-s",
        "--scale",
        type=float,
        default=1.5,
        help="Render scale for editing and export (default: 1.5)",
    )

    # Redaction options
    redact_group = parser.add_argument_group("Redaction options")
    redact_group.add_argument(
        "--no-bake",
        action="store_true",
        help="Do not bake redaction markers (they export as outlines)",
    )
    redact_group.add_argument(
        "--blur-factor",
        type=float,
        default=0.8,
        help="Blur intensity relative to the default radius (default: 0.8)",
    )

    # Output options
    output_group = parser.add_argument_group("Output options")
    output_group.add_argument(
        "--title",
        help="Document title written to the output PDF",
    )
    output_group.add_argument(
        "--font",
        type=Path,
        help="TrueType font for text annotations",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    return parser.parse_args(argv)


def load_edits(path: Path) -> dict[int, list[OverlayObject]]:
    """Read an edits file.

    Args:
        path: JSON file mapping page numbers to overlay object dicts.

    Returns:
        Overlay objects per 1-based page number.

    Raises:
        ValueError: If the file is malformed.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Edits file must contain a JSON object keyed by page number")

    edits: dict[int, list[OverlayObject]] = {}
    for key, items in data.items():
        try:
            page = int(key)
        except ValueError as exc:
            raise ValueError(f"Invalid page number: {key!r}") from exc
        if page < 1:
            raise ValueError(f"Page numbers start at 1, got {page}")
        if not isinstance(items, list):
            raise ValueError(f"Page {page}: expected a list of objects")

        baked = ObjectKind.BAKED_PATCH.value
        if any(isinstance(item, dict) and item.get("kind") == baked for item in items):
            raise ValueError(f"Page {page}: baked patches cannot be supplied as edits")
        try:
            objects = [object_from_dict(item) for item in items]
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"Page {page}: malformed object ({exc})") from exc
        edits[page] = objects
    return edits


def default_output_path(input_path: Path) -> Path:
    """Output path used when --output is not given."""
    return Path(DEFAULT_OUTPUT_DIR) / f"{input_path.stem}_edited.pdf"


async def apply_edits(
    session: EditorSession,
    edits: dict[int, list[OverlayObject]],
    bake: bool = True,
) -> dict[str, int]:
    """Visit each edited page, add its objects, and bake redactions."""
    counts = {"objects": 0, "baked": 0, "dropped": 0}
    page_count = session.page_count or 0
    for page in sorted(edits):
        if page > page_count:
            raise ValueError(f"Edits reference page {page}, document has {page_count}")
        await session.go_to_page(page)
        logger.debug("Applying %d objects to page %d", len(edits[page]), page)
        for obj in edits[page]:
            await session.add_object(obj)
            counts["objects"] += 1
        if bake:
            result = await session.bake_redactions()
            counts["baked"] += result.baked
            counts["dropped"] += result.dropped
    return counts


async def run(args: argparse.Namespace) -> int:
    """Run the edit-and-export flow.

    Returns:
        Process exit code.
    """
    input_path: Path = args.input
    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return 1

    edits: dict[int, list[OverlayObject]] = {}
    if args.edits is not None:
        try:
            edits = load_edits(args.edits)
        except (OSError, ValueError) as e:
            print(f"Error: Invalid edits file {args.edits}: {e}", file=sys.stderr)
            return 1

    if args.scale <= 0:
        print(f"Error: --scale must be positive, got {args.scale}", file=sys.stderr)
        return 1
    if args.blur_factor <= 0:
        print(
            f"Error: --blur-factor must be positive, got {args.blur_factor}",
            file=sys.stderr,
        )
        return 1

    output_path = args.output or default_output_path(input_path)
    config = SessionConfig(
        scale=args.scale,
        font_path=args.font,
        bake=BakeConfig(blur_factor=args.blur_factor),
    )

    print(f"Input: {input_path}")
    print(f"Output: {output_path}")
    print(f"Scale: {args.scale}")
    print(f"Edited pages: {len(edits)}")
    print()

    session = EditorSession(config)
    try:
        page_count = await session.open_document(input_path)
        counts = await apply_edits(session, edits, bake=not args.no_bake)
        result = await session.export(
            ExportConfig(title=args.title, output_path=output_path)
        )
    except (PipelineError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1
    finally:
        await session.close()

    print(f"Complete: {output_path}")
    print(f"  Pages: {page_count}")
    print(f"  Objects: {counts['objects']}")
    if not args.no_bake:
        print(f"  Redactions baked: {counts['baked']}")
        if counts["dropped"]:
            print(f"  Redactions dropped (outside page): {counts['dropped']}")
    print(f"  Size: {len(result.pdf_bytes)} bytes")
    return 0


def main() -> NoReturn:
    """CLI entry point."""
    args = parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    exit_code = asyncio.run(run(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
