"""CLI for image export.

Loads an export folder or zip, merges posts and memories, and writes the
composited / separate JPEGs (plus copied videos, BTS files, chat photos
and comments) into a destination folder.

Usage:
    # Everything with defaults (both styles, auto corner, YYYY/MM/DD folders)
    python -m momentreel.cli --export ~/Downloads/export.zip --output ~/Pictures/moments

    # Combined only, all four corners, flat folder
    python -m momentreel.cli --export ./export --output ./out \
        --style combined --corner all --layout flat

    # Validate only (no writing)
    python -m momentreel.cli --export ./export --validate
"""

import argparse
import logging
import sys

from .analysis import NullAnalyzer
from .errors import ExportLoadError
from .exporter import ExportSession
from .loader import open_export
from .models import Cancelled, Completed, ExportProgress
from .settings import build_image_options, load_options
from .vision import OpenCVAnalyzer, opencv_available


EXIT_FAILED = 1
EXIT_CANCELLED = 130


# ── Shared helpers ────────────────────────────────────────────────


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def make_analyzer(no_vision: bool):
    """OpenCV analyzer when installed and not disabled, else luminance only."""
    if no_vision or not opencv_available():
        return NullAnalyzer()
    return OpenCVAnalyzer()


def print_progress(progress: ExportProgress) -> None:
    print(
        f"  [{progress.current}/{progress.total}] {progress.percentage:5.1%}  "
        f"{progress.current_label}",
        flush=True,
    )


def run_until_done(session: ExportSession):
    """Run a session in the background; Ctrl-C requests cancellation."""
    session.start()
    while True:
        try:
            result = session.wait(timeout=0.5)
        except KeyboardInterrupt:
            print("\nCancelling after the current item...", flush=True)
            session.cancel()
            continue
        if result is not None or session.done:
            return result


def report(result) -> None:
    """Print the terminal state and exit non-zero unless completed."""
    print(f"\n{result.describe()}")
    if isinstance(result, Completed):
        return
    sys.exit(EXIT_CANCELLED if isinstance(result, Cancelled) else EXIT_FAILED)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--export", required=True,
        help="Export folder or .zip archive",
    )
    parser.add_argument(
        "--config",
        help="YAML options file (CLI flags override it)",
    )
    parser.add_argument(
        "--no-vision", action="store_true",
        help="Skip OpenCV analysis; place insets by luminance only",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Load and summarize the export only, write nothing",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Debug logging",
    )


def print_summary(export) -> None:
    print(f"Export valid: {export.user.username}")
    print(f"  posts:        {len(export.posts)}")
    print(f"  memories:     {len(export.memories)}")
    print(f"  image pairs:  {export.image_pair_count}")
    print(f"  chat photos:  {len(export.conversation_images)}")
    print(f"  comments:     {len(export.comments)}")
    date_range = export.date_range
    if date_range:
        print(f"  date range:   {date_range[0]:%Y-%m-%d} to {date_range[1]:%Y-%m-%d}")


# ── CLI entry point ───────────────────────────────────────────────


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Export moments as composited and separate JPEG files.",
    )
    add_common_arguments(parser)
    parser.add_argument(
        "--output",
        help="Destination folder (required unless --validate)",
    )
    parser.add_argument(
        "--style", choices=["combined", "separate", "both"],
        help="Which files to write per moment (default: both)",
    )
    parser.add_argument(
        "--corner",
        help="Inset corner: auto, all, top-left, top-right, bottom-left, bottom-right",
    )
    parser.add_argument(
        "--layout", choices=["by_date", "flat"],
        help="Folder layout (default: by_date)",
    )
    parser.add_argument(
        "--no-conversations", action="store_true",
        help="Skip chat photos",
    )
    parser.add_argument(
        "--no-comments", action="store_true",
        help="Skip comments.txt files",
    )
    args = parser.parse_args(args)
    configure_logging(args.verbose)

    if not args.validate and not args.output:
        parser.error("--output is required (unless using --validate)")

    try:
        values = load_options(args.config)["images"]
    except (OSError, ValueError) as exc:
        parser.error(str(exc))
    if args.style:
        values["style"] = args.style
    if args.corner:
        values["corner"] = args.corner
    if args.layout:
        values["folder_layout"] = args.layout
    if args.no_conversations:
        values["include_conversations"] = False
    if args.no_comments:
        values["include_comments"] = False
    try:
        options = build_image_options(values)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        with open_export(args.export) as export:
            if args.validate:
                print_summary(export)
                return

            print(f"Exporting {export.user.username} to {args.output}")
            session = ExportSession.for_images(
                export, args.output, options,
                analyzer=make_analyzer(args.no_vision),
                on_progress=print_progress,
            )
            result = run_until_done(session)
    except ExportLoadError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(EXIT_FAILED)
    report(result)


if __name__ == "__main__":
    main()
