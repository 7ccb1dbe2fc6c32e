"""CLI for the time-lapse video.

Usage:
    python -m momentreel.video_cli --export ./export --output timelapse.mp4

    # 1080p, 12 fps, front camera as main image, date stamp, one month
    python -m momentreel.video_cli --export ./export --output jan.mp4 \
        --resolution 1080p --fps 12 --content combined_front_main \
        --date-overlay --start 2024-01-01 --end 2024-01-31
"""

import argparse
import sys

from .cli import (
    EXIT_FAILED,
    add_common_arguments,
    configure_logging,
    make_analyzer,
    print_progress,
    print_summary,
    report,
    run_until_done,
)
from .errors import ExportLoadError
from .exporter import ExportSession
from .frames import count_frames
from .loader import open_export
from .settings import build_frame_spec, load_options


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Render moments into a time-lapse mp4.",
    )
    add_common_arguments(parser)
    parser.add_argument(
        "--output",
        help="Output mp4 path (required unless --validate)",
    )
    parser.add_argument(
        "--content",
        choices=["back_only", "front_only", "combined_back_main", "combined_front_main"],
        help="Frame content (default: combined_back_main)",
    )
    parser.add_argument(
        "--fps", type=float,
        help="Frames per second (default: 8)",
    )
    parser.add_argument(
        "--resolution",
        help="original, 1080p, 720p or WIDTHxHEIGHT (default: original)",
    )
    parser.add_argument(
        "--corner",
        help="Inset corner for combined frames: auto or a corner name",
    )
    parser.add_argument(
        "--date-overlay", action="store_true",
        help="Stamp each frame with its capture date",
    )
    parser.add_argument("--start", help="First day to include (YYYY-MM-DD)")
    parser.add_argument("--end", help="Last day to include (YYYY-MM-DD)")
    args = parser.parse_args(args)
    configure_logging(args.verbose)

    if not args.validate and not args.output:
        parser.error("--output is required (unless using --validate)")

    try:
        values = load_options(args.config)["video"]
    except (OSError, ValueError) as exc:
        parser.error(str(exc))
    overrides = {
        "content": args.content,
        "fps": args.fps,
        "resolution": args.resolution,
        "corner": args.corner,
        "start": args.start,
        "end": args.end,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    if args.date_overlay:
        values["date_overlay"] = True
    try:
        spec = build_frame_spec(values)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        with open_export(args.export) as export:
            if args.validate:
                print_summary(export)
                print(f"  frames:       {count_frames(export, spec.start_date, spec.end_date)}")
                return

            print(f"Rendering time-lapse to {args.output} ({spec.frames_per_second} fps)")
            session = ExportSession.for_video(
                export, args.output, spec,
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
