"""Subcommand dispatcher for momentreel.

Usage:
    momentreel images  --export ... --output DIR
    momentreel video   --export ... --output FILE.mp4
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="momentreel",
        description="Export dual-camera moments as photos or a time-lapse video.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Each subcommand owns its flags; only the name is parsed here.
    subparsers.add_parser("images", help="Write composited / separate JPEG files")
    subparsers.add_parser("video", help="Render a time-lapse mp4")

    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        # Bare invocation: print usage and fail.
        parser.print_help()
        sys.exit(1)

    if parsed.command == "images":
        from .cli import main as images_main
        images_main(remaining)
    elif parsed.command == "video":
        from .video_cli import main as video_main
        video_main(remaining)


if __name__ == "__main__":
    main()
