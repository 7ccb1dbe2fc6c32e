"""Options file loader — YAML defaults for image and video exports.

Options file schema (every key optional):
  images:
    style: both                 # combined | separate | both
    corner: auto                # auto | all | top_left | top_right | bottom_left | bottom_right
    folder_layout: by_date      # by_date | flat
    include_conversations: true
    include_comments: true
  video:
    content: combined_back_main # back_only | front_only | combined_back_main | combined_front_main
    fps: 8
    resolution: original        # original | 1080p | 720p | [width, height]
    date_overlay: false
    corner: top_left            # auto or a corner name
    start: 2024-01-01           # inclusive day
    end: 2024-12-31             # inclusive day
"""

from datetime import date
from pathlib import Path

import yaml

from .exporter import ImageExportOptions
from .models import (
    RESOLUTION_PRESETS,
    CompositeSpec,
    ContentMode,
    CornerMode,
    FolderLayout,
    FrameSpec,
    ImageStyle,
    parse_corner,
)


IMAGE_DEFAULTS = {
    "style": "both",
    "corner": "auto",
    "folder_layout": "by_date",
    "include_conversations": True,
    "include_comments": True,
}

VIDEO_DEFAULTS = {
    "content": "combined_back_main",
    "fps": 8,
    "resolution": "original",
    "date_overlay": False,
    "corner": "top_left",
    "start": None,
    "end": None,
}


# ── Field validation ─────────────────────────────────────────────


def _enum(cls, value, where: str):
    try:
        return cls(str(value).strip().lower().replace("-", "_"))
    except ValueError:
        raise ValueError(
            f"{where}: invalid value '{value}'. Valid: {sorted(m.value for m in cls)}"
        ) from None


def _bool(value, where: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{where}: must be true or false, got {value!r}")
    return value


def _day(value, where: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"{where}: expected YYYY-MM-DD, got {value!r}") from None


def parse_resolution(value, where: str = "video.resolution") -> tuple[int, int] | None:
    """'original' / '1080p' / '720p' / [w, h] / 'WxH' → target size or None."""
    if isinstance(value, (list, tuple)):
        if len(value) != 2 or not all(isinstance(v, int) and v > 0 for v in value):
            raise ValueError(f"{where}: expected [width, height] positive ints, got {value!r}")
        return tuple(value)
    key = str(value).strip().lower()
    if key in RESOLUTION_PRESETS:
        return RESOLUTION_PRESETS[key]
    if "x" in key:
        w, _, h = key.partition("x")
        if w.isdigit() and h.isdigit() and int(w) > 0 and int(h) > 0:
            return int(w), int(h)
    raise ValueError(
        f"{where}: invalid resolution {value!r}. "
        f"Valid: {sorted(RESOLUTION_PRESETS)} or [width, height]"
    )


def _corner(value, where: str, allow_all: bool):
    try:
        corner = parse_corner(str(value))
    except ValueError as exc:
        raise ValueError(f"{where}: {exc}") from None
    if corner == CornerMode.ALL and not allow_all:
        raise ValueError(f"{where}: 'all' is only valid for image exports")
    return corner


# ── Builders ─────────────────────────────────────────────────────


def build_image_options(values: dict) -> ImageExportOptions:
    merged = {**IMAGE_DEFAULTS, **values}
    unknown = set(merged) - set(IMAGE_DEFAULTS)
    if unknown:
        raise ValueError(f"images: unknown option(s) {sorted(unknown)}")
    return ImageExportOptions(
        composite=CompositeSpec(
            style=_enum(ImageStyle, merged["style"], "images.style"),
            corner=_corner(merged["corner"], "images.corner", allow_all=True),
            folder_layout=_enum(FolderLayout, merged["folder_layout"], "images.folder_layout"),
        ),
        include_conversations=_bool(merged["include_conversations"], "images.include_conversations"),
        include_comments=_bool(merged["include_comments"], "images.include_comments"),
    )


def build_frame_spec(values: dict) -> FrameSpec:
    merged = {**VIDEO_DEFAULTS, **values}
    unknown = set(merged) - set(VIDEO_DEFAULTS)
    if unknown:
        raise ValueError(f"video: unknown option(s) {sorted(unknown)}")

    fps = merged["fps"]
    if isinstance(fps, bool) or not isinstance(fps, (int, float)) or fps <= 0:
        raise ValueError(f"video.fps: must be > 0, got {fps!r}")

    start = _day(merged["start"], "video.start")
    end = _day(merged["end"], "video.end")
    if start is not None and end is not None and end < start:
        raise ValueError(f"video: end {end} is before start {start}")

    return FrameSpec(
        content_mode=_enum(ContentMode, merged["content"], "video.content"),
        corner=_corner(merged["corner"], "video.corner", allow_all=False),
        target_size=parse_resolution(merged["resolution"]),
        frames_per_second=fps,
        date_overlay=_bool(merged["date_overlay"], "video.date_overlay"),
        start_date=start,
        end_date=end,
    )


def load_options(path: str | Path | None) -> dict:
    """Read the raw `images` / `video` sections of an options file.

    Returns {"images": {...}, "video": {...}}; empty sections when path is None.

    Raises:
        ValueError: Not a mapping, or unknown top-level sections.
        FileNotFoundError: Missing options file.
    """
    if path is None:
        return {"images": {}, "video": {}}
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Options file {path}: expected a mapping at top level")
    unknown = set(raw) - {"images", "video"}
    if unknown:
        raise ValueError(f"Options file {path}: unknown section(s) {sorted(unknown)}")
    sections = {}
    for name in ("images", "video"):
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Options file {path}: '{name}' must be a mapping")
        sections[name] = section
    return sections
