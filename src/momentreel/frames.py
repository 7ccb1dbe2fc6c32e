"""Frame sequence for the time-lapse: collection, filtering and rendering.

Frames come from the same deduplicated capture list as the image export,
restricted to an inclusive day range. Each frame is rendered according to
the requested content mode, optionally stamped with its date, and scaled
to fit the target resolution on a black background.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Callable, Iterable

import numpy as np
from PIL import Image

from .analysis import VisualAnalyzer
from .common import load_image, local_wall_clock
from .compositor import composite_images
from .errors import PixelBufferFailed
from .merger import merge_captures
from .models import CapturePair, ContentMode, ExportData, FrameSpec
from .overlays import apply_date_stamp
from .placement import resolve_corner


@dataclass(frozen=True)
class FrameItem:
    timestamp: datetime
    back_path: Path
    front_path: Path

    @classmethod
    def from_capture(cls, capture: CapturePair) -> "FrameItem":
        return cls(capture.timestamp, capture.back_path, capture.front_path)


@dataclass(frozen=True)
class FrameTime:
    """Presentation time as `value` ticks of a 1/`timescale` second clock."""

    value: int
    timescale: float

    @property
    def seconds(self) -> float:
        return self.value / self.timescale


# ── Collection ───────────────────────────────────────────────────


def collect_frames(
    export: ExportData,
    exists: Callable[[Path], bool] = Path.exists,
) -> tuple[FrameItem, ...]:
    """Every eligible capture pair of the export, oldest first."""
    captures = merge_captures(export.posts, export.memories, export.base_dir, exists)
    return tuple(FrameItem.from_capture(c) for c in captures)


def filter_frames(
    frames: Iterable[FrameItem],
    start: date | None = None,
    end: date | None = None,
) -> tuple[FrameItem, ...]:
    """Keep frames captured from the start of `start` up to the end of `end`.

    Both bounds are whole days; the upper bound is exclusive at midnight
    after `end`. Either bound may be None for an open range.
    """
    lower = datetime.combine(start, time.min) if start is not None else None
    upper = datetime.combine(end + timedelta(days=1), time.min) if end is not None else None

    kept = []
    for frame in frames:
        local = local_wall_clock(frame.timestamp)
        if lower is not None and local < lower:
            continue
        if upper is not None and local >= upper:
            continue
        kept.append(frame)
    return tuple(kept)


def count_frames(export: ExportData, start: date | None = None, end: date | None = None) -> int:
    return len(filter_frames(collect_frames(export), start, end))


# ── Geometry helpers ─────────────────────────────────────────────


def fit_to_size(image: Image.Image, target_size: tuple[int, int]) -> Image.Image:
    """Scale to fit inside target_size keeping aspect ratio, centred on black."""
    target_w, target_h = target_size
    scale = min(target_w / image.width, target_h / image.height)
    new_w = max(1, round(image.width * scale))
    new_h = max(1, round(image.height * scale))
    canvas = Image.new("RGB", (target_w, target_h), (0, 0, 0))
    scaled = image.resize((new_w, new_h), Image.Resampling.LANCZOS)
    canvas.paste(scaled, ((target_w - new_w) // 2, (target_h - new_h) // 2))
    return canvas


def even_size(width: int, height: int) -> tuple[int, int]:
    """Round dimensions up to even numbers (H.264 with yuv420p needs this)."""
    return width + width % 2, height + height % 2


def to_pixel_buffer(image: Image.Image, width: int, height: int) -> np.ndarray:
    """Centre a frame on a black width x height canvas as an (h, w, 3) uint8 array.

    Frames larger than the canvas are scaled down to fit first.

    Raises:
        PixelBufferFailed: The buffer could not be allocated or filled.
    """
    try:
        if image.width > width or image.height > height:
            image = fit_to_size(image, (width, height))
        buffer = np.zeros((height, width, 3), dtype=np.uint8)
        x = (width - image.width) // 2
        y = (height - image.height) // 2
        buffer[y:y + image.height, x:x + image.width] = np.asarray(image.convert("RGB"))
    except (MemoryError, ValueError) as exc:
        raise PixelBufferFailed(str(exc)) from exc
    return buffer


# ── Rendering ────────────────────────────────────────────────────


def render_frame(
    item: FrameItem,
    spec: FrameSpec,
    analyzer: VisualAnalyzer | None = None,
) -> Image.Image:
    """Render one time-lapse frame as an RGB image.

    Order: content mode → optional date stamp → scale to target size.
    """
    if spec.content_mode == ContentMode.BACK_ONLY:
        image = load_image(item.back_path)
    elif spec.content_mode == ContentMode.FRONT_ONLY:
        image = load_image(item.front_path)
    else:
        back = load_image(item.back_path)
        front = load_image(item.front_path)
        if spec.content_mode == ContentMode.COMBINED_BACK_MAIN:
            background, inset = back, front
        else:
            background, inset = front, back
        corner = resolve_corner(spec.corner, background, inset.size, analyzer)
        image = composite_images(background, inset, corner)

    if spec.date_overlay:
        image = apply_date_stamp(image, item.timestamp)

    if spec.target_size is not None:
        image = fit_to_size(image, spec.target_size)
    return image
