"""momentreel.common — shared utilities for the export pipeline.

Contains: font loading, local time handling, output naming and directory
layout, and image loading.
"""

import logging
from datetime import datetime
from pathlib import Path

from PIL import Image, ImageFont, ImageOps, UnidentifiedImageError

from .errors import DirectoryCreationFailed, ImageLoadFailed
from .models import FolderLayout

logger = logging.getLogger(__name__)


# ── Font paths ─────────────────────────────────────────────────────
# Inter preferred for the date stamp, DejaVu Sans as fallback.

FONT_PATHS = [
    Path.home() / ".local/share/fonts/Inter.ttc",
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
]

FILENAME_PREFIX = "export"
FILENAME_DATE_FORMAT = "%Y-%m-%d_%H%M%S"


# ── Font loading ───────────────────────────────────────────────────

def load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load Inter (or fallback) at the given size."""
    for font_path in FONT_PATHS:
        if font_path.exists():
            try:
                return ImageFont.truetype(str(font_path), size=size, index=0)
            except (OSError, IndexError):
                continue
    # Last resort: Pillow default font, scaled where Pillow supports it.
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        return ImageFont.load_default()


# ── Time ───────────────────────────────────────────────────────────

def local_wall_clock(value: datetime) -> datetime:
    """Naive local wall-clock time for naming, folders and EXIF.

    Aware timestamps (exports store UTC) are converted to the machine's
    local zone; naive timestamps are taken as already local.
    """
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# ── Output layout ──────────────────────────────────────────────────

def ensure_directory(path: str | Path) -> Path:
    """Create a directory (and parents) if absent. Safe to call repeatedly."""
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreationFailed(path) from exc
    return path


def output_directory(
    destination: str | Path, timestamp: datetime, layout: FolderLayout,
) -> Path:
    """destination/YYYY/MM/DD for the date layout, destination itself when flat."""
    destination = Path(destination)
    if layout == FolderLayout.FLAT:
        return destination
    local = local_wall_clock(timestamp)
    return destination / f"{local.year:04d}" / f"{local.month:02d}" / f"{local.day:02d}"


def output_stem(kind: str, timestamp: datetime) -> str:
    """export_<kind>_<YYYY-MM-DD_HHmmss> — qualifiers and extension are added by callers."""
    stamp = local_wall_clock(timestamp).strftime(FILENAME_DATE_FORMAT)
    return f"{FILENAME_PREFIX}_{kind}_{stamp}"


# ── Image loading ──────────────────────────────────────────────────

def load_image(path: str | Path) -> Image.Image:
    """Decode an image fully into memory as RGB, honouring EXIF orientation.

    Raises:
        ImageLoadFailed: Unreadable or undecodable file.
    """
    try:
        with Image.open(path) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            return img.convert("RGB")
    except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageLoadFailed(path) from exc
