"""Image compositor — render the output JPEGs for one capture pair.

Styles:
  - separate: back and front re-encoded as their own files.
  - combined: back-as-background with the front inset, and front-as-
    background with the back inset. Auto placement is resolved per
    background because the analysis depends on which image is behind.
  - both: separate files followed by combined files.

The inset is a third of the background width, sits `padding` from the two
nearest edges, has rounded corners (radius = inset width / 12) and a soft
drop shadow behind it. Every file carries the capture's EXIF metadata.
"""

import logging
from pathlib import Path

from PIL import Image, ImageDraw, ImageFilter

from .analysis import VisualAnalyzer
from .common import load_image
from .errors import CompositeCreationFailed, ContextCreationFailed, WriteFailed
from .metadata import JPEG_QUALITY, ExportMetadata, exif_bytes
from .models import (
    CORNER_ORDER,
    CapturePair,
    CompositeSpec,
    CornerMode,
    CornerRequest,
    ImageStyle,
    OverlayCorner,
)
from .placement import OverlayGeometry, overlay_geometry, resolve_corner

logger = logging.getLogger(__name__)


# ── Constants ────────────────────────────────────────────────────

SHADOW_ALPHA = 110               # ~43% opacity
SHADOW_BLUR_DIVISOR = 40         # blur radius = inset width / 40
SHADOW_OFFSET_DIVISOR = 80       # downward offset = inset width / 80


# ── Drawing ──────────────────────────────────────────────────────


def _new_surface(mode: str, size: tuple[int, int], color=0) -> Image.Image:
    try:
        return Image.new(mode, size, color)
    except (MemoryError, ValueError) as exc:
        raise ContextCreationFailed(f"{mode} {size[0]}x{size[1]}") from exc


def rounded_mask(size: tuple[int, int], radius: int) -> Image.Image:
    """L-mode mask, opaque inside a rounded rectangle filling `size`."""
    mask = _new_surface("L", size, 0)
    ImageDraw.Draw(mask).rounded_rectangle(
        [(0, 0), (size[0] - 1, size[1] - 1)], radius=radius, fill=255,
    )
    return mask


def _drop_shadow(
    canvas: Image.Image, geometry: OverlayGeometry, rect: tuple[int, int, int, int],
) -> None:
    """Blend a blurred rounded rectangle under the inset position."""
    x, y, w, h = rect
    blur = max(1, geometry.overlay_w // SHADOW_BLUR_DIVISOR)
    offset = max(1, geometry.overlay_w // SHADOW_OFFSET_DIVISOR)
    margin = blur * 3

    patch = _new_surface("RGBA", (w + 2 * margin, h + 2 * margin), (0, 0, 0, 0))
    ImageDraw.Draw(patch).rounded_rectangle(
        [(margin, margin), (margin + w - 1, margin + h - 1)],
        radius=geometry.corner_radius,
        fill=(0, 0, 0, SHADOW_ALPHA),
    )
    patch = patch.filter(ImageFilter.GaussianBlur(blur))
    canvas.alpha_composite(patch, (x - margin, y - margin + offset))


def composite_images(
    background: Image.Image,
    inset: Image.Image,
    corner: OverlayCorner,
) -> Image.Image:
    """Draw `inset` as a rounded, shadowed picture-in-picture on `background`.

    Returns a new RGB image the size of the background.

    Raises:
        ContextCreationFailed: The rendering surface could not be allocated.
        CompositeCreationFailed: The inset cannot be placed on this background.
    """
    try:
        geometry = overlay_geometry(background.size, inset.size)
    except ValueError as exc:
        raise CompositeCreationFailed(str(exc)) from exc
    if geometry.overlay_w <= 0 or geometry.overlay_h <= 0:
        raise CompositeCreationFailed(
            f"Background {background.width}x{background.height} is too small for an inset"
        )

    canvas = _new_surface("RGBA", background.size, (0, 0, 0, 255))
    canvas.paste(background.convert("RGB"), (0, 0))

    rect = geometry.rect(corner)
    x, y, w, h = rect
    _drop_shadow(canvas, geometry, rect)

    try:
        scaled = inset.convert("RGB").resize((w, h), Image.Resampling.LANCZOS)
    except (MemoryError, ValueError) as exc:
        raise CompositeCreationFailed(f"Could not scale inset: {exc}") from exc
    canvas.paste(scaled, (x, y), rounded_mask((w, h), geometry.corner_radius))

    return canvas.convert("RGB")


# ── Output ───────────────────────────────────────────────────────


def save_jpeg(image: Image.Image, path: str | Path, metadata: ExportMetadata) -> Path:
    """Encode as JPEG (quality 90) with EXIF metadata.

    Raises:
        WriteFailed: Encoding or writing failed.
    """
    path = Path(path)
    try:
        image.convert("RGB").save(
            path, format="JPEG", quality=JPEG_QUALITY, exif=exif_bytes(metadata),
        )
    except (OSError, ValueError) as exc:
        raise WriteFailed(path, str(exc)) from exc
    return path


def combined_corners(
    request: CornerRequest,
    background: Image.Image,
    inset: Image.Image,
    analyzer: VisualAnalyzer | None,
) -> list[tuple[str, OverlayCorner]]:
    """(filename suffix, corner) pairs to render for one background.

    ALL renders every fixed corner with the corner name as suffix; AUTO or
    an explicit corner renders once with no suffix.
    """
    if request == CornerMode.ALL:
        return [(f"_{corner.value}", corner) for corner in CORNER_ORDER]
    return [("", resolve_corner(request, background, inset.size, analyzer))]


def composite_capture(
    capture: CapturePair,
    spec: CompositeSpec,
    output_dir: str | Path,
    stem: str,
    analyzer: VisualAnalyzer | None = None,
) -> list[Path]:
    """Write every output file for one capture pair.

    Args:
        capture: The pair to render.
        spec: Style and corner request (folder layout is the caller's).
        output_dir: Existing directory to write into.
        stem: Filename stem, e.g. export_post_2024-01-15_093000.
        analyzer: Visual analyzer for auto placement.

    Returns:
        Paths written, in write order.
    """
    output_dir = Path(output_dir)
    metadata = ExportMetadata(
        timestamp=capture.timestamp,
        location=capture.location,
        caption=capture.caption,
    )
    back = load_image(capture.back_path)
    front = load_image(capture.front_path)

    written = []
    if spec.style in (ImageStyle.SEPARATE_ONLY, ImageStyle.BOTH):
        written.append(save_jpeg(back, output_dir / f"{stem}_back.jpg", metadata))
        written.append(save_jpeg(front, output_dir / f"{stem}_front.jpg", metadata))

    if spec.style in (ImageStyle.COMBINED_ONLY, ImageStyle.BOTH):
        for label, background, inset in (("back", back, front), ("front", front, back)):
            for suffix, corner in combined_corners(spec.corner, background, inset, analyzer):
                logger.debug("%s combined_%s: inset at %s", stem, label, corner.value)
                image = composite_images(background, inset, corner)
                path = output_dir / f"{stem}_combined_{label}{suffix}.jpg"
                written.append(save_jpeg(image, path, metadata))

    return written
