"""Overlay placement — pick the corner where the inset hides the least.

The inset covers a third of the background width, so covering a face or a
sign ruins the shot. Each of the four candidate corners is scored and the
lowest score wins:

  1. Saliency: mean of the attention and objectness maps inside the
     corner rectangle (either map alone when only one is available).
  2. Penalties: a face flag (any face more than 15% covered), the summed
     intersection area with bodies/animals, and the summed intersection
     area with text, weighted 10 / 5 / 3.
  3. Fallback: when no saliency map is available, luminance variance of
     the corner on a 400 px wide thumbnail (flat regions are cheap to
     cover) plus the same penalties scaled by 1000.

Scores are compared in the fixed order top-left, top-right, bottom-left,
bottom-right and the first minimum wins, so the same input always yields
the same corner.
"""

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

from .analysis import NormalizedRect, NullAnalyzer, VisualAnalyzer
from .models import CORNER_ORDER, CornerMode, CornerRequest, OverlayCorner

logger = logging.getLogger(__name__)


# ── Constants ────────────────────────────────────────────────────

OVERLAY_WIDTH_DIVISOR = 3        # inset width = background width / 3
PADDING_DIVISOR = 30             # edge margin = background width / 30
CORNER_RADIUS_DIVISOR = 12       # rounded corner = inset width / 12

FACE_WEIGHT = 10.0
BODY_WEIGHT = 5.0
TEXT_WEIGHT = 3.0
FACE_OVERLAP_FRAC = 0.15         # share of a face that must be covered to count

FALLBACK_WORK_WIDTH = 400
FALLBACK_PENALTY_SCALE = 1000.0


# ── Geometry ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class OverlayGeometry:
    background_w: int
    background_h: int
    overlay_w: int
    overlay_h: int
    padding: int

    @property
    def corner_radius(self) -> int:
        return self.overlay_w // CORNER_RADIUS_DIVISOR

    def rect(self, corner: OverlayCorner) -> tuple[int, int, int, int]:
        """Pixel (x, y, w, h) of the inset at the given corner."""
        if corner in (OverlayCorner.TOP_LEFT, OverlayCorner.BOTTOM_LEFT):
            x = self.padding
        else:
            x = self.background_w - self.overlay_w - self.padding
        if corner in (OverlayCorner.TOP_LEFT, OverlayCorner.TOP_RIGHT):
            y = self.padding
        else:
            y = self.background_h - self.overlay_h - self.padding
        return x, y, self.overlay_w, self.overlay_h

    def normalized_rect(self, corner: OverlayCorner) -> NormalizedRect:
        x, y, w, h = self.rect(corner)
        return NormalizedRect.from_pixels(x, y, w, h, self.background_w, self.background_h)


def overlay_geometry(
    background_size: tuple[int, int],
    inset_size: tuple[int, int],
) -> OverlayGeometry:
    """Inset geometry for a background and the inset's native size.

    The inset keeps its native aspect ratio at a third of the background
    width.
    """
    bg_w, bg_h = background_size
    inset_w, inset_h = inset_size
    if inset_w <= 0 or inset_h <= 0:
        raise ValueError(f"Inset has no area: {inset_w}x{inset_h}")
    overlay_w = bg_w // OVERLAY_WIDTH_DIVISOR
    overlay_h = int(overlay_w * (inset_h / inset_w))
    return OverlayGeometry(
        background_w=bg_w,
        background_h=bg_h,
        overlay_w=overlay_w,
        overlay_h=overlay_h,
        padding=bg_w // PADDING_DIVISOR,
    )


# ── Scoring ──────────────────────────────────────────────────────


def _safe_signal(method, image, default):
    """Call one analyzer method, treating a backend failure as no signal."""
    try:
        result = method(image)
    except Exception as exc:  # analyzer backends are third-party code
        logger.warning("Visual analysis %s failed: %s", method.__name__, exc)
        return default
    return default if result is None else result


def penalty_scores(
    geometry: OverlayGeometry,
    faces: list[NormalizedRect],
    bodies: list[NormalizedRect],
    texts: list[NormalizedRect],
) -> dict[OverlayCorner, float]:
    """Weighted face/body/text penalty per corner."""
    penalties = {}
    for corner in CORNER_ORDER:
        region = geometry.normalized_rect(corner)

        face_score = 0.0
        for face in faces:
            if face.area > 0 and region.intersection_area(face) > FACE_OVERLAP_FRAC * face.area:
                face_score = 1.0
                break

        body_score = sum(region.intersection_area(b) for b in bodies)
        text_score = sum(region.intersection_area(t) for t in texts)

        penalties[corner] = (
            FACE_WEIGHT * face_score
            + BODY_WEIGHT * body_score
            + TEXT_WEIGHT * text_score
        )
    return penalties


def saliency_scores(
    image: Image.Image,
    geometry: OverlayGeometry,
    analyzer: VisualAnalyzer,
) -> dict[OverlayCorner, float] | None:
    """Mean saliency per corner, or None when no map is available."""
    maps = [
        grid for grid in (
            _safe_signal(analyzer.attention_saliency, image, None),
            _safe_signal(analyzer.objectness_saliency, image, None),
        )
        if grid is not None
    ]
    if not maps:
        return None

    scores = {}
    for corner in CORNER_ORDER:
        x, y, w, h = geometry.rect(corner)
        values = [
            grid.region_mean(x, y, w, h, geometry.background_w, geometry.background_h)
            for grid in maps
        ]
        scores[corner] = sum(values) / len(values)
    return scores


def luminance_scores(
    image: Image.Image,
    geometry: OverlayGeometry,
) -> dict[OverlayCorner, float] | None:
    """Luminance variance per corner on a 400 px wide thumbnail.

    Returns None when the image cannot be converted to luminance.
    """
    try:
        work_h = max(1, round(FALLBACK_WORK_WIDTH * image.height / image.width))
        gray = image.convert("L").resize(
            (FALLBACK_WORK_WIDTH, work_h), Image.Resampling.BILINEAR,
        )
        luma = np.asarray(gray, dtype=np.float64)
    except (OSError, ValueError, ZeroDivisionError) as exc:
        logger.debug("Luminance extraction failed: %s", exc)
        return None

    scale_x = FALLBACK_WORK_WIDTH / geometry.background_w
    scale_y = work_h / geometry.background_h

    scores = {}
    for corner in CORNER_ORDER:
        x, y, w, h = geometry.rect(corner)
        x0 = max(0, int(x * scale_x))
        y0 = max(0, int(y * scale_y))
        x1 = min(FALLBACK_WORK_WIDTH, int((x + w) * scale_x))
        y1 = min(work_h, int((y + h) * scale_y))
        region = luma[y0:y1, x0:x1]
        scores[corner] = float(region.var()) if region.size else 0.0
    return scores


def _lowest(scores: dict[OverlayCorner, float]) -> OverlayCorner:
    best = CORNER_ORDER[0]
    for corner in CORNER_ORDER[1:]:
        if scores[corner] < scores[best]:
            best = corner
    return best


def choose_corner(
    image: Image.Image,
    inset_size: tuple[int, int],
    analyzer: VisualAnalyzer | None = None,
) -> OverlayCorner:
    """Analyze a background and return the least obstructive corner.

    Args:
        image: Background image (any PIL mode).
        inset_size: Native (width, height) of the image that will be inset.
        analyzer: Source of saliency and detection signals. None means
            no signals, i.e. the luminance fallback.

    Returns:
        One of the four OverlayCorner values.
    """
    analyzer = analyzer or NullAnalyzer()
    geometry = overlay_geometry(image.size, inset_size)

    faces = _safe_signal(analyzer.detect_faces, image, [])
    bodies = _safe_signal(analyzer.detect_bodies, image, [])
    texts = _safe_signal(analyzer.detect_text, image, [])
    penalties = penalty_scores(geometry, faces, bodies, texts)

    saliency = saliency_scores(image, geometry, analyzer)
    if saliency is not None:
        combined = {c: saliency[c] + penalties[c] for c in CORNER_ORDER}
        return _lowest(combined)

    variance = luminance_scores(image, geometry)
    if variance is None:
        return OverlayCorner.TOP_LEFT
    logger.debug("No saliency signal; placing by luminance variance")
    combined = {
        c: variance[c] + FALLBACK_PENALTY_SCALE * penalties[c] for c in CORNER_ORDER
    }
    return _lowest(combined)


def resolve_corner(
    request: CornerRequest,
    image: Image.Image,
    inset_size: tuple[int, int],
    analyzer: VisualAnalyzer | None = None,
) -> OverlayCorner:
    """Turn a corner request into a concrete corner.

    An explicit corner is returned unchanged without touching the image.
    CornerMode.ALL has no single answer; callers expand it to the four
    fixed corners themselves.
    """
    if isinstance(request, OverlayCorner):
        return request
    if request == CornerMode.AUTO:
        return choose_corner(image, inset_size, analyzer)
    raise ValueError(f"Corner request {request!r} does not resolve to a single corner")
