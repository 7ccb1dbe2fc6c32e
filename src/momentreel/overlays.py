"""Date stamp overlay for time-lapse frames.

Draws the capture date as a rounded, semi-transparent pill with a soft
drop shadow in a fixed corner of the frame. All pixel sizes scale with the
frame height so the stamp looks the same at 720p and at full resolution.
"""

from datetime import datetime

import numpy as np
from PIL import Image, ImageDraw, ImageFilter

from .common import load_font, local_wall_clock


# ── Constants ────────────────────────────────────────────────────

STAMP_POSITION = "bottom-right"
STAMP_MARGIN_FRAC = 0.03         # margin from edges as fraction of frame dimension
STAMP_FONT_FRAC = 0.035          # font size as fraction of frame height
STAMP_MIN_FONT = 12
STAMP_BG_ALPHA = 140             # ~55% opacity
STAMP_SHADOW_ALPHA = 90
STAMP_TEXT_COLOR = (255, 255, 255)


def format_stamp_date(value: datetime) -> str:
    """Date in the current locale's month name, e.g. 'January 15, 2024'."""
    local = local_wall_clock(value)
    return f"{local:%B} {local.day}, {local.year}"


# ── Position computation ─────────────────────────────────────────


def compute_stamp_position(
    position: str,
    patch_w: int,
    patch_h: int,
    frame_w: int,
    frame_h: int,
) -> tuple[int, int]:
    """Top-left (x, y) for a patch in one of the four frame corners."""
    margin_x = int(frame_w * STAMP_MARGIN_FRAC)
    margin_y = int(frame_h * STAMP_MARGIN_FRAC)

    vert, horiz = position.split("-", 1)
    x = margin_x if horiz == "left" else frame_w - margin_x - patch_w
    y = margin_y if vert == "top" else frame_h - margin_y - patch_h
    return x, y


# ── Patch rendering ──────────────────────────────────────────────


def render_stamp_patch(text: str, font_size: int) -> np.ndarray:
    """Render the pill as an RGBA array, shadow included.

    The text box is bottom-aligned inside the pill padding.
    """
    font = load_font(font_size)
    draw_tmp = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    bbox = draw_tmp.textbbox((0, 0), text, font=font)
    text_w = bbox[2] - bbox[0]
    text_h = bbox[3] - bbox[1]

    pad_x = max(6, font_size // 2)
    pad_y = max(4, font_size // 3)
    pill_w = text_w + 2 * pad_x
    pill_h = text_h + 2 * pad_y
    radius = pill_h // 2
    shadow = max(2, font_size // 6)

    img = Image.new("RGBA", (pill_w + 2 * shadow, pill_h + 3 * shadow), (0, 0, 0, 0))

    shadow_layer = Image.new("RGBA", img.size, (0, 0, 0, 0))
    ImageDraw.Draw(shadow_layer).rounded_rectangle(
        [(shadow, 2 * shadow), (shadow + pill_w - 1, 2 * shadow + pill_h - 1)],
        radius=radius,
        fill=(0, 0, 0, STAMP_SHADOW_ALPHA),
    )
    img.alpha_composite(shadow_layer.filter(ImageFilter.GaussianBlur(shadow)))

    draw = ImageDraw.Draw(img)
    draw.rounded_rectangle(
        [(shadow, shadow), (shadow + pill_w - 1, shadow + pill_h - 1)],
        radius=radius,
        fill=(0, 0, 0, STAMP_BG_ALPHA),
    )
    draw.text(
        (shadow + pad_x - bbox[0], shadow + pill_h - pad_y - bbox[3]),
        text, fill=(*STAMP_TEXT_COLOR, 255), font=font,
    )
    return np.array(img)


# ── Frame-level application ──────────────────────────────────────


def apply_date_stamp(frame: Image.Image, value: datetime) -> Image.Image:
    """Return a copy of `frame` with the date stamp alpha-blended on."""
    result = np.array(frame.convert("RGB"))
    frame_h, frame_w = result.shape[:2]
    font_size = max(STAMP_MIN_FONT, round(frame_h * STAMP_FONT_FRAC))

    patch = render_stamp_patch(format_stamp_date(value), font_size)
    patch_h, patch_w = patch.shape[:2]
    if patch_w > frame_w or patch_h > frame_h:
        return frame.convert("RGB")

    x, y = compute_stamp_position(STAMP_POSITION, patch_w, patch_h, frame_w, frame_h)
    x = max(0, min(x, frame_w - patch_w))
    y = max(0, min(y, frame_h - patch_h))

    alpha = patch[:, :, 3:4].astype(np.float32) / 255.0
    rgb = patch[:, :, :3].astype(np.float32)
    dest = result[y:y + patch_h, x:x + patch_w].astype(np.float32)
    blended = dest * (1 - alpha) + rgb * alpha
    result[y:y + patch_h, x:x + patch_w] = blended.astype(np.uint8)
    return Image.fromarray(result)
