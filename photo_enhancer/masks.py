"""Region masks for mask-based inpainting -- built with Pillow.

The analyzer describes where an edit belongs in free text ("top-left sky",
"background"). These helpers map that text onto a 3x3 grid (with a small
overlap margin) or one of the band shapes, and render a white-on-black PNG
mask at the image's pixel size.
"""

from __future__ import annotations

import io
import re
from typing import Optional

from PIL import Image, ImageDraw

from photo_enhancer.errors import MaskError

GRID_REGIONS = (
    "top-left",
    "top-center",
    "top-right",
    "center-left",
    "center",
    "center-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
)
BAND_REGIONS = ("top", "bottom", "left", "right", "background", "foreground", "global")
REGIONS = GRID_REGIONS + BAND_REGIONS

_SYNONYMS = (
    (r"\bupper\b", "top"),
    (r"\blower\b", "bottom"),
    (r"\b(?:middle|centre|central)\b", "center"),
    (r"\b(?:sky|ceiling|horizon)\b", "top"),
    (r"\b(?:ground|floor)\b", "bottom"),
)
_GLOBAL_WORDS = ("global", "entire", "whole", "overall", "full image", "everywhere")
_FOREGROUND_WORDS = ("foreground", "subject", "main subject")


def resolve_region(text: str) -> Optional[str]:
    """Map a free-text locator onto a canonical region name, or None."""
    t = (text or "").strip().lower().replace("_", "-")
    if not t:
        return None
    if t in REGIONS:
        return t
    for pattern, repl in _SYNONYMS:
        t = re.sub(pattern, repl, t)
    t = t.replace(" ", "-")
    if t in REGIONS:
        return t

    words = set(re.split(r"[-\s,/]+", t))
    if "background" in words:
        return "background"
    if any(w in t for w in _FOREGROUND_WORDS):
        return "foreground"
    if any(w.replace(" ", "-") in t for w in _GLOBAL_WORDS):
        return "global"

    vertical = next((v for v in ("top", "bottom") if v in words), None)
    horizontal = next((h for h in ("left", "right") if h in words), None)
    if vertical is None and "center" in words:
        vertical = "center"

    if vertical and horizontal:
        return f"{vertical}-{horizontal}"
    if vertical == "center":
        return "center"
    return vertical or horizontal


def region_boxes(width: int, height: int, region: str) -> list[tuple[int, int, int, int]]:
    """Return the white rectangles (x1, y1, x2, y2) that make up *region*."""
    third_w, third_h = width // 3, height // 3
    margin = width // 20  # 5% overlap so seams blend

    cols = {
        "left": (0, third_w + margin),
        "center": (third_w - margin, 2 * third_w + margin),
        "right": (2 * third_w - margin, width),
    }
    rows = {
        "top": (0, third_h + margin),
        "center": (third_h - margin, 2 * third_h + margin),
        "bottom": (2 * third_h - margin, height),
    }

    if region == "global":
        return [(0, 0, width, height)]
    if region == "foreground":
        return [(width // 5, height // 5, 4 * width // 5, 4 * height // 5)]
    if region == "background":
        edge_w, edge_h = width // 5, height // 5
        return [
            (0, 0, width, edge_h),
            (0, height - edge_h, width, height),
            (0, edge_h, edge_w, height - edge_h),
            (width - edge_w, edge_h, width, height - edge_h),
        ]
    if region in ("top", "bottom"):
        y1, y2 = rows[region]
        return [(0, y1, width, y2)]
    if region in ("left", "right"):
        x1, x2 = cols[region]
        return [(x1, 0, x2, height)]
    if region == "center":
        row, col = "center", "center"
    elif region in GRID_REGIONS:
        row, col = region.split("-")
    else:
        raise MaskError(f"unknown region: {region}")

    x1, x2 = cols[col]
    y1, y2 = rows[row]
    return [(max(x1, 0), max(y1, 0), min(x2, width), min(y2, height))]


def generate_region_mask(width: int, height: int, region: str) -> bytes:
    """Render a PNG mask (white = edit) for a free-text region."""
    if width <= 0 or height <= 0:
        raise MaskError(f"invalid mask size {width}x{height}")
    canonical = resolve_region(region)
    if canonical is None:
        raise MaskError(f"unknown region: {region!r}")

    mask = Image.new("L", (width, height), color=0)
    draw = ImageDraw.Draw(mask)
    for x1, y1, x2, y2 in region_boxes(width, height, canonical):
        if x2 > x1 and y2 > y1:
            # Pillow rectangles are inclusive of the end coordinate.
            draw.rectangle([x1, y1, x2 - 1, y2 - 1], fill=255)

    buf = io.BytesIO()
    mask.save(buf, format="PNG")
    return buf.getvalue()


def image_dimensions(data: bytes) -> tuple[int, int]:
    """Read (width, height) from encoded image bytes without a full decode."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (OSError, ValueError) as exc:
        raise MaskError(f"cannot read image dimensions: {exc}") from exc
