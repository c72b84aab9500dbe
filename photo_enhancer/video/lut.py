"""3D color LUTs -- capture a representative frame's enhancement and replay it on its group."""

from __future__ import annotations

import logging

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

LUT_SIZE = 64  # entries per channel
SAMPLE_STEP = 2  # sample every 2nd pixel in each direction


def compute_color_lut(original: np.ndarray, enhanced: np.ndarray, size: int = LUT_SIZE) -> np.ndarray:
    """Map each RGB bin of *original* to the mean color it became in *enhanced*.

    The enhanced image may have different dimensions; it is resized to the
    original's so both are sampled at the same normalized positions. Bins
    with no samples map to themselves. Returns a ``(size, size, size, 3)``
    float array in [0, 1], indexed ``[r, g, b]``.
    """
    if original.size == 0 or enhanced.size == 0:
        raise ValueError(f"invalid image dimensions: orig={original.shape} enh={enhanced.shape}")

    h, w = original.shape[:2]
    if enhanced.shape[:2] != (h, w):
        enhanced = np.array(Image.fromarray(enhanced).resize((w, h), Image.NEAREST))

    orig = original[::SAMPLE_STEP, ::SAMPLE_STEP, :3].reshape(-1, 3).astype(np.int64)
    enh = enhanced[::SAMPLE_STEP, ::SAMPLE_STEP, :3].reshape(-1, 3).astype(np.float64)

    bins = np.minimum(orig * size // 256, size - 1)
    idx = (bins[:, 0] * size + bins[:, 1]) * size + bins[:, 2]
    counts = np.bincount(idx, minlength=size**3).astype(np.float64)
    sums = np.stack(
        [np.bincount(idx, weights=enh[:, c], minlength=size**3) for c in range(3)],
        axis=1,
    )

    grid = np.arange(size, dtype=np.float64) / (size - 1)
    r, g, b = np.meshgrid(grid, grid, grid, indexing="ij")
    lut = np.stack([r, g, b], axis=-1).reshape(-1, 3)

    filled = counts > 0
    lut[filled] = sums[filled] / counts[filled, None] / 255.0
    np.clip(lut, 0.0, 1.0, out=lut)

    logger.debug("Color LUT computed size=%d filled_bins=%d", size, int(filled.sum()))
    return lut.reshape(size, size, size, 3)


def apply_lut(frame: np.ndarray, lut: np.ndarray) -> np.ndarray:
    """Recolor an RGB frame through *lut* (nearest bin)."""
    size = lut.shape[0]
    pixels = frame[..., :3].astype(np.int64)
    bins = np.minimum(pixels * size // 256, size - 1)
    out = lut[bins[..., 0], bins[..., 1], bins[..., 2]]
    return np.clip(np.rint(out * 255.0), 0, 255).astype(np.uint8)


def lut_to_cube(lut: np.ndarray, title: str = "Video Enhancement LUT") -> str:
    """Serialize to the .cube text format (blue varies fastest, red slowest)."""
    size = lut.shape[0]
    lines = [f'TITLE "{title}"', f"LUT_3D_SIZE {size}", ""]
    for row in lut.reshape(-1, 3):
        lines.append(f"{row[0]:.6f} {row[1]:.6f} {row[2]:.6f}")
    return "\n".join(lines) + "\n"
