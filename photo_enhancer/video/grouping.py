"""Scene grouping -- consecutive frames with similar color histograms share one group."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

HISTOGRAM_BINS = 32  # per RGB channel


@dataclass
class FrameGroup:
    """A run of consecutive, visually similar frames."""

    start_index: int
    end_index: int  # inclusive
    representative_index: int  # middle frame of the group
    frame_indices: list[int] = field(default_factory=list)

    @property
    def frame_count(self) -> int:
        return self.end_index - self.start_index + 1


def color_histogram(frame: np.ndarray, bins: int = HISTOGRAM_BINS) -> np.ndarray:
    """Normalized 3D RGB histogram, flattened to ``bins**3`` entries."""
    pixels = np.asarray(frame, dtype=np.uint8).reshape(-1, 3).astype(np.int64)
    if pixels.size == 0:
        return np.zeros(bins**3, dtype=np.float64)
    q = pixels * bins // 256
    idx = (q[:, 0] * bins + q[:, 1]) * bins + q[:, 2]
    hist = np.bincount(idx, minlength=bins**3).astype(np.float64)
    return hist / len(pixels)


def compare_histograms(h1: np.ndarray, h2: np.ndarray) -> float:
    """Pearson correlation in [-1, 1] (OpenCV's HISTCMP_CORREL)."""
    d1 = h1 - h1.mean()
    d2 = h2 - h2.mean()
    denom = float(np.sqrt((d1 * d1).sum() * (d2 * d2).sum()))
    if denom < 1e-10:
        # Both essentially uniform: treat as identical.
        return 1.0
    return float((d1 * d2).sum() / denom)


def group_frames(frames: Sequence[np.ndarray], threshold: float) -> list[FrameGroup]:
    """Split frames into scene groups wherever consecutive correlation drops below *threshold*."""
    if len(frames) == 0:
        raise ValueError("no frames to group")

    logger.info("Grouping frames by color histogram total=%d threshold=%.2f", len(frames), threshold)

    boundaries: list[tuple[int, int]] = []
    current_start = 0
    prev_hist = color_histogram(frames[0])
    for i in range(1, len(frames)):
        hist = color_histogram(frames[i])
        correlation = compare_histograms(prev_hist, hist)
        if correlation < threshold:
            logger.debug("Scene change detected frame=%d correlation=%.3f", i, correlation)
            boundaries.append((current_start, i - 1))
            current_start = i
        prev_hist = hist
    boundaries.append((current_start, len(frames) - 1))

    groups = []
    for start, end in boundaries:
        count = end - start + 1
        groups.append(
            FrameGroup(
                start_index=start,
                end_index=end,
                representative_index=start + count // 2,
                frame_indices=list(range(start, end + 1)),
            )
        )

    logger.info(
        "Frame grouping complete groups=%d frames=%d avg_group_size=%.1f",
        len(groups),
        len(frames),
        len(frames) / len(groups),
    )
    return groups
