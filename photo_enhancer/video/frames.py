"""Frame extraction -- uses MoviePy to decode a video into RGB frames."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from moviepy import VideoFileClip
from PIL import Image

logger = logging.getLogger(__name__)

# ── Extraction rates ────────────────────────────────────────────────
# Longer clips are sampled more sparsely to keep frame counts manageable.
MAX_EXTRACTION_FPS = 30.0
REDUCED_FPS_15 = 15.0  # 30-60 s
REDUCED_FPS_10 = 10.0  # 60-120 s
REDUCED_FPS_5 = 5.0  # > 120 s
MAX_RECOMMENDED_DURATION = 120.0

FRAME_JPEG_QUALITY = 95


@dataclass
class VideoMetadata:
    frame_rate: float
    duration: float  # seconds
    width: int
    height: int


@dataclass
class FrameExtraction:
    frames: list[np.ndarray]  # HxWx3 uint8, in playback order
    original_fps: float
    extraction_fps: float

    @property
    def total_frames(self) -> int:
        return len(self.frames)


def extraction_fps(metadata: VideoMetadata) -> float:
    """Frame rate to sample at, reduced for longer videos."""
    if metadata.duration > MAX_RECOMMENDED_DURATION:
        return min(metadata.frame_rate, REDUCED_FPS_5)
    if metadata.duration > 60:
        return min(metadata.frame_rate, REDUCED_FPS_10)
    if metadata.duration > 30:
        return min(metadata.frame_rate, REDUCED_FPS_15)
    return min(metadata.frame_rate, MAX_EXTRACTION_FPS)


def probe_video(video_path: str) -> VideoMetadata:
    """Read frame rate, duration and size with MoviePy."""
    with VideoFileClip(video_path, audio=False) as clip:
        width, height = clip.size
        return VideoMetadata(
            frame_rate=float(clip.fps or MAX_EXTRACTION_FPS),
            duration=float(clip.duration or 0.0),
            width=int(width),
            height=int(height),
        )


def extract_frames(video_path: str, metadata: Optional[VideoMetadata] = None) -> FrameExtraction:
    """Decode the video into frames at a duration-dependent rate."""
    metadata = metadata or probe_video(video_path)
    fps = extraction_fps(metadata)
    if metadata.duration > MAX_RECOMMENDED_DURATION:
        logger.warning(
            "Video is %.0fs, longer than the recommended %.0fs for frame-based enhancement",
            metadata.duration,
            MAX_RECOMMENDED_DURATION,
        )

    with VideoFileClip(video_path, audio=False) as clip:
        frames = [np.asarray(f, dtype=np.uint8) for f in clip.iter_frames(fps=fps, dtype="uint8")]

    logger.info(
        "Frames extracted total=%d original_fps=%.2f extraction_fps=%.2f",
        len(frames),
        metadata.frame_rate,
        fps,
    )
    return FrameExtraction(frames=frames, original_fps=metadata.frame_rate, extraction_fps=fps)


def encode_frame(frame: np.ndarray, quality: int = FRAME_JPEG_QUALITY) -> bytes:
    """JPEG-encode an RGB frame for the image models."""
    buf = io.BytesIO()
    Image.fromarray(frame).convert("RGB").save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def decode_frame(data: bytes, size: Optional[tuple[int, int]] = None) -> np.ndarray:
    """Decode image bytes to an RGB array, optionally resized to (width, height)."""
    img = Image.open(io.BytesIO(data)).convert("RGB")
    if size is not None and img.size != size:
        img = img.resize(size, Image.LANCZOS)
    return np.array(img)
