"""Video Compositor -- uses MoviePy to reassemble enhanced frames into a video."""

from __future__ import annotations

import logging
import os
from typing import Optional, Sequence

import numpy as np
from moviepy import AudioFileClip, ImageSequenceClip

logger = logging.getLogger(__name__)

# ── Encoding settings ───────────────────────────────────────────────
VIDEO_CODEC = "libx264"
AUDIO_CODEC = "aac"
VIDEO_CRF = 18  # visually lossless


def _source_audio(source_path: str, duration: float) -> Optional[AudioFileClip]:
    """Audio track of the source trimmed to *duration*, or None if it has none."""
    try:
        audio = AudioFileClip(source_path)
    except (OSError, KeyError, IndexError) as exc:
        logger.info("No audio track carried over from %s: %s", source_path, exc)
        return None
    if audio.duration and audio.duration > duration:
        audio = audio.subclipped(0, duration)
    return audio


def write_video(
    frames: Sequence[np.ndarray],
    fps: float,
    output_path: str,
    *,
    audio_source: Optional[str] = None,
    progress: bool = False,
) -> str:
    """Encode *frames* at *fps* to *output_path* with libx264, muxing source audio if any."""
    if not frames:
        raise ValueError("no frames to write")

    out_dir = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(out_dir, exist_ok=True)

    clip = ImageSequenceClip([np.asarray(f) for f in frames], fps=fps)
    audio = _source_audio(audio_source, clip.duration) if audio_source else None
    if audio is not None:
        clip = clip.with_audio(audio)

    logger.info(
        "Reassembling video frames=%d fps=%.2f audio=%s output=%s",
        len(frames),
        fps,
        audio is not None,
        output_path,
    )
    try:
        clip.write_videofile(
            output_path,
            fps=fps,
            codec=VIDEO_CODEC,
            audio=audio is not None,
            audio_codec=AUDIO_CODEC,
            ffmpeg_params=["-crf", str(VIDEO_CRF), "-pix_fmt", "yuv420p"],
            logger="bar" if progress else None,
        )
    finally:
        clip.close()
        if audio is not None:
            audio.close()

    logger.info("Video saved to %s", output_path)
    return output_path
