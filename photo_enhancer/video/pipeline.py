"""Video enhancement -- one enhancement run per scene group, propagated by color LUT.

Frames are grouped by histogram similarity; each group's middle frame goes
through the same Phase 1 -> Phase 2 -> Phase 3 workflow as a photo (with the
video profile), and the representative's original->enhanced color mapping is
applied to every frame in the group. A group whose run fails keeps its
original frames.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from photo_enhancer.backends import ModelClient, build_model_client
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.graph.workflow import run_full_enhancement
from photo_enhancer.models import PHASE_ERROR
from photo_enhancer.observability import flush_galileo
from photo_enhancer.prompts import VIDEO_PROFILE
from photo_enhancer.video.compositor import write_video
from photo_enhancer.video.frames import VideoMetadata, decode_frame, encode_frame, extract_frames
from photo_enhancer.video.grouping import FrameGroup, group_frames
from photo_enhancer.video.lut import apply_lut, compute_color_lut

logger = logging.getLogger(__name__)

FRAME_MIME = "image/jpeg"


@dataclass
class GroupEnhancementResult:
    group_index: int
    start_index: int
    end_index: int
    frame_count: int
    success: bool = False
    phase1_description: str = ""
    analysis_iterations: int = 0
    final_score: float = 0.0
    imagen_edits: int = 0
    improvements_applied: list[str] = field(default_factory=list)
    error: Optional[str] = None
    lut: Optional[np.ndarray] = field(default=None, repr=False)


@dataclass
class VideoEnhancementResult:
    frames: list[np.ndarray] = field(repr=False)
    fps: float
    total_frames: int
    total_groups: int
    group_results: list[GroupEnhancementResult]
    summary: str
    duration_seconds: float = 0.0
    output_path: Optional[str] = None

    @property
    def failed_groups(self) -> list[int]:
        return [g.group_index for g in self.group_results if not g.success]


def _enhance_group(
    frames: Sequence[np.ndarray],
    group: FrameGroup,
    group_index: int,
    config: EnhancementConfig,
    models: ModelClient,
    user_feedback: Optional[str],
) -> tuple[GroupEnhancementResult, list[np.ndarray]]:
    """Enhance one scene group; returns its result and the group's output frames."""
    result = GroupEnhancementResult(
        group_index=group_index,
        start_index=group.start_index,
        end_index=group.end_index,
        frame_count=group.frame_count,
    )
    originals = [frames[i] for i in group.frame_indices]
    representative = frames[group.representative_index]
    height, width = representative.shape[:2]

    logger.info(
        "Enhancing frame group group=%d frames=%d representative=%d",
        group_index,
        group.frame_count,
        group.representative_index,
    )
    state = run_full_enhancement(
        encode_frame(representative),
        FRAME_MIME,
        width,
        height,
        config,
        models,
        profile=VIDEO_PROFILE,
        extra_instruction=user_feedback,
        defer_upload=True,
    )
    result.phase1_description = state.phase1_text
    result.analysis_iterations = state.iterations
    result.imagen_edits = state.imagen_edits
    result.improvements_applied = [e["type"] for e in state.edit_log if e.get("success")]
    if state.analysis is not None:
        result.final_score = state.analysis.professional_score

    if state.phase == PHASE_ERROR:
        result.error = state.error
        logger.error("Group enhancement failed, using original frames group=%d error=%s", group_index, state.error)
        return result, originals

    try:
        enhanced = decode_frame(state.current_data, size=(width, height))
        lut = compute_color_lut(representative, enhanced)
    except (OSError, ValueError) as exc:
        result.error = f"color LUT error: {exc}"
        logger.error("LUT computation failed, using original frames group=%d error=%s", group_index, exc)
        return result, originals

    result.lut = lut
    result.success = True
    logger.info("Propagating enhancement via color LUT group=%d frames=%d", group_index, group.frame_count)
    return result, [apply_lut(f, lut) for f in originals]


def enhance_frames(
    frames: Sequence[np.ndarray],
    fps: float,
    config: Optional[EnhancementConfig] = None,
    models: Optional[ModelClient] = None,
    user_feedback: Optional[str] = None,
) -> VideoEnhancementResult:
    """Group, enhance and recolor an in-memory frame sequence."""
    config = config or EnhancementConfig()
    models = models or build_model_client(config)
    start = time.monotonic()

    groups = group_frames(frames, config.similarity_threshold)
    output: list[np.ndarray] = []
    group_results = []
    summary_parts = []
    try:
        for i, group in enumerate(groups):
            result, group_frames_out = _enhance_group(frames, group, i, config, models, user_feedback)
            output.extend(group_frames_out)
            group_results.append(result)
            if result.success and result.phase1_description:
                summary_parts.append(
                    f"Group {i + 1} ({group.frame_count} frames): {result.phase1_description}"
                )
    finally:
        flush_galileo()

    summary = "Video enhancement complete."
    if summary_parts:
        summary = f"Enhanced {len(groups)} frame groups: " + "; ".join(summary_parts)

    return VideoEnhancementResult(
        frames=output,
        fps=fps,
        total_frames=len(frames),
        total_groups=len(groups),
        group_results=group_results,
        summary=summary,
        duration_seconds=time.monotonic() - start,
    )


def enhance_video(
    video_path: str,
    output_path: str,
    config: Optional[EnhancementConfig] = None,
    models: Optional[ModelClient] = None,
    metadata: Optional[VideoMetadata] = None,
    user_feedback: Optional[str] = None,
) -> VideoEnhancementResult:
    """Enhance a video file and write the result to *output_path*."""
    start = time.monotonic()
    logger.info("Starting video enhancement pipeline video=%s output=%s", video_path, output_path)

    extraction = extract_frames(video_path, metadata)
    result = enhance_frames(
        extraction.frames,
        extraction.extraction_fps,
        config,
        models,
        user_feedback=user_feedback,
    )
    result.output_path = write_video(
        result.frames,
        extraction.extraction_fps,
        output_path,
        audio_source=video_path,
    )
    result.duration_seconds = time.monotonic() - start

    logger.info(
        "Video enhancement pipeline completed duration=%.1fs groups=%d frames=%d failed_groups=%d",
        result.duration_seconds,
        result.total_groups,
        result.total_frames,
        len(result.failed_groups),
    )
    return result
