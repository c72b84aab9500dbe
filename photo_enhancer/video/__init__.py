from photo_enhancer.video.frames import VideoMetadata, extract_frames, extraction_fps, probe_video
from photo_enhancer.video.grouping import FrameGroup, compare_histograms, color_histogram, group_frames
from photo_enhancer.video.lut import apply_lut, compute_color_lut, lut_to_cube
from photo_enhancer.video.pipeline import (
    GroupEnhancementResult,
    VideoEnhancementResult,
    enhance_frames,
    enhance_video,
)

__all__ = [
    "FrameGroup",
    "GroupEnhancementResult",
    "VideoEnhancementResult",
    "VideoMetadata",
    "apply_lut",
    "color_histogram",
    "compare_histograms",
    "compute_color_lut",
    "enhance_frames",
    "enhance_video",
    "extract_frames",
    "extraction_fps",
    "group_frames",
    "lut_to_cube",
    "probe_video",
]
