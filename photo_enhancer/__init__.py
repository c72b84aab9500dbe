"""Multi-phase AI enhancement pipeline for photos and videos."""

from photo_enhancer.graph.workflow import build_workflow, run_full_enhancement, stop_reason
from photo_enhancer.agents.feedback import FeedbackResult, process_feedback
from photo_enhancer.backends import ModelClient, build_model_client
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.errors import (
    AnalysisParseError,
    BackendError,
    ConfigError,
    EnhancementError,
    MaskError,
)
from photo_enhancer.models import AnalysisResult, EnhancementState, FeedbackEntry, ImprovementItem
from photo_enhancer.video import VideoEnhancementResult, enhance_frames, enhance_video

__all__ = [
    "AnalysisParseError",
    "AnalysisResult",
    "BackendError",
    "ConfigError",
    "EnhancementConfig",
    "EnhancementError",
    "EnhancementState",
    "FeedbackEntry",
    "FeedbackResult",
    "ImprovementItem",
    "MaskError",
    "ModelClient",
    "VideoEnhancementResult",
    "build_model_client",
    "build_workflow",
    "enhance_frames",
    "enhance_video",
    "process_feedback",
    "run_full_enhancement",
    "stop_reason",
]
