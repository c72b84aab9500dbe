"""Quality Analysis Agent (Phase 2) -- rubric-scored critique of the current image."""

from __future__ import annotations

import logging

from photo_enhancer.backends import ModelClient
from photo_enhancer.backends.gemini import truncate
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.errors import AnalysisParseError, EnhancementError
from photo_enhancer.graph.state import EnhancementGraphState
from photo_enhancer.jsonparse import parse_analysis
from photo_enhancer.models import PHASE_TWO, AnalysisResult
from photo_enhancer.prompts import IMAGE_PROFILE, EnhancementProfile

logger = logging.getLogger(__name__)


def request_analysis(
    models: ModelClient,
    data: bytes,
    mime_type: str,
    prompt: str,
    system_instruction: str,
    target_score: float,
) -> AnalysisResult:
    """Ask the model for a critique and decode it.

    Raises BackendError when the call fails and AnalysisParseError when the
    reply has no usable structure; neither is turned into a default result.
    """
    text = models.analyze_image(data, mime_type, prompt, system_instruction=system_instruction)
    try:
        analysis = parse_analysis(text)
    except AnalysisParseError:
        logger.warning("Failed to parse analysis response: %r", truncate(text, 500))
        raise
    analysis.target_score = target_score
    return analysis


def run_phase_two(
    models: ModelClient,
    data: bytes,
    mime_type: str,
    config: EnhancementConfig,
    profile: EnhancementProfile = IMAGE_PROFILE,
) -> AnalysisResult:
    logger.info("Phase 2: analyzing image for remaining improvements image_bytes=%d", len(data))
    try:
        analysis = request_analysis(
            models,
            data,
            mime_type,
            profile.analysis_prompt,
            profile.analysis_system_prompt,
            config.target_professional_score,
        )
    except EnhancementError as exc:
        exc.phase = PHASE_TWO
        raise

    logger.info(
        "Phase 2 complete: score=%.1f target=%.1f improvements=%d no_further_edits=%s",
        analysis.professional_score,
        analysis.target_score,
        len(analysis.remaining_improvements),
        analysis.no_further_edits_needed,
    )
    return analysis


def quality_analysis_agent(
    state: EnhancementGraphState,
    *,
    models: ModelClient,
    config: EnhancementConfig,
    profile: EnhancementProfile = IMAGE_PROFILE,
) -> dict:
    """LangGraph node: score the current bytes and record the analysis."""
    analysis = run_phase_two(models, state["current_data"], state["current_mime"], config, profile)
    return {
        "phase": PHASE_TWO,
        "phase_history": [PHASE_TWO],
        "analysis": analysis,
    }
