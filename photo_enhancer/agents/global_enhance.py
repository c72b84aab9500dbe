"""Global Enhancement Agent (Phase 1) -- one holistic edit pass with the multimodal model."""

from __future__ import annotations

import logging
from typing import Optional

from photo_enhancer.backends import EditResult, ModelClient
from photo_enhancer.backends.gemini import truncate
from photo_enhancer.errors import EnhancementError
from photo_enhancer.graph.state import EnhancementGraphState
from photo_enhancer.models import PHASE_ONE
from photo_enhancer.prompts import IMAGE_PROFILE, EnhancementProfile

logger = logging.getLogger(__name__)


def run_phase_one(
    models: ModelClient,
    data: bytes,
    mime_type: str,
    profile: EnhancementProfile = IMAGE_PROFILE,
    extra_instruction: Optional[str] = None,
) -> EditResult:
    """Apply the holistic quality pass; failures propagate to the orchestrator."""
    logger.info("Phase 1: starting global enhancement image_bytes=%d mime=%s", len(data), mime_type)

    instruction = profile.global_instruction
    if extra_instruction:
        instruction = f"{instruction}\n\nADDITIONAL USER FEEDBACK:\n{extra_instruction}"

    try:
        result = models.edit_image(data, mime_type, instruction, system_instruction=profile.system_prompt)
    except EnhancementError as exc:
        exc.phase = PHASE_ONE
        raise

    logger.info(
        "Phase 1 complete: enhanced_bytes=%d changes=%r",
        len(result.data),
        truncate(result.text, 200),
    )
    return result


def global_enhance_agent(
    state: EnhancementGraphState,
    *,
    models: ModelClient,
    profile: EnhancementProfile = IMAGE_PROFILE,
    extra_instruction: Optional[str] = None,
) -> dict:
    """LangGraph node: replace the working bytes with the globally enhanced version."""
    result = run_phase_one(
        models,
        state["current_data"],
        state["current_mime"],
        profile=profile,
        extra_instruction=extra_instruction,
    )
    return {
        "phase": PHASE_ONE,
        "phase_history": [PHASE_ONE],
        "current_data": result.data,
        "current_mime": result.mime_type or state["current_mime"],
        "phase1_text": result.text,
    }
