"""Surgical Edit Agent (Phase 3) -- localized fixes for the analyzer's remaining improvements.

Each selected improvement is applied in the analyzer's order against the
latest bytes. Items flagged ``imagen_suitable`` go to mask-based inpainting
when that backend is available; everything else is an instruction-based edit
with the multimodal model. A failed item is logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from photo_enhancer.backends import INPAINT_INSERT, INPAINT_REMOVE, EditResult, ModelClient
from photo_enhancer.backends.gemini import truncate
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.errors import EnhancementError, MaskError
from photo_enhancer.graph.state import EnhancementGraphState
from photo_enhancer.masks import generate_region_mask, image_dimensions
from photo_enhancer.models import (
    IMPACT_RANK,
    METHOD_INPAINT,
    METHOD_INSTRUCTION,
    PHASE_THREE,
    AnalysisResult,
    ImprovementItem,
)
from photo_enhancer.prompts import GROUPED_INSTRUCTION_SUFFIX, IMAGE_PROFILE, EnhancementProfile

logger = logging.getLogger(__name__)

# Improvement types that add content rather than remove it.
INSERT_TYPES = ("background-cleanup", "composition-fix")


@dataclass
class SurgicalPassResult:
    data: bytes
    mime_type: str
    imagen_edits: int = 0
    instruction_edits: int = 0
    log: list[dict] = field(default_factory=list)


def route_improvement(item: ImprovementItem, models: ModelClient) -> str:
    """Pick the editor for one improvement item."""
    if item.imagen_suitable and models.inpainting_available:
        return METHOD_INPAINT
    return METHOD_INSTRUCTION


def select_improvements(
    analysis: AnalysisResult,
    config: EnhancementConfig,
    profile: EnhancementProfile = IMAGE_PROFILE,
) -> list[ImprovementItem]:
    """Items worth a targeted edit, in the analyzer's order."""
    min_rank = IMPACT_RANK[config.min_impact]
    selected = []
    for item in analysis.remaining_improvements:
        if item.impact_rank < min_rank:
            continue
        if profile.propagation_safe_only and not item.safe_for_propagation:
            continue
        selected.append(item)
    return selected


def apply_mask_edit(
    models: ModelClient,
    data: bytes,
    mime_type: str,
    item: ImprovementItem,
    width: int,
    height: int,
) -> EditResult:
    """Build a mask for the item's region at the image's current size and inpaint it."""
    try:
        width, height = image_dimensions(data)
    except MaskError:
        logger.debug("Could not decode image size, using caller dimensions %dx%d", width, height)
    mask = generate_region_mask(width, height, item.region)
    mode = INPAINT_INSERT if item.type in INSERT_TYPES else INPAINT_REMOVE
    return models.inpaint(data, mime_type, mask, item.edit_instruction, mode=mode)


def apply_instruction_edit(
    models: ModelClient,
    data: bytes,
    mime_type: str,
    item: ImprovementItem,
    profile: EnhancementProfile = IMAGE_PROFILE,
) -> EditResult:
    instruction = item.edit_instruction + GROUPED_INSTRUCTION_SUFFIX
    return models.edit_image(data, mime_type, instruction, system_instruction=profile.system_prompt)


def run_phase_three(
    models: ModelClient,
    data: bytes,
    mime_type: str,
    analysis: AnalysisResult,
    config: EnhancementConfig,
    width: int,
    height: int,
    profile: EnhancementProfile = IMAGE_PROFILE,
) -> SurgicalPassResult:
    """Apply one pass of surgical edits; never raises for a single item's failure."""
    items = select_improvements(analysis, config, profile)
    result = SurgicalPassResult(data=data, mime_type=mime_type)
    if not items:
        logger.info("Phase 3: no improvements selected for targeted editing")
        return result

    logger.info(
        "Phase 3: starting surgical edits count=%d inpainting_available=%s",
        len(items),
        models.inpainting_available,
    )

    mask_attempts = 0
    for index, item in enumerate(items, 1):
        method = route_improvement(item, models)
        entry = {"index": index, "type": item.type, "region": item.region, "method": method}

        if method == METHOD_INPAINT:
            if mask_attempts >= config.max_surgical_edits_per_pass:
                logger.warning(
                    "Phase 3: max mask edits per pass reached (%d), skipping %s",
                    config.max_surgical_edits_per_pass,
                    item.type,
                )
                result.log.append({**entry, "success": False, "error": "mask edit limit reached"})
                continue
            mask_attempts += 1

        logger.info(
            "Phase 3: applying edit %d/%d type=%s region=%r method=%s",
            index,
            len(items),
            item.type,
            item.region,
            method,
        )
        try:
            if method == METHOD_INPAINT:
                edited = apply_mask_edit(models, result.data, result.mime_type, item, width, height)
            else:
                edited = apply_instruction_edit(models, result.data, result.mime_type, item, profile)
        except EnhancementError as exc:
            logger.warning(
                "Phase 3: edit failed, continuing with other edits type=%s method=%s error=%s",
                item.type,
                method,
                truncate(str(exc), 200),
            )
            result.log.append({**entry, "success": False, "error": str(exc)})
            continue

        result.data = edited.data
        result.mime_type = edited.mime_type or result.mime_type
        if method == METHOD_INPAINT:
            result.imagen_edits += 1
        else:
            result.instruction_edits += 1
        result.log.append({**entry, "success": True})

    logger.info(
        "Phase 3 complete: imagen_edits=%d instruction_edits=%d attempted=%d",
        result.imagen_edits,
        result.instruction_edits,
        len(items),
    )
    return result


def surgical_edit_agent(
    state: EnhancementGraphState,
    *,
    models: ModelClient,
    config: EnhancementConfig,
    profile: EnhancementProfile = IMAGE_PROFILE,
) -> dict:
    """LangGraph node: run one surgical pass and close the loop counter."""
    iteration = state.get("iterations", 0) + 1
    outcome = run_phase_three(
        models,
        state["current_data"],
        state["current_mime"],
        state["analysis"],
        config,
        state.get("width", 0),
        state.get("height", 0),
        profile,
    )
    return {
        "phase": PHASE_THREE,
        "phase_history": [PHASE_THREE],
        "current_data": outcome.data,
        "current_mime": outcome.mime_type,
        "imagen_edits": state.get("imagen_edits", 0) + outcome.imagen_edits,
        "instruction_edits": state.get("instruction_edits", 0) + outcome.instruction_edits,
        "edit_log": [{**e, "iteration": iteration} for e in outcome.log],
        "iterations": iteration,
    }
