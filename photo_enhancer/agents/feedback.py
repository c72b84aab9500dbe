"""Feedback Agent -- one targeted revision driven by free-text user feedback.

Runs after the main pipeline has completed. Each call picks one edit method,
applies it once and appends exactly one FeedbackEntry to the history. A
failure never touches the current artifact and never raises for backend
errors; the returned entry explains what went wrong.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import MutableSequence, Optional

from photo_enhancer.agents.quality_analysis import request_analysis
from photo_enhancer.agents.surgical_edit import apply_mask_edit
from photo_enhancer.backends import ConversationTurn, ModelClient
from photo_enhancer.backends.gemini import truncate
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.errors import EnhancementError
from photo_enhancer.masks import resolve_region
from photo_enhancer.models import METHOD_INPAINT, METHOD_INSTRUCTION, FeedbackEntry, ImprovementItem
from photo_enhancer.prompts import ANALYSIS_SYSTEM_PROMPT, ENHANCEMENT_SYSTEM_PROMPT, FEEDBACK_REGION_PROMPT

logger = logging.getLogger(__name__)

_LOCALIZED_VERBS = re.compile(
    r"\b(remove|erase|delete|get rid of|take out|clean up|retouch|blur out|hide)\b",
    re.IGNORECASE,
)


@dataclass
class FeedbackResult:
    data: bytes
    mime_type: str
    entry: FeedbackEntry
    error: Optional[Exception] = None


def history_to_turns(history: list[FeedbackEntry]) -> list[ConversationTurn]:
    """Replay prior rounds as alternating user/model turns, oldest first."""
    turns = []
    for h in history:
        turns.append(ConversationTurn(role="user", text=h.user_feedback))
        turns.append(ConversationTurn(role="model", text=h.model_response))
    return turns


def wants_localized_edit(feedback: str) -> bool:
    """Heuristic: does the feedback name a region or a removal-style fix?"""
    if _LOCALIZED_VERBS.search(feedback):
        return True
    region = resolve_region(feedback)
    return region is not None and region != "global"


def _locate_edit(
    models: ModelClient,
    data: bytes,
    mime_type: str,
    feedback: str,
    target_score: float,
) -> Optional[ImprovementItem]:
    """Ask the analyzer where the requested change belongs; None if not mask-suitable."""
    try:
        analysis = request_analysis(
            models,
            data,
            mime_type,
            FEEDBACK_REGION_PROMPT % feedback,
            ANALYSIS_SYSTEM_PROMPT,
            target_score,
        )
    except EnhancementError as exc:
        logger.warning("Feedback: region analysis failed, using instruction edit: %s", exc)
        return None
    return next((i for i in analysis.remaining_improvements if i.imagen_suitable), None)


def process_feedback(
    models: ModelClient,
    current_data: bytes,
    mime_type: str,
    feedback: str,
    history: MutableSequence[FeedbackEntry],
    width: int,
    height: int,
    config: Optional[EnhancementConfig] = None,
) -> FeedbackResult:
    """Apply one round of user feedback to the current artifact.

    ``history`` is the item's prior feedback (oldest first); the new entry is
    appended to it. The caller persists both the history and the result bytes.
    """
    config = config or EnhancementConfig()
    logger.debug(
        "Processing enhancement feedback length=%d history=%d feedback=%r",
        len(feedback),
        len(history),
        truncate(feedback, 200),
    )
    entry = FeedbackEntry(user_feedback=feedback)

    item: Optional[ImprovementItem] = None
    if models.inpainting_available and wants_localized_edit(feedback):
        item = _locate_edit(models, current_data, mime_type, feedback, config.target_professional_score)

    try:
        if item is not None:
            entry.method = METHOD_INPAINT
            logger.info("Feedback: applying mask edit region=%r type=%s", item.region, item.type)
            result = apply_mask_edit(models, current_data, mime_type, item, width, height)
            entry.model_response = f"Applied a localized edit to the {item.region} region: {item.edit_instruction}"
        else:
            entry.method = METHOD_INSTRUCTION
            logger.info("Feedback: applying instruction edit with %d prior round(s)", len(history))
            result = models.edit_image(
                current_data,
                mime_type,
                feedback,
                system_instruction=ENHANCEMENT_SYSTEM_PROMPT,
                history=history_to_turns(list(history)),
            )
            entry.model_response = result.text or "Applied the requested change."
    except EnhancementError as exc:
        logger.warning("Feedback processing failed method=%s error=%s", entry.method, exc)
        entry.success = False
        entry.model_response = f"Unable to apply the requested change: {truncate(str(exc), 200)}"
        history.append(entry)
        return FeedbackResult(data=current_data, mime_type=mime_type, entry=entry, error=exc)

    entry.success = True
    history.append(entry)
    logger.info("Feedback processing successful method=%s result_bytes=%d", entry.method, len(result.data))
    return FeedbackResult(data=result.data, mime_type=result.mime_type or mime_type, entry=entry)
