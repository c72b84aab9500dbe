"""LangGraph workflow for the enhancement pipeline, with per-run step recording."""

from __future__ import annotations

import functools
import logging
import time
from typing import Optional

from langgraph.graph import END, StateGraph

from photo_enhancer.agents.global_enhance import global_enhance_agent
from photo_enhancer.agents.quality_analysis import quality_analysis_agent
from photo_enhancer.agents.surgical_edit import select_improvements, surgical_edit_agent
from photo_enhancer.backends import ModelClient, build_model_client
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.errors import EnhancementError
from photo_enhancer.graph.state import EnhancementGraphState
from photo_enhancer.models import (
    PHASE_COMPLETE,
    PHASE_ERROR,
    PHASE_INITIAL,
    PHASE_ONE,
    PHASE_THREE,
    PHASE_TWO,
    STOP_ITERATION_LIMIT,
    STOP_NO_FURTHER_EDITS,
    STOP_TARGET_SCORE,
    EnhancementState,
)
from photo_enhancer.observability import (
    StepRecorder,
    flush_galileo,
    observed,
    replay_to_galileo,
    summarize,
)
from photo_enhancer.prompts import IMAGE_PROFILE, EnhancementProfile

logger = logging.getLogger(__name__)

# Phase a run was heading into when it stopped at the given phase.
_NEXT_PHASE = {PHASE_INITIAL: PHASE_ONE, PHASE_ONE: PHASE_TWO, PHASE_TWO: PHASE_THREE, PHASE_THREE: PHASE_TWO}


# ── Convergence checks ──────────────────────────────────────────────

def stop_reason(
    state: EnhancementGraphState,
    config: EnhancementConfig,
    profile: EnhancementProfile = IMAGE_PROFILE,
) -> Optional[str]:
    """Why the Phase 2 <-> Phase 3 loop should stop now, or None to keep editing.

    An analysis whose remaining improvements are all filtered out for this
    profile (too low impact, or unsafe to propagate) ends the loop as
    ``no_further_edits``: another pass would send the same bytes back.
    """
    if state.get("phase") == PHASE_THREE:
        if state.get("iterations", 0) >= config.max_analysis_iterations:
            return STOP_ITERATION_LIMIT
        return None

    analysis = state.get("analysis")
    if analysis is None:
        return None
    if analysis.no_further_edits_needed:
        return STOP_NO_FURTHER_EDITS
    if analysis.professional_score >= config.target_professional_score:
        return STOP_TARGET_SCORE
    if state.get("iterations", 0) >= config.max_analysis_iterations:
        return STOP_ITERATION_LIMIT
    if not select_improvements(analysis, config, profile):
        return STOP_NO_FURTHER_EDITS
    return None


def _after_analysis(config: EnhancementConfig, profile: EnhancementProfile = IMAGE_PROFILE):
    def should_edit(state: EnhancementGraphState) -> str:
        """Conditional edge: surgical edits or done."""
        if stop_reason(state, config, profile) is not None:
            return "complete"
        return "phase3"

    return should_edit


def _after_edits(config: EnhancementConfig):
    def should_reanalyze(state: EnhancementGraphState) -> str:
        """Conditional edge: re-analyze unless the iteration bound is reached."""
        if stop_reason(state, config) is not None:
            logger.warning(
                "Max analysis iterations reached (%d), keeping best result so far",
                config.max_analysis_iterations,
            )
            return "complete"
        return "phase2"

    return should_reanalyze


def completion_agent(
    state: EnhancementGraphState,
    *,
    config: EnhancementConfig,
    profile: EnhancementProfile = IMAGE_PROFILE,
) -> dict:
    """LangGraph node: mark the item complete and record why the loop stopped."""
    reason = stop_reason(state, config, profile) or STOP_ITERATION_LIMIT
    analysis = state.get("analysis")
    logger.info(
        "Enhancement complete: reason=%s score=%s imagen_edits=%d instruction_edits=%d iterations=%d",
        reason,
        f"{analysis.professional_score:.1f}" if analysis else "n/a",
        state.get("imagen_edits", 0),
        state.get("instruction_edits", 0),
        state.get("iterations", 0),
    )
    return {"phase": PHASE_COMPLETE, "phase_history": [PHASE_COMPLETE], "stop_reason": reason}


# ── Graph builder ───────────────────────────────────────────────────

def build_workflow(
    models: ModelClient,
    config: EnhancementConfig,
    *,
    profile: EnhancementProfile = IMAGE_PROFILE,
    extra_instruction: Optional[str] = None,
    recorder: Optional[StepRecorder] = None,
):
    """Construct and return the compiled LangGraph workflow.

    Graph topology
    ==============
    START ──► phase1 ──► phase2 ──► converged? ──┬─► phase3 ──► bound hit? ──┬─► phase2 (loop)
                                                  │                          └─► complete
                                                  └─► complete ──► END
    """
    recorder = recorder if recorder is not None else StepRecorder()
    graph = StateGraph(EnhancementGraphState)

    nodes = {
        "phase1": functools.partial(
            global_enhance_agent, models=models, profile=profile, extra_instruction=extra_instruction
        ),
        "phase2": functools.partial(quality_analysis_agent, models=models, config=config, profile=profile),
        "phase3": functools.partial(surgical_edit_agent, models=models, config=config, profile=profile),
        "complete": functools.partial(completion_agent, config=config, profile=profile),
    }
    for name, fn in nodes.items():
        graph.add_node(name, observed(name, fn, recorder))

    graph.set_entry_point("phase1")
    graph.add_edge("phase1", "phase2")
    graph.add_conditional_edges(
        "phase2",
        _after_analysis(config, profile),
        {"phase3": "phase3", "complete": "complete"},
    )
    graph.add_conditional_edges(
        "phase3",
        _after_edits(config),
        {"phase2": "phase2", "complete": "complete"},
    )
    graph.add_edge("complete", END)

    return graph.compile()


def initial_state(data: bytes, mime_type: str, width: int, height: int) -> EnhancementGraphState:
    return {
        "current_data": data,
        "current_mime": mime_type,
        "original_mime": mime_type,
        "width": width,
        "height": height,
        "phase": PHASE_INITIAL,
        "phase_history": [PHASE_INITIAL],
        "phase1_text": "",
        "analysis": None,
        "imagen_edits": 0,
        "instruction_edits": 0,
        "edit_log": [],
        "iterations": 0,
        "stop_reason": "",
    }


def to_enhancement_state(values: EnhancementGraphState) -> EnhancementState:
    return EnhancementState(
        phase=values.get("phase", PHASE_INITIAL),
        current_data=values.get("current_data", b""),
        current_mime=values.get("current_mime", ""),
        original_mime=values.get("original_mime", ""),
        phase1_text=values.get("phase1_text", ""),
        imagen_edits=values.get("imagen_edits", 0),
        instruction_edits=values.get("instruction_edits", 0),
        iterations=values.get("iterations", 0),
        analysis=values.get("analysis"),
        stop_reason=values.get("stop_reason", ""),
        phase_history=list(values.get("phase_history", [])),
        edit_log=list(values.get("edit_log", [])),
    )


def run_full_enhancement(
    data: bytes,
    mime_type: str,
    width: int,
    height: int,
    config: Optional[EnhancementConfig] = None,
    models: Optional[ModelClient] = None,
    *,
    profile: EnhancementProfile = IMAGE_PROFILE,
    extra_instruction: Optional[str] = None,
    raise_on_error: bool = False,
    defer_upload: bool = False,
) -> EnhancementState:
    """Run Phase 1 -> Phase 2 -> (Phase 3 -> Phase 2)* for one media item.

    Returns the terminal EnhancementState. On failure the state is returned
    with ``phase == "error"`` and whatever the run produced before failing;
    with ``raise_on_error=True`` the EnhancementError is raised instead and
    carries that partial state in ``exc.state``.
    """
    config = config or EnhancementConfig()
    models = models or build_model_client(config)
    recorder = StepRecorder()
    app = build_workflow(
        models, config, profile=profile, extra_instruction=extra_instruction, recorder=recorder
    )

    start = initial_state(data, mime_type, width, height)
    input_summary = summarize({k: v for k, v in start.items() if k != "edit_log"})
    logger.info(
        "Starting full enhancement pipeline image_bytes=%d mime=%s width=%d height=%d profile=%s",
        len(data),
        mime_type,
        width,
        height,
        profile.name,
    )

    last_values: EnhancementGraphState = dict(start)
    pipeline_error: Optional[EnhancementError] = None
    pipeline_start = time.time_ns()
    try:
        for values in app.stream(
            start,
            config={"recursion_limit": 2 * config.max_analysis_iterations + 10},
            stream_mode="values",
        ):
            last_values = values
    except EnhancementError as exc:
        pipeline_error = exc
    except Exception as exc:
        pipeline_error = EnhancementError(f"{type(exc).__name__}: {exc}")
        pipeline_error.__cause__ = exc
    pipeline_duration = time.time_ns() - pipeline_start

    state = to_enhancement_state(last_values)
    if pipeline_error is not None:
        failed = pipeline_error.phase or _NEXT_PHASE.get(state.phase, state.phase)
        state.failed_phase = failed
        state.error = f"{failed} error: {pipeline_error}"
        state.phase = PHASE_ERROR
        state.phase_history.append(PHASE_ERROR)
        logger.error("Enhancement pipeline failed in %s: %s", failed, pipeline_error)
    else:
        logger.info("Full enhancement pipeline completed duration=%.1fs", pipeline_duration / 1e9)

    replay_to_galileo(
        recorder,
        input_summary,
        summarize(state.to_dict()),
        pipeline_duration,
        workflow_status_code=500 if pipeline_error else 200,
    )
    if not defer_upload:
        flush_galileo()

    if pipeline_error is not None and raise_on_error:
        pipeline_error.state = state
        raise pipeline_error
    return state
