"""Step recording for pipeline runs, with optional Galileo Observe upload.

Each graph node is wrapped so its input/output summary and duration land in
a per-run StepRecorder. When galileo-observe is installed and
GALILEO_API_KEY is set, a finished run is replayed into Galileo as one
workflow under a process-wide lock, so concurrent runs never interleave.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# If galileo-observe is not installed or credentials are missing the
# pipeline still runs, just without remote observability.
try:
    from galileo_observe import ObserveWorkflows

    _GALILEO_AVAILABLE = True
except ImportError:
    _GALILEO_AVAILABLE = False

WORKFLOW_NAME = "photo-enhancement-pipeline"

_observe_workflows: Optional[Any] = None
_galileo_init_done = False
_galileo_lock = threading.Lock()  # serialise Galileo API access


def _init_galileo() -> Optional[Any]:
    """Initialise the ObserveWorkflows tracker (singleton per process)."""
    global _observe_workflows, _galileo_init_done  # noqa: PLW0603
    if _galileo_init_done:
        return _observe_workflows

    _galileo_init_done = True

    if not _GALILEO_AVAILABLE:
        logger.debug("galileo-observe not installed, running without observability")
        return None

    if not os.getenv("GALILEO_API_KEY"):
        logger.debug("GALILEO_API_KEY not set, running without observability")
        return None

    project = os.getenv("GALILEO_PROJECT", "photo-enhancer")
    try:
        _observe_workflows = ObserveWorkflows(project_name=project)
        logger.info("Galileo Observe initialised project=%r", project)
    except Exception as exc:
        logger.warning("Failed to initialise Galileo Observe, continuing without it: %s", exc)
        return None

    return _observe_workflows


def reset_galileo() -> None:
    """Reset the Galileo singleton so a fresh ObserveWorkflows is created."""
    global _observe_workflows, _galileo_init_done  # noqa: PLW0603
    _observe_workflows = None
    _galileo_init_done = False


def summarize(value: Any) -> str:
    """JSON summary of a state dict with image bytes replaced by their size."""

    def _clean(v: Any) -> Any:
        if isinstance(v, (bytes, bytearray)):
            return f"<{len(v)} bytes>"
        if hasattr(v, "model_dump"):
            return v.model_dump(by_alias=True)
        if isinstance(v, dict):
            return {k: _clean(x) for k, x in v.items()}
        if isinstance(v, (list, tuple)):
            return [_clean(x) for x in v]
        return v

    return json.dumps(_clean(value), default=str)


@dataclass
class StepRecord:
    node_name: str
    input_text: str
    output_text: str
    duration_ns: int
    status_code: int = 200  # 200 = ok, 500 = error


@dataclass
class StepRecorder:
    """Per-run buffer of node executions."""

    steps: list[StepRecord] = field(default_factory=list)

    def collect(
        self,
        node_name: str,
        input_text: str,
        output_text: str,
        duration_ns: int,
        *,
        status_code: int = 200,
    ) -> None:
        self.steps.append(StepRecord(node_name, input_text, output_text, duration_ns, status_code))
        tag = "ERROR" if status_code >= 400 else "OK"
        logger.debug("Collected step %s (%.0fms) [%s]", node_name, duration_ns / 1_000_000, tag)

    @property
    def has_errors(self) -> bool:
        return any(s.status_code >= 400 for s in self.steps)

    def durations(self) -> dict[str, float]:
        """Total seconds spent per node name."""
        totals: dict[str, float] = {}
        for s in self.steps:
            totals[s.node_name] = totals.get(s.node_name, 0.0) + s.duration_ns / 1e9
        return totals


def observed(node_name: str, fn: Callable[[dict], dict], recorder: StepRecorder) -> Callable[[dict], dict]:
    """Wrap a LangGraph node function with step collection."""

    def wrapper(state: dict) -> dict:
        input_summary = summarize({k: v for k, v in state.items() if k != "edit_log"})
        start_ns = time.time_ns()
        try:
            result = fn(state)
        except Exception as exc:
            recorder.collect(
                node_name,
                input_summary,
                f"ERROR: {type(exc).__name__}: {exc}",
                time.time_ns() - start_ns,
                status_code=500,
            )
            raise
        recorder.collect(node_name, input_summary, summarize(result), time.time_ns() - start_ns)
        return result

    wrapper.__name__ = node_name
    return wrapper


def replay_to_galileo(
    recorder: StepRecorder,
    input_summary: str,
    output_summary: str,
    total_duration_ns: int,
    *,
    workflow_status_code: int = 200,
) -> bool:
    """Replay all collected steps as a single Galileo workflow. Returns True if sent."""
    ow = _init_galileo()
    if ow is None:
        return False

    has_errors = recorder.has_errors
    wf_code = workflow_status_code if workflow_status_code >= 400 else (500 if has_errors else 200)

    with _galileo_lock:
        try:
            ow.add_agent_workflow(
                input=input_summary,
                name=WORKFLOW_NAME,
                metadata={
                    "framework": "langgraph",
                    "has_errors": str(has_errors),
                    "workflow_status": str(wf_code),
                },
            )
            for step in recorder.steps:
                ow.add_tool_step(
                    input=step.input_text,
                    output=step.output_text,
                    name=step.node_name,
                    duration_ns=step.duration_ns,
                    status_code=step.status_code,
                    metadata={
                        "node": step.node_name,
                        "status": "error" if step.status_code >= 400 else "ok",
                    },
                )
            ow.conclude_workflow(
                output=output_summary,
                duration_ns=total_duration_ns,
                status_code=wf_code,
            )
        except Exception as exc:
            logger.warning("Galileo: failed to replay workflow: %s", exc)
            return False
    return True


def flush_galileo() -> int:
    """Upload all accumulated workflows to Galileo. Returns count uploaded."""
    ow = _init_galileo()
    if ow is None:
        return 0
    with _galileo_lock:
        try:
            results = ow.upload_workflows()
        except Exception as exc:
            logger.warning("Galileo: failed to upload workflows: %s", exc)
            return 0
    logger.info("Galileo: uploaded %d workflow(s)", len(results))
    return len(results)
