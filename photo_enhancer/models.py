"""Data model for the enhancement pipeline.

Model-facing records (analysis output, feedback history) are pydantic models
so they can be validated from loosely formatted model text and persisted by
the caller as camelCase JSON. The per-invocation working record is a plain
dataclass because it carries raw image bytes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

# ── Phases ──────────────────────────────────────────────────────────
PHASE_INITIAL = "initial"
PHASE_ONE = "phase1"  # global enhancement
PHASE_TWO = "phase2"  # quality analysis
PHASE_THREE = "phase3"  # surgical edits
PHASE_FEEDBACK = "feedback"  # user feedback loop
PHASE_COMPLETE = "complete"
PHASE_ERROR = "error"

PHASES = (
    PHASE_INITIAL,
    PHASE_ONE,
    PHASE_TWO,
    PHASE_THREE,
    PHASE_COMPLETE,
    PHASE_FEEDBACK,
    PHASE_ERROR,
)

# ── Why the Phase 2 <-> Phase 3 loop stopped ────────────────────────
STOP_NO_FURTHER_EDITS = "no_further_edits"
STOP_TARGET_SCORE = "target_score"
STOP_ITERATION_LIMIT = "iteration_limit"

# ── Feedback methods ────────────────────────────────────────────────
METHOD_INSTRUCTION = "gemini"
METHOD_INPAINT = "imagen"

IMPACT_RANK = {"low": 0, "medium": 1, "high": 2}

_SCORE_RE = re.compile(r"-?\d+(?:\.\d+)?")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ImprovementItem(_CamelModel):
    """One remaining enhancement opportunity reported by the analyzer."""

    type: str = "general"
    description: str = ""
    region: str = "global"  # free-text locator, e.g. "top-left sky"
    impact: str = "medium"
    imagen_suitable: bool = False  # needs a mask-based localized edit
    edit_instruction: str = ""
    safe_for_propagation: bool = True  # video: a color LUT can carry it to every frame

    @field_validator(
        "type", "description", "edit_instruction", "imagen_suitable", "safe_for_propagation", mode="before"
    )
    @classmethod
    def _null_is_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("impact", mode="before")
    @classmethod
    def _normalise_impact(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text if text in IMPACT_RANK else "medium"

    @field_validator("region", mode="before")
    @classmethod
    def _default_region(cls, value: Any) -> str:
        text = str(value or "").strip()
        return text or "global"

    @model_validator(mode="after")
    def _instruction_fallback(self) -> "ImprovementItem":
        if not self.edit_instruction:
            self.edit_instruction = self.description
        return self

    @property
    def impact_rank(self) -> int:
        return IMPACT_RANK[self.impact]


class AnalysisResult(_CamelModel):
    """Structured Phase 2 critique of the current artifact."""

    overall_assessment: str = ""
    professional_score: float
    target_score: float = 0.0
    no_further_edits_needed: bool = False
    remaining_improvements: list[ImprovementItem] = Field(default_factory=list)

    @field_validator("professional_score", "target_score", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> Any:
        # Tolerates "7.5", "7.5/10" and "score: 7".
        if isinstance(value, str):
            match = _SCORE_RE.search(value)
            if match is None:
                raise ValueError(f"no numeric score in {value!r}")
            return float(match.group())
        return value

    @field_validator("remaining_improvements", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _no_edits_means_no_improvements(self) -> "AnalysisResult":
        if self.no_further_edits_needed:
            self.remaining_improvements = []
        return self


class FeedbackEntry(_CamelModel):
    """One round of user feedback and what the pipeline did about it."""

    user_feedback: str
    model_response: str = ""
    method: str = METHOD_INSTRUCTION
    success: bool = False


@dataclass
class EnhancementState:
    """Working record for one media item through the enhancement pipeline."""

    phase: str = PHASE_INITIAL
    current_data: bytes = b""
    current_mime: str = ""
    original_mime: str = ""
    phase1_text: str = ""
    imagen_edits: int = 0
    instruction_edits: int = 0
    iterations: int = 0
    analysis: Optional[AnalysisResult] = None
    stop_reason: str = ""
    phase_history: list[str] = field(default_factory=list)
    edit_log: list[dict] = field(default_factory=list)
    error: str = ""
    failed_phase: str = ""

    @property
    def finished(self) -> bool:
        return self.phase in (PHASE_COMPLETE, PHASE_FEEDBACK, PHASE_ERROR)

    def to_dict(self) -> dict:
        """JSON-ready view for the caller's job store (image bytes omitted)."""
        return {
            "phase": self.phase,
            "currentMIME": self.current_mime,
            "phase1Text": self.phase1_text,
            "imagenEdits": self.imagen_edits,
            "instructionEdits": self.instruction_edits,
            "iterations": self.iterations,
            "analysis": self.analysis.model_dump(by_alias=True) if self.analysis else None,
            "stopReason": self.stop_reason,
            "error": self.error or None,
        }
