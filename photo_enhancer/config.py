"""Enhancement configuration -- thresholds, iteration bounds and backend credentials."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Optional

from photo_enhancer.errors import ConfigError

# ── Defaults ────────────────────────────────────────────────────────
# Histogram correlation for two consecutive video frames to share a scene group.
#   0.95+ splits on minor camera movement, 0.85 merges different scenes
#   with similar palettes.
DEFAULT_SIMILARITY_THRESHOLD = 0.92
DEFAULT_MAX_ANALYSIS_ITERATIONS = 3
DEFAULT_TARGET_PROFESSIONAL_SCORE = 8.5
DEFAULT_MAX_SURGICAL_EDITS_PER_PASS = 3
DEFAULT_REQUEST_RETRIES = 3

GEMINI_IMAGE_MODEL = "gemini-3-pro-image-preview"
GEMINI_ANALYSIS_MODEL = "gemini-3-pro-preview"
IMAGEN_EDIT_MODEL = "imagen-3.0-capability-001"

IMPACT_LEVELS = ("low", "medium", "high")


@dataclass(frozen=True)
class EnhancementConfig:
    """Immutable settings for one enhancement invocation."""

    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    max_analysis_iterations: int = DEFAULT_MAX_ANALYSIS_ITERATIONS
    target_professional_score: float = DEFAULT_TARGET_PROFESSIONAL_SCORE
    min_impact: str = "medium"
    max_surgical_edits_per_pass: int = DEFAULT_MAX_SURGICAL_EDITS_PER_PASS
    request_retries: int = DEFAULT_REQUEST_RETRIES

    # Gemini (multimodal edit + analysis)
    gemini_api_key: str = ""
    gemini_image_model: str = GEMINI_IMAGE_MODEL
    gemini_analysis_model: str = GEMINI_ANALYSIS_MODEL

    # Imagen on Vertex AI (optional mask-based inpainting)
    vertex_project: str = ""
    vertex_location: str = ""
    vertex_access_token: str = ""
    imagen_model: str = IMAGEN_EDIT_MODEL

    def __post_init__(self) -> None:
        if not 0.0 < self.similarity_threshold <= 1.0:
            raise ConfigError(
                f"similarity_threshold must be in (0, 1], got {self.similarity_threshold}"
            )
        if self.max_analysis_iterations < 0:
            raise ConfigError(
                f"max_analysis_iterations must be >= 0, got {self.max_analysis_iterations}"
            )
        if self.target_professional_score <= 0:
            raise ConfigError(
                f"target_professional_score must be positive, got {self.target_professional_score}"
            )
        if self.min_impact not in IMPACT_LEVELS:
            raise ConfigError(f"min_impact must be one of {IMPACT_LEVELS}, got {self.min_impact!r}")
        if self.max_surgical_edits_per_pass < 1:
            raise ConfigError("max_surgical_edits_per_pass must be >= 1")
        if self.request_retries < 0:
            raise ConfigError("request_retries must be >= 0")

    @property
    def inpainting_configured(self) -> bool:
        """True when enough Vertex AI settings exist to build an Imagen client."""
        return bool(self.vertex_project and self.vertex_location)

    def with_overrides(self, **overrides) -> "EnhancementConfig":
        """Return a copy with the non-None overrides applied."""
        known = {f.name for f in fields(self)}
        changes = {k: v for k, v in overrides.items() if v is not None and k in known}
        return replace(self, **changes)

    @classmethod
    def from_env(cls, **overrides) -> "EnhancementConfig":
        """Build a config from environment variables (call ``load_dotenv()`` first)."""
        values = {
            "gemini_api_key": os.getenv("GEMINI_API_KEY", ""),
            "gemini_image_model": os.getenv("GEMINI_IMAGE_MODEL", GEMINI_IMAGE_MODEL),
            "gemini_analysis_model": os.getenv("GEMINI_ANALYSIS_MODEL", GEMINI_ANALYSIS_MODEL),
            "vertex_project": os.getenv("VERTEX_AI_PROJECT", ""),
            "vertex_location": os.getenv("VERTEX_AI_REGION", ""),
            "vertex_access_token": os.getenv("VERTEX_AI_TOKEN", ""),
            "imagen_model": os.getenv("IMAGEN_MODEL", IMAGEN_EDIT_MODEL),
        }
        values.update(_numeric_env("ENHANCE_TARGET_SCORE", "target_professional_score", float))
        values.update(_numeric_env("ENHANCE_MAX_ITERATIONS", "max_analysis_iterations", int))
        values.update(_numeric_env("ENHANCE_SIMILARITY_THRESHOLD", "similarity_threshold", float))
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _numeric_env(var: str, field_name: str, cast) -> dict:
    raw: Optional[str] = os.getenv(var)
    if raw is None or raw.strip() == "":
        return {}
    try:
        return {field_name: cast(raw)}
    except ValueError as exc:
        raise ConfigError(f"{var}={raw!r} is not a valid {cast.__name__}") from exc
