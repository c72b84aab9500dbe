"""Exception types raised by the enhancement pipeline."""

from __future__ import annotations

from typing import Any, Optional


class EnhancementError(Exception):
    """Base error for the enhancement pipeline.

    ``state`` carries the partially-filled EnhancementState when the error
    escapes ``run_full_enhancement(raise_on_error=True)``; ``phase`` names the
    phase that was running.
    """

    def __init__(self, message: str, *, phase: Optional[str] = None, state: Any = None):
        super().__init__(message)
        self.phase = phase
        self.state = state


class BackendError(EnhancementError):
    """A generative backend call failed (transport, auth, or unusable response)."""


class AnalysisParseError(EnhancementError):
    """The analyzer returned text that could not be turned into an AnalysisResult."""

    def __init__(self, message: str, *, raw_text: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.raw_text = raw_text


class MaskError(EnhancementError):
    """A free-text region could not be mapped to an edit mask."""


class ConfigError(EnhancementError):
    """Configuration values are missing or out of range."""
