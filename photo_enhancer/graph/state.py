"""State definition for the enhancement pipeline graph."""

import operator
from typing import Annotated, Optional, TypedDict

from photo_enhancer.models import AnalysisResult


class EnhancementGraphState(TypedDict, total=False):
    """Shared state that flows through the LangGraph pipeline."""

    # Media
    current_data: bytes  # latest edited bytes (replaced whole after each edit)
    current_mime: str
    original_mime: str
    width: int  # caller-supplied dimensions, used when the bytes can't be decoded
    height: int

    # Phase tracking
    phase: str
    phase_history: Annotated[list, operator.add]  # every phase entered, in order

    # Phase outputs
    phase1_text: str
    analysis: Optional[AnalysisResult]
    imagen_edits: int  # successful mask-based edits
    instruction_edits: int  # successful instruction-based edits
    edit_log: Annotated[list, operator.add]  # one dict per attempted surgical edit

    # Loop control
    iterations: int  # completed Phase 3 passes
    stop_reason: str
