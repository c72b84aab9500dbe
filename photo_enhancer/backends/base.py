"""Model Client Facade -- one object the phases talk to, whatever backends exist.

The multimodal backend (edit + describe) is always present. The mask-based
inpainting backend is optional; callers ask ``inpainting_available`` instead
of checking for ``None`` at every call site.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, runtime_checkable

from photo_enhancer.errors import BackendError, EnhancementError

logger = logging.getLogger(__name__)

INPAINT_REMOVE = "inpainting-remove"
INPAINT_INSERT = "inpainting-insert"


@dataclass
class EditResult:
    """Edited media returned by a backend."""

    data: bytes
    mime_type: str
    text: str = ""


@dataclass
class ConversationTurn:
    """One prior turn replayed to the multimodal model ("user" or "model")."""

    role: str
    text: str
    image_data: Optional[bytes] = None
    image_mime: str = ""


@runtime_checkable
class MultimodalBackend(Protocol):
    def edit_image(
        self,
        data: bytes,
        mime_type: str,
        instruction: str,
        system_instruction: str = "",
        history: Sequence[ConversationTurn] = (),
    ) -> EditResult: ...

    def analyze_image(
        self,
        data: bytes,
        mime_type: str,
        prompt: str,
        system_instruction: str = "",
    ) -> str: ...


@runtime_checkable
class InpaintingBackend(Protocol):
    @property
    def is_configured(self) -> bool: ...

    def inpaint(
        self,
        data: bytes,
        mime_type: str,
        mask_png: bytes,
        instruction: str,
        mode: str = INPAINT_REMOVE,
    ) -> EditResult: ...


class ModelClient:
    """Capability facade over the multimodal and (optional) inpainting backends.

    Anything a backend raises that is not already an ``EnhancementError``
    surfaces as ``BackendError``, so per-item error handling in the phases
    sees a single exception family.
    """

    def __init__(self, multimodal: MultimodalBackend, inpainter: Optional[InpaintingBackend] = None):
        self._multimodal = multimodal
        self._inpainter = inpainter

    @property
    def inpainting_available(self) -> bool:
        return self._inpainter is not None and self._inpainter.is_configured

    def edit_image(
        self,
        data: bytes,
        mime_type: str,
        instruction: str,
        system_instruction: str = "",
        history: Sequence[ConversationTurn] = (),
    ) -> EditResult:
        try:
            result = self._multimodal.edit_image(
                data, mime_type, instruction, system_instruction=system_instruction, history=history
            )
        except EnhancementError:
            raise
        except Exception as exc:
            raise _backend_failure("multimodal", exc) from exc
        if not result.data:
            raise BackendError("multimodal backend returned no image data")
        return result

    def analyze_image(self, data: bytes, mime_type: str, prompt: str, system_instruction: str = "") -> str:
        try:
            return self._multimodal.analyze_image(data, mime_type, prompt, system_instruction=system_instruction)
        except EnhancementError:
            raise
        except Exception as exc:
            raise _backend_failure("multimodal", exc) from exc

    def inpaint(
        self,
        data: bytes,
        mime_type: str,
        mask_png: bytes,
        instruction: str,
        mode: str = INPAINT_REMOVE,
    ) -> EditResult:
        if not self.inpainting_available:
            raise BackendError("inpainting backend is not configured")
        try:
            result = self._inpainter.inpaint(data, mime_type, mask_png, instruction, mode=mode)
        except EnhancementError:
            raise
        except Exception as exc:
            raise _backend_failure("inpainting", exc) from exc
        if not result.data:
            raise BackendError("inpainting backend returned no image data")
        return result


def _backend_failure(kind: str, exc: Exception) -> BackendError:
    logger.warning("backend=%s unexpected_error=%s", kind, type(exc).__name__)
    return BackendError(f"{type(exc).__name__}: {exc}")
