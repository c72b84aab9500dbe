"""Gemini multimodal backend -- image editing and image analysis via google-genai."""

from __future__ import annotations

import base64
import logging
import time
from typing import Callable, Optional, Sequence

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from photo_enhancer.backends.base import ConversationTurn, EditResult
from photo_enhancer.config import GEMINI_ANALYSIS_MODEL, GEMINI_IMAGE_MODEL
from photo_enhancer.errors import BackendError

logger = logging.getLogger(__name__)


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def _is_rate_limited(exc: Exception) -> bool:
    code = getattr(exc, "code", None)
    return code == 429 or "RESOURCE_EXHAUSTED" in str(exc)


class GeminiImageClient:
    """Edits and analyzes images with Gemini.

    Image edits go to the image model with ``response_modalities=["TEXT", "IMAGE"]``;
    analysis goes to the text model. Rate-limit errors (HTTP 429) are retried
    with exponential backoff up to ``max_retries`` times; every other failure
    is raised as BackendError.
    """

    def __init__(
        self,
        api_key: str = "",
        *,
        image_model: str = GEMINI_IMAGE_MODEL,
        analysis_model: str = GEMINI_ANALYSIS_MODEL,
        max_retries: int = 3,
        client: Optional[genai.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._api_key = api_key
        self.image_model = image_model
        self.analysis_model = analysis_model
        self.max_retries = max_retries
        self._client = client
        self._sleep = sleep

    def _get_client(self) -> genai.Client:
        """Lazy-init the genai client."""
        if self._client is None:
            if not self._api_key:
                raise BackendError("no Gemini API key configured (set GEMINI_API_KEY)")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _generate(self, model: str, contents: list, config: types.GenerateContentConfig):
        client = self._get_client()
        attempt = 0
        while True:
            try:
                return client.models.generate_content(model=model, contents=contents, config=config)
            except genai_errors.APIError as exc:
                if _is_rate_limited(exc) and attempt < self.max_retries:
                    wait_time = 2**attempt  # 1, 2, 4, 8 seconds
                    logger.warning(
                        "Gemini rate limited, retrying in %ss (attempt %d/%d)",
                        wait_time,
                        attempt + 1,
                        self.max_retries,
                    )
                    self._sleep(wait_time)
                    attempt += 1
                    continue
                raise BackendError(f"Gemini API error ({getattr(exc, 'code', '?')}): {exc}") from exc
            except Exception as exc:
                raise BackendError(f"Gemini request failed: {exc}") from exc

    @staticmethod
    def _image_part(data: bytes, mime_type: str) -> types.Part:
        return types.Part.from_bytes(data=data, mime_type=mime_type)

    def _history_contents(self, history: Sequence[ConversationTurn]) -> list[types.Content]:
        contents = []
        for turn in history:
            parts = []
            if turn.image_data:
                parts.append(self._image_part(turn.image_data, turn.image_mime or "image/jpeg"))
            if turn.text:
                parts.append(types.Part.from_text(text=turn.text))
            if parts:
                contents.append(types.Content(role=turn.role, parts=parts))
        return contents

    def edit_image(
        self,
        data: bytes,
        mime_type: str,
        instruction: str,
        system_instruction: str = "",
        history: Sequence[ConversationTurn] = (),
    ) -> EditResult:
        """Send an image plus instruction (and optional prior turns); return the edited image."""
        started = time.monotonic()
        logger.info(
            "Sending image to Gemini for editing model=%s image_bytes=%d mime=%s history_turns=%d",
            self.image_model,
            len(data),
            mime_type,
            len(history),
        )

        contents = self._history_contents(history)
        contents.append(
            types.Content(
                role="user",
                parts=[self._image_part(data, mime_type), types.Part.from_text(text=instruction)],
            )
        )
        config = types.GenerateContentConfig(
            system_instruction=system_instruction or None,
            response_modalities=["TEXT", "IMAGE"],
        )
        response = self._generate(self.image_model, contents, config)

        image_data: Optional[bytes] = None
        image_mime = ""
        text = ""
        for part in _response_parts(response):
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                raw = inline.data
                image_data = base64.b64decode(raw) if isinstance(raw, str) else raw
                image_mime = inline.mime_type or mime_type
            elif getattr(part, "text", None) and not getattr(part, "thought", False):
                text += part.text

        if not image_data:
            raise BackendError(f"no image returned in response (text: {truncate(text, 200)})")

        logger.info(
            "Gemini image editing complete output_bytes=%d mime=%s duration=%.1fs",
            len(image_data),
            image_mime,
            time.monotonic() - started,
        )
        return EditResult(data=image_data, mime_type=image_mime, text=text.strip())

    def analyze_image(self, data: bytes, mime_type: str, prompt: str, system_instruction: str = "") -> str:
        """Text-only analysis of an image; returns the raw model text."""
        started = time.monotonic()
        logger.info(
            "Sending image to Gemini for analysis model=%s image_bytes=%d",
            self.analysis_model,
            len(data),
        )
        contents = [
            types.Content(
                role="user",
                parts=[self._image_part(data, mime_type), types.Part.from_text(text=prompt)],
            )
        ]
        config = types.GenerateContentConfig(
            system_instruction=system_instruction or None,
            response_modalities=["TEXT"],
        )
        response = self._generate(self.analysis_model, contents, config)

        text = "".join(
            part.text
            for part in _response_parts(response)
            if getattr(part, "text", None) and not getattr(part, "thought", False)
        )
        if not text.strip():
            raise BackendError("analysis response contained no text")

        logger.info(
            "Gemini image analysis complete response_length=%d duration=%.1fs",
            len(text),
            time.monotonic() - started,
        )
        return text


def _response_parts(response) -> list:
    parts = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        if content is None:
            continue
        parts.extend(content.parts or [])
    return parts
