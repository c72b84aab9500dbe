"""Imagen mask-based inpainting backend -- Vertex AI through google-genai."""

from __future__ import annotations

import logging
import time
from typing import Optional

from google import genai
from google.genai import types
from google.oauth2.credentials import Credentials

from photo_enhancer.backends.base import INPAINT_INSERT, INPAINT_REMOVE, EditResult
from photo_enhancer.backends.gemini import truncate
from photo_enhancer.config import IMAGEN_EDIT_MODEL
from photo_enhancer.errors import BackendError

logger = logging.getLogger(__name__)

_EDIT_MODES = {
    INPAINT_REMOVE: "EDIT_MODE_INPAINT_REMOVAL",
    INPAINT_INSERT: "EDIT_MODE_INPAINT_INSERTION",
}


class ImagenClient:
    """Applies localized edits with Imagen; white mask pixels are edited.

    ``access_token`` is a GCP OAuth2 token; without one the client falls back
    to Application Default Credentials.
    """

    def __init__(
        self,
        project: str = "",
        location: str = "",
        access_token: str = "",
        *,
        model: str = IMAGEN_EDIT_MODEL,
        client: Optional[genai.Client] = None,
    ):
        self.project = project
        self.location = location
        self._access_token = access_token
        self.model = model
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self.project and self.location)

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not (self.project and self.location):
                raise BackendError("Imagen client requires VERTEX_AI_PROJECT and VERTEX_AI_REGION")
            kwargs = {"vertexai": True, "project": self.project, "location": self.location}
            if self._access_token:
                kwargs["credentials"] = Credentials(token=self._access_token)
            self._client = genai.Client(**kwargs)
        return self._client

    def inpaint(
        self,
        data: bytes,
        mime_type: str,
        mask_png: bytes,
        instruction: str,
        mode: str = INPAINT_REMOVE,
    ) -> EditResult:
        """Edit the masked region of *data* according to *instruction*."""
        if mode not in _EDIT_MODES:
            raise BackendError(f"unsupported inpainting mode: {mode}")

        logger.debug(
            "Imagen inpaint starting instruction=%r mode=%s image_bytes=%d mask_bytes=%d",
            truncate(instruction, 100),
            mode,
            len(data),
            len(mask_png),
        )
        started = time.monotonic()

        raw_ref = types.RawReferenceImage(
            reference_id=1,
            reference_image=types.Image(image_bytes=data, mime_type=mime_type),
        )
        mask_ref = types.MaskReferenceImage(
            reference_id=2,
            reference_image=types.Image(image_bytes=mask_png, mime_type="image/png"),
            config=types.MaskReferenceConfig(mask_mode="MASK_MODE_USER_PROVIDED", mask_dilation=0.01),
        )
        try:
            response = self._get_client().models.edit_image(
                model=self.model,
                prompt=instruction,
                reference_images=[raw_ref, mask_ref],
                config=types.EditImageConfig(edit_mode=_EDIT_MODES[mode], number_of_images=1),
            )
        except BackendError:
            raise
        except Exception as exc:
            raise BackendError(f"Imagen edit failed: {exc}") from exc

        generated = getattr(response, "generated_images", None) or []
        image = generated[0].image if generated else None
        if image is None or not image.image_bytes:
            raise BackendError("no predictions returned from Imagen")

        logger.debug(
            "Imagen inpaint complete output_bytes=%d duration=%.1fs",
            len(image.image_bytes),
            time.monotonic() - started,
        )
        return EditResult(data=image.image_bytes, mime_type=image.mime_type or "image/png")
