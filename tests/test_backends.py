"""Tests for the Gemini/Imagen backends and the model client facade."""

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.genai import errors as genai_errors

from conftest import FakeInpainter, FakeMultimodal
from photo_enhancer.backends import (
    INPAINT_INSERT,
    ConversationTurn,
    EditResult,
    GeminiImageClient,
    ImagenClient,
    ModelClient,
    build_model_client,
)
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.errors import BackendError


class RateLimited(genai_errors.APIError):
    def __init__(self):
        Exception.__init__(self, "429 RESOURCE_EXHAUSTED")
        self.code = 429

    def __str__(self):
        return "429 RESOURCE_EXHAUSTED"


class Forbidden(genai_errors.APIError):
    def __init__(self):
        Exception.__init__(self, "403 PERMISSION_DENIED")
        self.code = 403

    def __str__(self):
        return "403 PERMISSION_DENIED"


def _response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _image_part(data, mime="image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime), text=None, thought=None)


def _text_part(text, thought=None):
    return SimpleNamespace(inline_data=None, text=text, thought=thought)


class TestGeminiImageClient:
    @pytest.fixture
    def sdk(self):
        return MagicMock()

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def gemini(self, sdk, sleeps):
        return GeminiImageClient(client=sdk, sleep=sleeps.append, max_retries=3)

    def test_edit_returns_image_and_text(self, gemini, sdk):
        sdk.models.generate_content.return_value = _response(_text_part("Lifted shadows."), _image_part(b"out"))

        result = gemini.edit_image(b"in", "image/jpeg", "enhance", system_instruction="be subtle")

        assert result == EditResult(data=b"out", mime_type="image/png", text="Lifted shadows.")
        kwargs = sdk.models.generate_content.call_args.kwargs
        assert kwargs["model"] == gemini.image_model
        assert kwargs["config"].response_modalities == ["TEXT", "IMAGE"]
        assert kwargs["config"].system_instruction == "be subtle"

    def test_base64_inline_data_is_decoded(self, gemini, sdk):
        encoded = base64.b64encode(b"png-bytes").decode()
        sdk.models.generate_content.return_value = _response(_image_part(encoded))

        assert gemini.edit_image(b"in", "image/jpeg", "enhance").data == b"png-bytes"

    def test_history_precedes_current_turn(self, gemini, sdk):
        sdk.models.generate_content.return_value = _response(_image_part(b"out"))
        history = [ConversationTurn("user", "warmer"), ConversationTurn("model", "Warmed it up.")]

        gemini.edit_image(b"in", "image/jpeg", "now brighter", history=history)

        contents = sdk.models.generate_content.call_args.kwargs["contents"]
        assert [c.role for c in contents] == ["user", "model", "user"]
        assert contents[0].parts[0].text == "warmer"

    def test_no_image_is_backend_error(self, gemini, sdk):
        sdk.models.generate_content.return_value = _response(_text_part("I can't edit that."))

        with pytest.raises(BackendError, match="no image returned"):
            gemini.edit_image(b"in", "image/jpeg", "enhance")

    def test_rate_limit_is_retried_with_backoff(self, gemini, sdk, sleeps):
        sdk.models.generate_content.side_effect = [RateLimited(), RateLimited(), _response(_image_part(b"out"))]

        assert gemini.edit_image(b"in", "image/jpeg", "enhance").data == b"out"
        assert sleeps == [1, 2]

    def test_rate_limit_gives_up_after_max_retries(self, gemini, sdk, sleeps):
        sdk.models.generate_content.side_effect = RateLimited()

        with pytest.raises(BackendError):
            gemini.edit_image(b"in", "image/jpeg", "enhance")
        assert sleeps == [1, 2, 4]
        assert sdk.models.generate_content.call_count == 4

    def test_other_api_errors_are_not_retried(self, gemini, sdk, sleeps):
        sdk.models.generate_content.side_effect = Forbidden()

        with pytest.raises(BackendError, match="403"):
            gemini.analyze_image(b"in", "image/jpeg", "score it")
        assert sleeps == []

    def test_analysis_skips_thoughts(self, gemini, sdk):
        sdk.models.generate_content.return_value = _response(
            _text_part("thinking...", thought=True), _text_part('{"professionalScore": 7}')
        )

        assert gemini.analyze_image(b"in", "image/jpeg", "score it") == '{"professionalScore": 7}'
        assert sdk.models.generate_content.call_args.kwargs["model"] == gemini.analysis_model

    def test_empty_analysis_is_backend_error(self, gemini, sdk):
        sdk.models.generate_content.return_value = _response()

        with pytest.raises(BackendError):
            gemini.analyze_image(b"in", "image/jpeg", "score it")

    def test_missing_api_key(self):
        with pytest.raises(BackendError, match="GEMINI_API_KEY"):
            GeminiImageClient().analyze_image(b"in", "image/jpeg", "score it")


class TestImagenClient:
    def test_inpaint_sends_image_and_mask(self):
        sdk = MagicMock()
        sdk.models.edit_image.return_value = SimpleNamespace(
            generated_images=[SimpleNamespace(image=SimpleNamespace(image_bytes=b"filled", mime_type="image/png"))]
        )
        imagen = ImagenClient(client=sdk)

        result = imagen.inpaint(b"img", "image/jpeg", b"mask", "fill with grass", mode=INPAINT_INSERT)

        assert result.data == b"filled"
        kwargs = sdk.models.edit_image.call_args.kwargs
        assert kwargs["prompt"] == "fill with grass"
        assert len(kwargs["reference_images"]) == 2
        assert kwargs["config"].edit_mode == "EDIT_MODE_INPAINT_INSERTION"

    def test_empty_response_is_backend_error(self):
        sdk = MagicMock()
        sdk.models.edit_image.return_value = SimpleNamespace(generated_images=[])

        with pytest.raises(BackendError, match="no predictions"):
            ImagenClient(client=sdk).inpaint(b"img", "image/jpeg", b"mask", "remove")

    def test_sdk_failure_is_backend_error(self):
        sdk = MagicMock()
        sdk.models.edit_image.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(BackendError, match="quota exceeded"):
            ImagenClient(client=sdk).inpaint(b"img", "image/jpeg", b"mask", "remove")

    def test_configuration_requires_project_and_location(self):
        assert not ImagenClient(project="p").is_configured
        assert ImagenClient(project="p", location="us-central1").is_configured


class TestModelClient:
    def test_inpaint_without_backend_raises(self):
        with pytest.raises(BackendError):
            ModelClient(FakeMultimodal()).inpaint(b"img", "image/jpeg", b"mask", "remove")

    def test_empty_edit_is_backend_error(self):
        models = ModelClient(FakeMultimodal(edit_fn=lambda data: b""))
        with pytest.raises(BackendError):
            models.edit_image(b"img", "image/jpeg", "enhance")

    def test_inpainting_available_tracks_backend(self):
        assert ModelClient(FakeMultimodal(), FakeInpainter()).inpainting_available
        assert not ModelClient(FakeMultimodal(), FakeInpainter(configured=False)).inpainting_available

    def test_build_from_config_attaches_imagen_only_when_configured(self):
        assert not build_model_client(EnhancementConfig(gemini_api_key="k")).inpainting_available
        configured = EnhancementConfig(gemini_api_key="k", vertex_project="p", vertex_location="us-central1")
        assert build_model_client(configured).inpainting_available

    def test_stray_edit_exception_becomes_backend_error(self):
        models = ModelClient(FakeMultimodal(edit_errors={0: ConnectionError("socket reset")}))

        with pytest.raises(BackendError, match="ConnectionError: socket reset") as exc_info:
            models.edit_image(b"img", "image/jpeg", "enhance")
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_stray_analysis_exception_becomes_backend_error(self):
        models = ModelClient(FakeMultimodal(analyses=[TimeoutError("read timed out")]))

        with pytest.raises(BackendError, match="TimeoutError") as exc_info:
            models.analyze_image(b"img", "image/jpeg", "score it")
        assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_stray_inpaint_exception_becomes_backend_error(self):
        inpainter = MagicMock(is_configured=True)
        inpainter.inpaint.side_effect = ConnectionError("socket reset")

        with pytest.raises(BackendError, match="ConnectionError"):
            ModelClient(FakeMultimodal(), inpainter).inpaint(b"img", "image/jpeg", b"mask", "remove")

    def test_backend_errors_pass_through_unchanged(self):
        original = BackendError("quota exceeded")
        models = ModelClient(FakeMultimodal(edit_errors={0: original}))

        with pytest.raises(BackendError) as exc_info:
            models.edit_image(b"img", "image/jpeg", "enhance")
        assert exc_info.value is original
