"""Shared fixtures: scripted model backends and synthetic images."""

import io
import json

import numpy as np
import pytest
from PIL import Image

from photo_enhancer.backends import EditResult, ModelClient
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.errors import BackendError
from photo_enhancer.observability import reset_galileo


def make_jpeg(width=64, height=48, color=(90, 60, 40)):
    img = Image.new("RGB", (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=95)
    return buf.getvalue()


def analysis_json(score, improvements=(), no_further_edits=False):
    return json.dumps(
        {
            "overallAssessment": "Decent shot with room to improve.",
            "professionalScore": score,
            "targetScore": 8.5,
            "noFurtherEditsNeeded": no_further_edits,
            "remainingImprovements": list(improvements),
        }
    )


def improvement(type_="color-grading", region="global", impact="high", imagen=False, safe=True):
    return {
        "type": type_,
        "description": f"Fix {type_}",
        "region": region,
        "impact": impact,
        "imagenSuitable": imagen,
        "editInstruction": f"Apply {type_} to the {region}",
        "safeForPropagation": safe,
    }


class FakeMultimodal:
    """Records calls; analysis replies come from a script, edits append a marker.

    Items in ``analyses`` are returned in order; an Exception item is raised.
    ``edit_errors`` maps a call index (0-based) to an exception to raise.
    """

    def __init__(self, analyses=(), edit_errors=None, edit_fn=None, edit_text="Brightened and sharpened."):
        self.analyses = list(analyses)
        self.edit_errors = dict(edit_errors or {})
        self.edit_fn = edit_fn
        self.edit_text = edit_text
        self.edit_calls = []
        self.analyze_calls = []

    def edit_image(self, data, mime_type, instruction, system_instruction="", history=()):
        index = len(self.edit_calls)
        self.edit_calls.append(
            {
                "data": data,
                "mime_type": mime_type,
                "instruction": instruction,
                "system_instruction": system_instruction,
                "history": list(history),
            }
        )
        if index in self.edit_errors:
            raise self.edit_errors[index]
        out = self.edit_fn(data) if self.edit_fn else data + b"|edit%d" % index
        return EditResult(data=out, mime_type=mime_type, text=self.edit_text)

    def analyze_image(self, data, mime_type, prompt, system_instruction=""):
        self.analyze_calls.append(
            {"data": data, "prompt": prompt, "system_instruction": system_instruction}
        )
        if not self.analyses:
            raise BackendError("no scripted analysis left")
        reply = self.analyses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeInpainter:
    def __init__(self, configured=True, fail=False):
        self.configured = configured
        self.fail = fail
        self.calls = []

    @property
    def is_configured(self):
        return self.configured

    def inpaint(self, data, mime_type, mask_png, instruction, mode="inpainting-remove"):
        self.calls.append({"data": data, "mask": mask_png, "instruction": instruction, "mode": mode})
        if self.fail:
            raise BackendError("Imagen edit failed: quota")
        return EditResult(data=data + b"|inpaint", mime_type=mime_type)


@pytest.fixture(autouse=True)
def no_galileo(monkeypatch):
    """Keep every test offline regardless of the developer's .env."""
    monkeypatch.delenv("GALILEO_API_KEY", raising=False)
    reset_galileo()
    yield
    reset_galileo()


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def config():
    return EnhancementConfig(max_analysis_iterations=3, target_professional_score=8.5)


@pytest.fixture
def make_models():
    """Build a ModelClient from scripted fakes; returns (client, multimodal, inpainter)."""

    def _make(analyses=(), inpainter=None, **kwargs):
        multimodal = FakeMultimodal(analyses, **kwargs)
        return ModelClient(multimodal, inpainter), multimodal, inpainter

    return _make


@pytest.fixture
def rgb_frame():
    def _frame(color, width=32, height=24):
        return np.full((height, width, 3), color, dtype=np.uint8)

    return _frame
