"""Tests for the LangGraph enhancement workflow."""

import pytest

from conftest import FakeInpainter, analysis_json, improvement
from photo_enhancer.config import EnhancementConfig
from photo_enhancer.errors import AnalysisParseError, BackendError
from photo_enhancer.graph.workflow import run_full_enhancement, stop_reason
from photo_enhancer.models import (
    PHASE_COMPLETE,
    PHASE_ERROR,
    PHASE_THREE,
    PHASE_TWO,
    STOP_ITERATION_LIMIT,
    STOP_NO_FURTHER_EDITS,
    STOP_TARGET_SCORE,
    AnalysisResult,
)
from photo_enhancer.prompts import VIDEO_PROFILE

LOW = analysis_json(6.0, [improvement("color-grading")])


def _run(models, jpeg_bytes, config, **kwargs):
    return run_full_enhancement(jpeg_bytes, "image/jpeg", 64, 48, config, models, **kwargs)


class TestStopReason:
    def test_no_further_edits_wins(self, config):
        state = {"phase": PHASE_TWO, "analysis": AnalysisResult(professional_score=3.0, no_further_edits_needed=True)}
        assert stop_reason(state, config) == STOP_NO_FURTHER_EDITS

    def test_target_score_reached(self, config):
        state = {"phase": PHASE_TWO, "analysis": AnalysisResult(professional_score=8.5)}
        assert stop_reason(state, config) == STOP_TARGET_SCORE

    def test_keeps_going_below_target(self, config):
        analysis = AnalysisResult.model_validate(
            {"professionalScore": 6.0, "remainingImprovements": [improvement("color-grading")]}
        )
        state = {"phase": PHASE_TWO, "analysis": analysis, "iterations": 1}
        assert stop_reason(state, config) is None

    def test_nothing_selectable_stops(self, config):
        analysis = AnalysisResult.model_validate(
            {"professionalScore": 6.0, "remainingImprovements": [improvement("vignette", impact="low")]}
        )
        state = {"phase": PHASE_TWO, "analysis": analysis, "iterations": 1}
        assert stop_reason(state, config) == STOP_NO_FURTHER_EDITS

    def test_selection_follows_profile(self, config):
        analysis = AnalysisResult.model_validate(
            {"professionalScore": 6.0, "remainingImprovements": [improvement("object-removal", safe=False)]}
        )
        state = {"phase": PHASE_TWO, "analysis": analysis}
        assert stop_reason(state, config) is None
        assert stop_reason(state, config, VIDEO_PROFILE) == STOP_NO_FURTHER_EDITS

    def test_iteration_bound_after_edits(self, config):
        assert stop_reason({"phase": PHASE_THREE, "iterations": 3}, config) == STOP_ITERATION_LIMIT
        assert stop_reason({"phase": PHASE_THREE, "iterations": 2}, config) is None


class TestScenarios:
    def test_high_first_score_completes_without_edits(self, make_models, jpeg_bytes, config):
        models, multimodal, _ = make_models([analysis_json(9.0)])

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_COMPLETE
        assert state.phase_history == ["initial", "phase1", "phase2", "complete"]
        assert state.imagen_edits == 0
        assert state.iterations == 0
        assert state.stop_reason == STOP_TARGET_SCORE
        assert len(multimodal.edit_calls) == 1
        assert state.phase1_text == "Brightened and sharpened."

    def test_mixed_improvements_then_reanalysis(self, make_models, jpeg_bytes, config):
        inpainter = FakeInpainter()
        models, multimodal, _ = make_models(
            [
                analysis_json(
                    6.0,
                    [
                        improvement("object-removal", region="top-left", imagen=True),
                        improvement("color-grading"),
                    ],
                ),
                analysis_json(9.0),
            ],
            inpainter=inpainter,
        )

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_COMPLETE
        assert state.imagen_edits == 1
        assert state.instruction_edits == 1
        assert len(inpainter.calls) == 1
        assert len(multimodal.analyze_calls) == 2
        assert state.phase_history == ["initial", "phase1", "phase2", "phase3", "phase2", "complete"]
        assert [e["iteration"] for e in state.edit_log] == [1, 1]

    def test_single_iteration_bound_stops_after_one_pass(self, make_models, jpeg_bytes):
        config = EnhancementConfig(max_analysis_iterations=1)
        models, multimodal, _ = make_models([LOW, LOW, LOW])

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_COMPLETE
        assert state.iterations == 1
        assert state.phase_history.count("phase3") == 1
        assert state.stop_reason == STOP_ITERATION_LIMIT
        assert len(multimodal.analyze_calls) == 1

    def test_persistently_low_score_is_bounded(self, make_models, jpeg_bytes, config):
        models, multimodal, _ = make_models([LOW] * 5)

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_COMPLETE
        assert state.iterations == 3
        assert len(multimodal.analyze_calls) == 3
        assert state.stop_reason == STOP_ITERATION_LIMIT

    def test_imagen_item_without_inpainter_uses_instruction_edit(self, make_models, jpeg_bytes, config):
        models, multimodal, _ = make_models(
            [analysis_json(6.0, [improvement("object-removal", region="center", imagen=True)]), analysis_json(9.0)]
        )

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_COMPLETE
        assert state.imagen_edits == 0
        assert state.instruction_edits == 1
        assert "Apply object-removal" in multimodal.edit_calls[1]["instruction"]

    def test_no_further_edits_stops_immediately(self, make_models, jpeg_bytes, config):
        models, _, _ = make_models([analysis_json(7.0, [improvement()], no_further_edits=True)])

        state = _run(models, jpeg_bytes, config)

        assert state.stop_reason == STOP_NO_FURTHER_EDITS
        assert state.iterations == 0

    def test_only_low_impact_items_left_completes_without_editing(self, make_models, jpeg_bytes, config):
        models, multimodal, _ = make_models([analysis_json(6.0, [improvement("vignette", impact="low")])] * 3)

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_COMPLETE
        assert state.phase_history == ["initial", "phase1", "phase2", "complete"]
        assert state.stop_reason == STOP_NO_FURTHER_EDITS
        assert state.iterations == 0
        assert len(multimodal.analyze_calls) == 1
        assert len(multimodal.edit_calls) == 1

    def test_zero_iterations_only_analyzes(self, make_models, jpeg_bytes):
        models, _, _ = make_models([LOW])

        state = _run(models, jpeg_bytes, EnhancementConfig(max_analysis_iterations=0))

        assert state.phase_history == ["initial", "phase1", "phase2", "complete"]
        assert state.stop_reason == STOP_ITERATION_LIMIT

    def test_user_feedback_reaches_global_instruction(self, make_models, jpeg_bytes, config):
        models, multimodal, _ = make_models([analysis_json(9.0)])

        _run(models, jpeg_bytes, config, extra_instruction="warmer skin tones")

        assert "ADDITIONAL USER FEEDBACK:\nwarmer skin tones" in multimodal.edit_calls[0]["instruction"]


class TestErrors:
    def test_analysis_failure_keeps_phase_one_result(self, make_models, jpeg_bytes, config):
        models, multimodal, _ = make_models([BackendError("service unavailable")])

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_ERROR
        assert state.failed_phase == PHASE_TWO
        assert state.error.startswith("phase2 error:")
        assert state.phase1_text == "Brightened and sharpened."
        assert state.current_data == jpeg_bytes + b"|edit0"
        assert state.phase_history == ["initial", "phase1", "error"]

    def test_global_enhance_failure(self, make_models, jpeg_bytes, config):
        models, _, _ = make_models(edit_errors={0: BackendError("no image returned in response")})

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_ERROR
        assert state.failed_phase == "phase1"
        assert state.current_data == jpeg_bytes
        assert "no image returned" in state.error

    def test_unexpected_exception_is_wrapped(self, make_models, jpeg_bytes, config):
        models, _, _ = make_models(edit_errors={0: RuntimeError("kaboom")})

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_ERROR
        assert "RuntimeError: kaboom" in state.error

    def test_parse_failure_is_distinguishable(self, make_models, jpeg_bytes, config):
        models, _, _ = make_models(["Sorry, I can't score this one."])

        with pytest.raises(AnalysisParseError) as exc_info:
            _run(models, jpeg_bytes, config, raise_on_error=True)

        assert not isinstance(exc_info.value, BackendError)
        assert exc_info.value.phase == PHASE_TWO
        assert exc_info.value.state.phase == PHASE_ERROR

    def test_phase_three_failures_do_not_abort(self, make_models, jpeg_bytes, config):
        models, _, _ = make_models(
            [LOW, analysis_json(9.0)],
            edit_errors={1: BackendError("edit rejected")},
        )

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_COMPLETE
        assert state.instruction_edits == 0
        assert state.edit_log[0]["success"] is False

    def test_connection_error_during_phase_three_is_skipped(self, make_models, jpeg_bytes, config):
        models, _, _ = make_models(
            [
                analysis_json(6.0, [improvement("exposure", impact="medium"), improvement("noise", impact="medium")]),
                analysis_json(9.0),
            ],
            edit_errors={2: ConnectionError("socket reset")},
        )

        state = _run(models, jpeg_bytes, config)

        assert state.phase == PHASE_COMPLETE
        assert state.instruction_edits == 1
        assert [e["success"] for e in state.edit_log] == [True, False]
        assert "ConnectionError: socket reset" in state.edit_log[1]["error"]
