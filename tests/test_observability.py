"""Tests for step recording and Galileo replay."""

from unittest.mock import MagicMock, patch

import pytest

from photo_enhancer import observability
from photo_enhancer.observability import StepRecorder, observed, replay_to_galileo, summarize


class TestSummarize:
    def test_bytes_are_replaced_by_size(self):
        assert summarize({"current_data": b"12345", "phase": "phase1"}) == (
            '{"current_data": "<5 bytes>", "phase": "phase1"}'
        )


class TestObserved:
    def test_records_successful_step(self):
        recorder = StepRecorder()
        node = observed("phase1", lambda state: {"phase": "phase1"}, recorder)

        assert node({"current_data": b"x"}) == {"phase": "phase1"}
        assert [s.node_name for s in recorder.steps] == ["phase1"]
        assert recorder.steps[0].status_code == 200
        assert not recorder.has_errors

    def test_records_and_reraises_failure(self):
        recorder = StepRecorder()

        def broken(state):
            raise ValueError("bad")

        with pytest.raises(ValueError):
            observed("phase2", broken, recorder)({})
        assert recorder.has_errors
        assert "ValueError: bad" in recorder.steps[0].output_text
        assert set(recorder.durations()) == {"phase2"}


class TestReplay:
    def test_no_tracker_means_nothing_sent(self):
        assert replay_to_galileo(StepRecorder(), "{}", "{}", 10) is False

    def test_replays_every_step_as_one_workflow(self):
        recorder = StepRecorder()
        recorder.collect("phase1", "in", "out", 5)
        recorder.collect("phase2", "in", "ERROR", 7, status_code=500)
        tracker = MagicMock()

        with patch.object(observability, "_init_galileo", return_value=tracker):
            assert replay_to_galileo(recorder, "in", "out", 12) is True

        tracker.add_agent_workflow.assert_called_once()
        assert tracker.add_tool_step.call_count == 2
        assert tracker.conclude_workflow.call_args.kwargs["status_code"] == 500
