from photo_enhancer.agents.global_enhance import global_enhance_agent, run_phase_one
from photo_enhancer.agents.quality_analysis import quality_analysis_agent, run_phase_two
from photo_enhancer.agents.surgical_edit import route_improvement, run_phase_three, surgical_edit_agent
from photo_enhancer.agents.feedback import FeedbackResult, process_feedback

__all__ = [
    "FeedbackResult",
    "global_enhance_agent",
    "process_feedback",
    "quality_analysis_agent",
    "route_improvement",
    "run_phase_one",
    "run_phase_three",
    "run_phase_two",
    "surgical_edit_agent",
]
