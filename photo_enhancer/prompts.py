"""Prompt templates and per-media enhancement profiles."""

from __future__ import annotations

from dataclasses import dataclass

ENHANCEMENT_SYSTEM_PROMPT = """You are a professional photo retoucher preparing personal photos for Instagram.
Edit the supplied image and return the edited image together with a short plain-text
summary of the changes you made. Preserve the identity of people, the composition and
the overall character of the scene. Never add text, watermarks or borders."""

GLOBAL_ENHANCE_INSTRUCTION = """Enhance this photo to professional quality for Instagram posting.

Apply all necessary improvements:
- Fix exposure, lighting, and white balance
- Correct color balance and boost vibrancy naturally
- Improve contrast and clarity
- Reduce noise while preserving detail
- Sharpen key subjects
- For portraits: enhance skin naturally, brighten eyes
- For landscapes: enhance sky and natural colors
- For food: boost warmth and make colors appetizing

Make it look like a professionally shot and edited photo.
Describe what changes you made."""

_ANALYSIS_SCHEMA = """Respond with ONLY a JSON object of this shape:
{
  "overallAssessment": "<one or two sentences>",
  "professionalScore": <number 0-10>,
  "targetScore": <number 0-10>,
  "noFurtherEditsNeeded": <true|false>,
  "remainingImprovements": [
    {
      "type": "object-removal | background-cleanup | color-grading | exposure | composition-fix | blemish-removal | other",
      "description": "<what is wrong>",
      "region": "top-left | top-center | top-right | center-left | center | center-right | bottom-left | bottom-center | bottom-right | background | foreground | global",
      "impact": "low | medium | high",
      "imagenSuitable": <true if the fix needs a mask-based localized edit>,
      "editInstruction": "<precise instruction for the editing model>"%(extra_field)s
    }
  ]
}
If noFurtherEditsNeeded is true, remainingImprovements must be an empty list."""

ANALYSIS_SYSTEM_PROMPT = (
    """You are a senior photo editor judging whether a photo is ready for professional
publication. Score it against this rubric: exposure and dynamic range, color accuracy,
sharpness and noise, composition, distracting elements, and overall polish. List only
improvements that would visibly raise the score, most important first.

"""
    + _ANALYSIS_SCHEMA % {"extra_field": ""}
)

ANALYSIS_PROMPT = (
    "Analyze this photo that has been enhanced once. Identify what further improvements "
    "would bring it to professional publication quality. Follow the response format in "
    "the system instruction exactly."
)

VIDEO_ENHANCEMENT_SYSTEM_PROMPT = """You are a professional colorist grading a frame that represents one scene of a
short social media video. Improve exposure, white balance, contrast and color so the
frame looks professionally graded. Keep every object, person and position exactly where
it is: the same grade will be applied to every frame of the scene. Describe what you changed."""

VIDEO_GLOBAL_INSTRUCTION = (
    "Grade this video frame to professional quality. Only use global tonal and color "
    "adjustments. Describe the changes you made."
)

VIDEO_ANALYSIS_SYSTEM_PROMPT = (
    """You are a senior colorist reviewing a graded frame from a video scene. Score it for
exposure, color balance, contrast and overall polish. Mark an improvement as
safeForPropagation only when it is a global color or tone change that can be applied
identically to every frame of the scene.

"""
    + _ANALYSIS_SCHEMA
    % {"extra_field": ',\n      "safeForPropagation": <true|false>'}
)

VIDEO_ANALYSIS_PROMPT = (
    "Analyze this graded video frame and list what would still improve it. Follow the "
    "response format in the system instruction exactly."
)

FEEDBACK_REGION_PROMPT = """The user requested: "%s"
This looks like a localized change. Analyze the image and determine the specific region
and edit type needed. Respond with ONLY JSON matching the analysis schema in your
system instruction, listing the requested change as the first remaining improvement."""

GROUPED_INSTRUCTION_SUFFIX = (
    "\n\nMake this specific change while preserving the improvements already applied."
)


@dataclass(frozen=True)
class EnhancementProfile:
    """Prompt set and selection rules for one media kind."""

    name: str
    system_prompt: str
    global_instruction: str
    analysis_system_prompt: str
    analysis_prompt: str
    propagation_safe_only: bool = False


IMAGE_PROFILE = EnhancementProfile(
    name="image",
    system_prompt=ENHANCEMENT_SYSTEM_PROMPT,
    global_instruction=GLOBAL_ENHANCE_INSTRUCTION,
    analysis_system_prompt=ANALYSIS_SYSTEM_PROMPT,
    analysis_prompt=ANALYSIS_PROMPT,
)

VIDEO_PROFILE = EnhancementProfile(
    name="video",
    system_prompt=VIDEO_ENHANCEMENT_SYSTEM_PROMPT,
    global_instruction=VIDEO_GLOBAL_INSTRUCTION,
    analysis_system_prompt=VIDEO_ANALYSIS_SYSTEM_PROMPT,
    analysis_prompt=VIDEO_ANALYSIS_PROMPT,
    propagation_safe_only=True,
)
