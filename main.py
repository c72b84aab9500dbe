#!/usr/bin/env python3
"""
Multi-Phase Photo & Video Enhancement Pipeline
==============================================
Entry point that:
  1. Loads environment variables (.env) for model and Galileo credentials.
  2. Accepts an input image or video path via CLI.
  3. Runs the LangGraph workflow: global enhance → analyze → surgical edits (loop).
  4. Optionally applies one round of user feedback.
  5. Prints a summary of the pipeline execution.

Usage:
    python main.py <path/to/image.jpg|video.mp4> [--max-iterations 3] [--target-score 8.5]
                   [--feedback "make the sky bluer"] [--output PATH]
"""

from __future__ import annotations

import argparse
import logging
import mimetypes
import os
import sys

from dotenv import load_dotenv

VIDEO_EXTENSIONS = {".mp4", ".mov", ".m4v", ".avi", ".mkv", ".webm"}


def _default_output(input_path: str, mime_type: str) -> str:
    base, ext = os.path.splitext(os.path.basename(input_path))
    project_dir = os.path.dirname(os.path.abspath(__file__))
    out_dir = os.path.join(project_dir, "output")
    os.makedirs(out_dir, exist_ok=True)
    ext = mimetypes.guess_extension(mime_type) or ext
    return os.path.join(out_dir, f"{base}_enhanced{ext}")


def _run_image(path: str, args, config) -> int:
    from photo_enhancer import build_model_client, process_feedback, run_full_enhancement
    from photo_enhancer.masks import image_dimensions

    with open(path, "rb") as f:
        data = f.read()
    mime_type = mimetypes.guess_type(path)[0] or "image/jpeg"
    width, height = image_dimensions(data)
    models = build_model_client(config)

    print(f"  Dimensions     : {width}x{height} ({mime_type})")
    print(f"  Inpainting     : {'Imagen' if models.inpainting_available else 'not configured'}")
    print("=" * 60)

    state = run_full_enhancement(data, mime_type, width, height, config, models)

    # ── Summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("  Pipeline Failed" if state.error else "  Pipeline Complete!")
    print("=" * 60)
    print(f"  Phases         : {' → '.join(state.phase_history)}")
    print(f"  Iterations     : {state.iterations}")
    print(f"  Imagen edits   : {state.imagen_edits}")
    print(f"  Gemini edits   : {state.instruction_edits}")
    if state.analysis is not None:
        print(f"  Final score    : {state.analysis.professional_score:.1f} / {config.target_professional_score}")
    if state.stop_reason:
        print(f"  Stop reason    : {state.stop_reason}")
    if state.phase1_text:
        print(f"  Phase 1        : {state.phase1_text[:200]}")
    if state.error:
        print(f"  Error          : {state.error}")

    if state.edit_log:
        print("\n  Edit History:")
        for entry in state.edit_log:
            status = "ok" if entry.get("success") else f"failed ({entry.get('error', '')})"
            print(f"    Iter {entry['iteration']}: {entry['type']} [{entry['method']}, {entry['region']}] {status}")

    if not state.current_data:
        print("=" * 60 + "\n")
        return 1

    data, mime_type = state.current_data, state.current_mime or mime_type
    if args.feedback:
        history = []
        fb = process_feedback(models, data, mime_type, args.feedback, history, width, height, config)
        data, mime_type = fb.data, fb.mime_type
        print(f"\n  Feedback       : {args.feedback}")
        print(f"  Method         : {fb.entry.method} ({'applied' if fb.entry.success else 'failed'})")
        print(f"  Response       : {fb.entry.model_response[:200]}")

    output_path = args.output or _default_output(path, mime_type)
    with open(output_path, "wb") as f:
        f.write(data)
    print(f"\n  Final image    : {output_path}")
    print("=" * 60 + "\n")
    return 1 if state.error else 0


def _run_video(path: str, args, config) -> int:
    from photo_enhancer import enhance_video

    output_path = args.output or _default_output(path, "video/mp4")
    print("=" * 60)

    result = enhance_video(path, output_path, config, user_feedback=args.feedback)

    # ── Summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("  Pipeline Complete!")
    print("=" * 60)
    print(f"  Frames         : {result.total_frames} @ {result.fps:g}fps")
    print(f"  Scene groups   : {result.total_groups}")
    print(f"  Duration       : {result.duration_seconds:.1f}s")
    print(f"  Video output   : {result.output_path}")

    print("\n  Group Results:")
    for g in result.group_results:
        if g.success:
            applied = ", ".join(g.improvements_applied) or "global only"
            print(
                f"    Group {g.group_index + 1} ({g.frame_count} frames): "
                f"score {g.final_score:.1f}, {g.analysis_iterations} iteration(s), {applied}"
            )
        else:
            print(f"    Group {g.group_index + 1} ({g.frame_count} frames): original kept ({g.error})")

    print(f"\n  {result.summary[:300]}")
    print("=" * 60 + "\n")
    return 0


def main() -> None:
    # ── Load environment ────────────────────────────────────────────
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Run the multi-phase photo/video enhancement pipeline."
    )
    parser.add_argument("media", help="Path to the input image or video.")
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Maximum analysis → edit iterations (default: 3).",
    )
    parser.add_argument(
        "--target-score",
        type=float,
        default=None,
        help="Professional score that ends the loop early (default: 8.5).",
    )
    parser.add_argument("--feedback", default=None, help="One round of free-text feedback to apply.")
    parser.add_argument("--output", default=None, help="Where to write the enhanced file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    media_path = os.path.abspath(args.media)
    if not os.path.isfile(media_path):
        print(f"❌ File not found: {media_path}")
        sys.exit(1)

    from photo_enhancer import ConfigError, EnhancementConfig  # late import after dotenv

    try:
        config = EnhancementConfig.from_env(
            max_analysis_iterations=args.max_iterations,
            target_professional_score=args.target_score,
        )
    except ConfigError as exc:
        print(f"❌ Invalid configuration: {exc}")
        sys.exit(2)

    is_video = os.path.splitext(media_path)[1].lower() in VIDEO_EXTENSIONS

    print("\n" + "=" * 60)
    print("  Multi-Phase Enhancement Pipeline")
    print("=" * 60)
    print(f"  Input          : {media_path}")
    print(f"  Kind           : {'video' if is_video else 'image'}")
    print(f"  Max iterations : {config.max_analysis_iterations}")
    print(f"  Target score   : {config.target_professional_score}")

    if is_video:
        sys.exit(_run_video(media_path, args, config))
    sys.exit(_run_image(media_path, args, config))


if __name__ == "__main__":
    main()
