"""Best-effort extraction of JSON objects from free-form model text.

Model replies may wrap the payload in markdown fences, surround it with prose,
or leave trailing commas. Everything here either returns a validated object
or raises AnalysisParseError; it never guesses a default result.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from photo_enhancer.errors import AnalysisParseError
from photo_enhancer.models import AnalysisResult

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def strip_markdown_fences(text: str) -> str:
    """Return the body of the first fenced block, or the stripped text."""
    text = text.strip()
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def extract_json_object(text: str) -> str:
    """Return the first balanced ``{...}`` span in *text*."""
    start = text.find("{")
    if start == -1:
        raise AnalysisParseError("no JSON object found", raw_text=text)

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    # Unbalanced: fall back to the last closing brace.
    end = text.rfind("}")
    if end <= start:
        raise AnalysisParseError("no closing brace for JSON object", raw_text=text)
    return text[start : end + 1]


def parse_json_object(raw: str) -> dict[str, Any]:
    body = extract_json_object(strip_markdown_fences(raw))
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        try:
            data = json.loads(_TRAILING_COMMA_RE.sub(r"\1", body))
        except json.JSONDecodeError as exc:
            preview = body[:200] + ("..." if len(body) > 200 else "")
            raise AnalysisParseError(f"invalid JSON: {exc} (text: {preview})", raw_text=raw) from exc
    if not isinstance(data, dict):
        raise AnalysisParseError("JSON payload is not an object", raw_text=raw)
    return data


def parse_analysis(raw: str) -> AnalysisResult:
    """Decode analyzer output into an AnalysisResult or raise AnalysisParseError."""
    if not raw or not raw.strip():
        raise AnalysisParseError("empty analysis response", raw_text=raw or "")
    data = parse_json_object(raw)
    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as exc:
        raise AnalysisParseError(
            f"analysis does not match schema: {exc.error_count()} error(s)", raw_text=raw
        ) from exc
