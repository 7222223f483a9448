"""
Recover a JSON object from free-form completion text.

The pipeline is total: every input yields ``Ok(dict)`` or a typed failure from
:mod:`liftor_engine.results`, nothing is raised past ``repair_response``.
"""

from __future__ import annotations

import enum
import json
import logging
import re
from typing import Any

from .results import EmptyResponse, Failure, MalformedJson, Ok, Truncated

logger = logging.getLogger(__name__)

SNIPPET_RADIUS = 40

_OPEN_FENCE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\r?\n?")
_CLOSE_FENCE = re.compile(r"\r?\n?```\s*$")
_BARE_KEY = re.compile(r"([A-Za-z_$][\w$-]*)(\s*):")


class ScanState(enum.Enum):
    OUTSIDE_STRING = "outside_string"
    IN_STRING = "in_string"
    ESCAPED = "escaped"


def _step(state: ScanState, ch: str) -> ScanState:
    """Advance the string-literal state machine by one character."""
    if state is ScanState.ESCAPED:
        return ScanState.IN_STRING
    if state is ScanState.IN_STRING:
        if ch == "\\":
            return ScanState.ESCAPED
        if ch == '"':
            return ScanState.OUTSIDE_STRING
        return state
    if ch == '"':
        return ScanState.IN_STRING
    return state


def _snippet(text: str, position: int) -> str:
    return text[max(0, position - SNIPPET_RADIUS) : position + SNIPPET_RADIUS]


def strip_fences(text: str) -> str:
    """Drop a leading ```/```json marker and a trailing ``` marker if present."""
    text = text.strip()
    if text.startswith("```"):
        text = _OPEN_FENCE.sub("", text, count=1)
    if text.endswith("```"):
        text = _CLOSE_FENCE.sub("", text, count=1)
    return text.strip()


def extract_object(text: str) -> Ok[tuple[int, int]] | Failure:
    """
    Find the span of the first top-level JSON object.

    Braces only count outside string literals, so ``"{skip}"`` inside a value
    never moves the boundary. Anything after the closing brace is ignored.
    """
    start = text.find("{")
    if start == -1:
        return MalformedJson("no JSON object found", position=0, snippet=_snippet(text, 0))

    depth = 0
    state = ScanState.OUTSIDE_STRING
    for i in range(start, len(text)):
        ch = text[i]
        if state is ScanState.OUTSIDE_STRING:
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return Ok((start, i + 1))
        state = _step(state, ch)

    end = len(text)
    return Truncated(
        "JSON object never closes",
        position=end,
        snippet=text[max(0, end - 2 * SNIPPET_RADIUS) :],
        depth=depth,
    )


def _next_significant(text: str, i: int) -> str:
    n = len(text)
    while i < n and text[i].isspace():
        i += 1
    return text[i] if i < n else ""


def repair_syntax(text: str) -> str:
    """Remove trailing commas and quote bare keys, leaving string contents alone."""
    out: list[str] = []
    state = ScanState.OUTSIDE_STRING
    last = ""  # last significant character emitted outside a string
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if state is ScanState.OUTSIDE_STRING:
            if ch == "," and _next_significant(text, i + 1) in ("}", "]"):
                i += 1
                continue
            if last in ("{", ",") and (ch.isalpha() or ch in "_$"):
                m = _BARE_KEY.match(text, i)
                if m:
                    out.append(f'"{m.group(1)}"{m.group(2)}:')
                    last = ":"
                    i = m.end()
                    continue
            if not ch.isspace():
                last = ch
        out.append(ch)
        state = _step(state, ch)
        i += 1
    return "".join(out)


def parse_object(text: str, offset: int = 0) -> Ok[dict[str, Any]] | Failure:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        return MalformedJson(e.msg, position=offset + e.pos, snippet=_snippet(text, e.pos))
    except RecursionError:
        return MalformedJson("nesting too deep", position=offset, snippet=_snippet(text, 0))
    if not isinstance(value, dict):
        return MalformedJson(
            f"top level is {type(value).__name__}, not an object",
            position=offset,
            snippet=_snippet(text, 0),
        )
    return Ok(value)


def repair_response(raw: str | None) -> Ok[dict[str, Any]] | Failure:
    """Fence stripping, boundary extraction, syntax repair and parse."""
    if raw is None or not raw.strip():
        return EmptyResponse("completion text is blank")

    text = strip_fences(raw)
    span = extract_object(text)
    if not isinstance(span, Ok):
        logger.warning("JSON boundary extraction failed: %s", span)
        return span
    start, end = span.value
    candidate = text[start:end]

    parsed = parse_object(candidate, offset=start)
    if isinstance(parsed, Ok):
        return parsed

    repaired = repair_syntax(candidate)
    if repaired != candidate:
        logger.info("Applied syntax repair to completion JSON")
    result = parse_object(repaired, offset=start)
    if not isinstance(result, Ok):
        logger.warning("Completion JSON undecodable after repair: %s", result)
    return result
