"""Robust JSON recovery from unreliable model output.

Models are asked to answer with a single fenced ```json block, but replies
regularly arrive with leading or trailing prose, untagged fences, raw control
bytes or trailing commas. ``extract_json`` applies cheap repairs in a fixed
order and parses once; it never falls back to a different strategy after the
parse itself fails.

Order:
    1. Interior of the first ```json fence (or the first untagged fence).
    2. Otherwise, the span from the first ``{`` to the last ``}``.
    3. Strip control characters other than tab, LF and CR.
    4. Drop trailing commas before ``}`` / ``]`` outside string literals.
    5. ``json.loads`` in non-strict mode.
"""

from __future__ import annotations

import json
import re
from typing import Any

from ai_builder.errors import MalformedResponseError

# Closing fences must start a line, so fences embedded in escaped JSON string
# values (e.g. a generated README) do not end the block early.
_JSON_FENCE = re.compile(r"```json[^\S\n]*\n(.*?)\n[^\S\n]*```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[^\S\n]*\n(.*?)\n[^\S\n]*```", re.DOTALL)
_INLINE_JSON_FENCE = re.compile(r"```json(.*?)```", re.DOTALL | re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def _find_candidate(raw: str) -> str:
    """Locate the JSON text inside ``raw`` (steps 1 and 2)."""
    for pattern in (_JSON_FENCE, _INLINE_JSON_FENCE, _ANY_FENCE):
        match = pattern.search(raw)
        if not match:
            continue
        interior = match.group(1).strip()
        # An untagged fence only counts when it actually holds JSON.
        if interior and (pattern is not _ANY_FENCE or interior[0] in "{["):
            return interior

    first = raw.find("{")
    last = raw.rfind("}")
    if first == -1 or last == -1 or last < first:
        raise MalformedResponseError(
            "Model response does not contain a JSON object", raw=raw
        )
    return raw[first : last + 1]


def strip_control_chars(text: str) -> str:
    """Remove ASCII control characters except tab, LF and CR."""
    return _CONTROL_CHARS.sub("", text)


def strip_trailing_commas(text: str) -> str:
    """Remove commas that directly precede ``}`` or ``]``.

    String literals are copied through untouched so generated source code
    such as ``{a, }`` inside a ``content`` value is never altered.
    """
    out: list[str] = []
    in_string = False
    escaped = False
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
            out.append(char)
        elif char == ",":
            j = i + 1
            while j < length and text[j] in " \t\r\n":
                j += 1
            if j < length and text[j] in "}]":
                i += 1
                continue
            out.append(char)
        else:
            out.append(char)
        i += 1
    return "".join(out)


def extract_json(raw: str) -> Any:
    """Recover a JSON value from a raw model reply.

    Args:
        raw: The model's complete text output.

    Returns:
        The parsed JSON value (normally a ``dict``).

    Raises:
        MalformedResponseError: If no candidate can be located or the repaired
            candidate still fails to parse. The error carries an excerpt of
            ``raw`` for diagnosis.
    """
    if not raw or not raw.strip():
        raise MalformedResponseError("Model response is empty", raw=raw or "")

    candidate = _find_candidate(raw)
    candidate = strip_control_chars(candidate)
    candidate = strip_trailing_commas(candidate)

    try:
        return json.loads(candidate, strict=False)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            f"Model response is not valid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})",
            raw=raw,
        ) from exc


def extract_object(raw: str) -> dict[str, Any]:
    """Like :func:`extract_json` but require a top-level JSON object."""
    data = extract_json(raw)
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(data).__name__}", raw=raw
        )
    return data
