"""Recovers structured metadata from malformed provider JSON.

LLMs asked for "only valid JSON" still wrap it in code fences, append
commentary, drop commas, leave trailing commas and stop mid-object when they
run out of tokens. This module applies a bounded ladder of repairs:

  1.  Strict parse of the raw text; valid JSON is returned untouched.
  2.  Strip a leading or trailing code fence and any prose before the
      opening brace, then parse again.
  3.  Ladder, re-parsing after each stage:
      a.  ``remove_trailing_commas``
      b.  ``insert_missing_commas``
      c.  ``balance_brackets``
  4.  Insert a single comma at the offset the JSON decoder complained about.
  5.  Give up with ``EnrichmentParseError``.

Every stage is a pure, string-aware ``str -> str`` function that leaves
valid JSON untouched, so ``repair_json_text`` is a fixed point on its own
output.
"""

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from errors import EnrichmentParseError
from models import EnrichedMetadata

logger = logging.getLogger(__name__)

# Characters of excerpt shown either side of a parse failure.
EXCERPT_RADIUS: int = 100

_OPENING_FENCE = re.compile(r"^```[\w-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\s*$")
_BARE_TOKEN = re.compile(r"[A-Za-z0-9_.+\-]+")
_TRAILING_BARE_TOKEN = re.compile(r"[A-Za-z0-9_.+\-]+$")
_JSON_NUMBER = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
_PARTIAL_UNICODE_ESCAPE = re.compile(r"\\u[0-9a-fA-F]{0,3}$")

_CLOSERS = {"{": "}", "[": "]"}


# ---------------------------------------------------------------------------
# Step 2: unwrap
# ---------------------------------------------------------------------------


def extract_payload(raw: str) -> str:
    """Removes code fences and leading prose around the JSON payload.

    Fences are only stripped at the very start and end of the text, so
    backticks inside string values survive. An opening fence whose closing
    fence was lost to truncation is handled too.
    """
    text = raw.strip()
    text = _CLOSING_FENCE.sub("", _OPENING_FENCE.sub("", text)).strip()
    if text and text[0] not in "{[":
        start = text.find("{")
        if start > 0:
            text = text[start:]
    return text


# ---------------------------------------------------------------------------
# Step 3: repair ladder
# ---------------------------------------------------------------------------


def remove_trailing_commas(text: str) -> str:
    """Drops commas that precede a closing bracket, the end of input, or
    another comma, and commas directly after an opening bracket.

    >>> remove_trailing_commas('{"a": [1, 2,], "b": 3,}')
    '{"a": [1, 2], "b": 3}'
    """
    out: list[str] = []
    in_string = escaped = False
    last_sig = ""
    n = len(text)
    for i, c in enumerate(text):
        if in_string:
            out.append(c)
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = False
            continue
        if c == ",":
            j = i + 1
            while j < n and (text[j].isspace() or text[j] == ","):
                j += 1
            if j >= n or text[j] in "}]" or last_sig in ("", "{", "[", ","):
                continue
        if c == '"':
            in_string = True
        out.append(c)
        if not c.isspace():
            last_sig = c
    return "".join(out)


def insert_missing_commas(text: str) -> str:
    """Inserts a comma between a completed value and the token that follows.

    A value is complete after a closing quote, a bare number or literal, or a
    closing bracket. If the next token starts without a separator in between,
    a comma is inserted right after the completed value.

    >>> insert_missing_commas('{"a": "x" "b": 2 "c": true}')
    '{"a": "x", "b": 2, "c": true}'
    """
    out: list[str] = []
    last_sig_pos = -1  # index into ``out`` of the last significant char
    i = 0
    n = len(text)

    def needs_separator() -> bool:
        return last_sig_pos >= 0 and out[last_sig_pos] not in ",:{["

    while i < n:
        c = text[i]
        if c == '"':
            if needs_separator():
                out.insert(last_sig_pos + 1, ",")
            end = _string_end(text, i)
            out.extend(text[i:end])
            last_sig_pos = len(out) - 1
            i = end
            continue
        if c in "{[":
            if needs_separator():
                out.insert(last_sig_pos + 1, ",")
            out.append(c)
            last_sig_pos = len(out) - 1
            i += 1
            continue
        match = _BARE_TOKEN.match(text, i)
        if match:
            if needs_separator():
                out.insert(last_sig_pos + 1, ",")
            out.extend(match.group())
            last_sig_pos = len(out) - 1
            i = match.end()
            continue
        out.append(c)
        if not c.isspace():
            last_sig_pos = len(out) - 1
        i += 1
    return "".join(out)


def balance_brackets(text: str) -> str:
    """Makes bracket nesting consistent, respecting string and escape state.

    Anything after the first fully balanced top-level value is cut off.
    A closing bracket that skips over open containers closes them first;
    one with no matching opener ends the text. If the input ends with
    containers still open (truncated output), an unterminated string is
    closed, a dangling key or colon gets a ``null`` value, and the missing
    closers are appended in nesting order.
    """
    out: list[str] = []
    stack: list[str] = []
    in_string = escaped = False
    balanced_end: int | None = None
    string_is_key = False
    last_sig = ""

    for c in text:
        if in_string:
            out.append(c)
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = False
            continue
        if balanced_end is not None and not stack and not c.isspace():
            break
        if c == '"':
            in_string = True
            string_is_key = bool(stack) and stack[-1] == "{" and last_sig in "{,"
        elif c in "{[":
            stack.append(c)
        elif c in "}]":
            opener = "{" if c == "}" else "["
            if opener not in stack:
                break
            while stack[-1] != opener:
                out.append(_CLOSERS[stack.pop()])
            stack.pop()
            out.append(c)
            last_sig = c
            if not stack:
                balanced_end = len(out)
            continue
        out.append(c)
        if not c.isspace():
            last_sig = c

    if not stack:
        return "".join(out[:balanced_end] if balanced_end is not None else out)

    tail = "".join(out)
    if in_string:
        if escaped:
            tail = tail[:-1]
        tail = _PARTIAL_UNICODE_ESCAPE.sub("", tail) + '"'
        last_sig = '"'
    tail = _close_dangling_value(tail, stack[-1], string_is_key and last_sig == '"')
    return tail + "".join(_CLOSERS[o] for o in reversed(stack))


def _close_dangling_value(tail: str, container: str, ends_with_key: bool) -> str:
    """Completes whatever member the truncation left half-written."""
    tail = tail.rstrip().rstrip(",").rstrip()
    bare = _TRAILING_BARE_TOKEN.search(tail)
    if bare and not _is_json_scalar(bare.group()):
        tail = tail[: bare.start()].rstrip().rstrip(",").rstrip()
    if tail.endswith(":"):
        return tail + " null"
    if container == "{" and ends_with_key and tail.endswith('"'):
        return tail + ": null"
    return tail


def _is_json_scalar(token: str) -> bool:
    return token in ("true", "false", "null") or bool(_JSON_NUMBER.fullmatch(token))


def _string_end(text: str, start: int) -> int:
    """Returns the index just past the string literal opening at ``start``."""
    escaped = False
    for j in range(start + 1, len(text)):
        c = text[j]
        if escaped:
            escaped = False
        elif c == "\\":
            escaped = True
        elif c == '"':
            return j + 1
    return len(text)


REPAIR_LADDER: list[tuple[str, Callable[[str], str]]] = [
    ("remove_trailing_commas", remove_trailing_commas),
    ("insert_missing_commas", insert_missing_commas),
    ("balance_brackets", balance_brackets),
]


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def _loads(text: str) -> Any:
    # strict=False tolerates raw newlines inside strings, a frequent LLM habit.
    return json.loads(text, strict=False)


def repair_with_stage(raw: str) -> tuple[str, str]:
    """Returns (valid JSON text, name of the stage that made it parse).

    Raises:
        EnrichmentParseError: If the text is still invalid after the ladder
            and the offset comma insertion.
    """
    stripped = raw.strip()
    try:
        _loads(stripped)
        return stripped, "strict"
    except json.JSONDecodeError:
        pass

    text = extract_payload(raw)
    try:
        _loads(text)
        return text, "strict"
    except json.JSONDecodeError as exc:
        error = exc

    for name, transform in REPAIR_LADDER:
        text = transform(text)
        try:
            _loads(text)
            logger.info("Provider JSON repaired by %s", name)
            return text, name
        except json.JSONDecodeError as exc:
            error = exc

    pos = error.pos
    if 0 < pos <= len(text):
        patched = text[:pos] + "," + text[pos:]
        try:
            _loads(patched)
            logger.info("Provider JSON repaired by comma at offset %d", pos)
            return patched, "offset_comma"
        except json.JSONDecodeError:
            pass

    excerpt = text[max(0, pos - EXCERPT_RADIUS) : pos + EXCERPT_RADIUS]
    logger.warning("Provider JSON unrecoverable at offset %d: %s", pos, excerpt)
    raise EnrichmentParseError(
        f"Provider response is not valid JSON ({error.msg} at offset {pos}).",
        excerpt=excerpt,
    )


def repair_json_text(raw: str) -> str:
    """Returns the repaired JSON text. ``repair_json_text`` is idempotent."""
    return repair_with_stage(raw)[0]


def parse_enrichment(raw: str) -> tuple[EnrichedMetadata, str]:
    """Repairs and validates provider output into ``EnrichedMetadata``.

    Returns:
        Tuple of (metadata, name of the repair stage that succeeded).

    Raises:
        EnrichmentParseError: If the text cannot be repaired, is not a JSON
            object, or does not fit the metadata schema.
    """
    text, stage = repair_with_stage(raw)
    data = _loads(text)
    if not isinstance(data, dict):
        raise EnrichmentParseError(
            f"Provider response is a JSON {type(data).__name__}, not an object.",
            excerpt=text[: EXCERPT_RADIUS * 2],
        )
    try:
        return EnrichedMetadata.model_validate(data), stage
    except ValidationError as exc:
        raise EnrichmentParseError(
            f"Provider response does not match the metadata schema: "
            f"{exc.error_count()} errors.",
            excerpt=str(exc)[: EXCERPT_RADIUS * 2],
        ) from exc
