"""Best-effort recovery of JSON emitted by language models.

Models wrap JSON in markdown fences, surround it with prose, leave trailing
commas behind and get cut off mid-token. :func:`parse_safe` tries, in order,
a direct parse, a cleaned parse and a structural repair, and hands back the
caller's fallback instead of raising when all of them fail.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FENCE = re.compile(r"```[A-Za-z0-9_-]*")
_LITERAL = re.compile(
    r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|true|false|null"
)
_PARTIAL_UNICODE_ESCAPE = re.compile(r"\\u[0-9a-fA-F]{0,3}$")
_CLOSERS = {"{": "}", "[": "]"}


@dataclass
class _Token:
    kind: str  # open, close, string, literal, colon, comma
    start: int
    end: int
    container: Optional[str]


@dataclass
class _Scan:
    stack: List[str] = field(default_factory=list)
    tokens: List[_Token] = field(default_factory=list)
    in_string: bool = False
    string_start: int = -1
    string_is_key: bool = False
    stray_start: Optional[int] = None


def _string_end(text: str, start: int) -> Optional[int]:
    """Return the index just past the string opened at ``start``."""
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == '"':
            return i + 1
        i += 1
    return None


def _is_key(tokens: List[_Token], index: int) -> bool:
    token = tokens[index]
    if token.kind != "string" or token.container != "{":
        return False
    return index == 0 or tokens[index - 1].kind in ("open", "comma")


def _scan(text: str) -> _Scan:
    """Tokenize ``text`` until it ends, a string is left open, or prose shows up."""
    scan = _Scan()
    i = 0
    while i < len(text):
        ch = text[i]
        if ch.isspace():
            i += 1
            continue

        # Anything after the root value has closed is trailing prose.
        if not scan.stack and scan.tokens:
            scan.stray_start = i
            break

        container = scan.stack[-1] if scan.stack else None
        if ch == '"':
            end = _string_end(text, i)
            if end is None:
                scan.in_string = True
                scan.string_start = i
                scan.tokens.append(_Token("string", i, len(text), container))
                scan.string_is_key = _is_key(scan.tokens, len(scan.tokens) - 1)
                scan.tokens.pop()
                break
            scan.tokens.append(_Token("string", i, end, container))
            i = end
        elif ch in _CLOSERS:
            scan.stack.append(ch)
            scan.tokens.append(_Token("open", i, i + 1, container))
            i += 1
        elif ch in "}]":
            if not scan.stack or _CLOSERS[scan.stack[-1]] != ch:
                scan.stray_start = i
                break
            scan.stack.pop()
            scan.tokens.append(_Token("close", i, i + 1, container))
            i += 1
        elif ch == ":":
            scan.tokens.append(_Token("colon", i, i + 1, container))
            i += 1
        elif ch == ",":
            scan.tokens.append(_Token("comma", i, i + 1, container))
            i += 1
        else:
            match = _LITERAL.match(text, i)
            if match is None:
                scan.stray_start = i
                break
            scan.tokens.append(_Token("literal", i, match.end(), container))
            i = match.end()
    return scan


def _strip_trailing_commas(text: str) -> str:
    """Remove commas that directly precede a closing bracket, outside strings."""
    out: List[str] = []
    in_string = False
    i = 0
    while i < len(text):
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < len(text):
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch == ",":
            j = i + 1
            while j < len(text) and text[j].isspace():
                j += 1
            if j >= len(text) or text[j] not in "}]":
                out.append(ch)
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def _strip_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def _root_start(text: str) -> int:
    first = text.find("{")
    return text.find("[") if first == -1 else first


def clean(text: str) -> str:
    """Strip fences, isolate the outermost object and drop trailing commas."""
    cleaned = _strip_fences(text)
    first = _root_start(cleaned)
    if first != -1:
        last = cleaned.rfind(_CLOSERS[cleaned[first]])
        cleaned = cleaned[first : last + 1] if last > first else cleaned[first:]
    return _strip_trailing_commas(cleaned)


def _drop_dangling(text: str) -> str:
    """Cut trailing commas, colons and keys that have no value."""
    tokens = _scan(text).tokens
    keep = len(tokens)
    while keep:
        token = tokens[keep - 1]
        if token.kind in ("comma", "colon") or _is_key(tokens, keep - 1):
            keep -= 1
            continue
        break
    return text[: tokens[keep - 1].end] if keep else ""


def _close_string(text: str) -> str:
    trailing = len(text) - len(text.rstrip("\\"))
    if trailing % 2:
        text = text[:-1]
    text = _PARTIAL_UNICODE_ESCAPE.sub("", text)
    return text + '"'


def repair_json(text: str) -> str:
    """Rewrite ``text`` into something ``json.loads`` has a chance to accept.

    The returned string is not guaranteed to be valid JSON; it is empty when
    nothing structural could be recovered.
    """
    cleaned = _strip_fences(text)
    first = _root_start(cleaned)
    if first == -1:
        return ""
    candidate = _strip_trailing_commas(cleaned[first:])

    # Each pass strictly shortens the candidate, so this terminates.
    scan = _scan(candidate)
    while scan.stray_start is not None:
        kept = [token for token in scan.tokens if token.end <= scan.stray_start]
        # A literal running straight into the stray text was cut mid-token.
        if kept and kept[-1].kind == "literal" and kept[-1].end == scan.stray_start:
            cut = kept[-1].start
        else:
            cut = kept[-1].end if kept else 0
        candidate = candidate[:cut].rstrip().rstrip(",")
        scan = _scan(candidate)

    if scan.in_string:
        if scan.string_is_key:
            candidate = candidate[: scan.string_start]
        else:
            candidate = _close_string(candidate)

    candidate = _drop_dangling(candidate)
    scan = _scan(candidate)
    return candidate + "".join(_CLOSERS[opener] for opener in reversed(scan.stack))


def _candidates(text: str) -> Iterator[str]:
    yield text.strip()
    yield clean(text)
    yield repair_json(text)


def parse_safe(text: Any, fallback: T = None) -> Any | T:
    """Parse model output into a JSON value, returning ``fallback`` on failure."""
    if not isinstance(text, str):
        return fallback
    for candidate in _candidates(text):
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except (ValueError, RecursionError):
            continue
    logger.debug(f"Could not recover JSON from model output: {text[:200]!r}")
    return fallback
