"""Sanitize user-authored text before it is placed in an LLM prompt."""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

MAX_CONTENT_LENGTH = 10000
BLOCKED_MARKER = "[BLOCKED CONTENT]"

_HTML_TAG = re.compile(r"<[^>]*>")

# Role spoofing and instruction override phrases.
DANGEROUS_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"system:",
        r"assistant:",
        r"ignore previous",
        r"ignore all previous",
        r"disregard previous",
        r"forget previous",
        r"new instructions:",
        r"override instructions",
    )
)


def sanitize_input(
    content: Any,
    max_length: int = MAX_CONTENT_LENGTH,
    strip_html: bool = True,
    block_patterns: Optional[Sequence[re.Pattern[str]]] = None,
) -> str:
    """Return ``content`` with markup removed and injection phrases blocked."""
    if not content or not isinstance(content, str):
        return ""

    sanitized = content
    if strip_html:
        sanitized = _HTML_TAG.sub("", sanitized)

    patterns = DANGEROUS_PATTERNS if block_patterns is None else block_patterns
    for pattern in patterns:
        sanitized = pattern.sub(BLOCKED_MARKER, sanitized)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
    return sanitized.strip()
