"""
Cleanup of LLM formatting artifacts in generated source code.
"""

import re

# Escaped angle brackets as they come back from JSON-ish model output
_ESCAPES = (
    ("/u003c", "<"),
    ("/u003e", ">"),
    ("\\u003c", "<"),
    ("\\u003e", ">"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)

# Opening fence with an optional language tag on its own line
_FENCE = re.compile(r"```[ \t]*(?:cpp|c\+\+|cxx|cc|c)?[ \t]*(?=\r?\n|$)", re.IGNORECASE)

# Any fence marker left over, e.g. mid-line
_STRAY_FENCE = "```"


def _sanitize_once(text: str) -> str:
    for escaped, plain in _ESCAPES:
        text = text.replace(escaped, plain)
    text = _FENCE.sub("", text)
    return text.replace(_STRAY_FENCE, "")


def sanitize(raw_code: str) -> str:
    """
    Strip model formatting artifacts from generated C++ source.

    Decodes escaped angle brackets and removes markdown code fences.
    Removing one artifact can expose another (``&l```t;``), so passes
    repeat until nothing changes; every pass only shrinks the text.
    The result is a fixed point, hence sanitize(sanitize(x)) == sanitize(x),
    and clean source comes back unchanged.
    """
    cleaned = raw_code or ""
    while True:
        updated = _sanitize_once(cleaned)
        if updated == cleaned:
            return cleaned
        cleaned = updated
