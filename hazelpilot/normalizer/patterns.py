"""
Pattern literalization shared by text and URL assertions and locator names.

``"/body/flags"`` is a regular expression taken verbatim (no flags means
``i``); any other string is escaped and matched case-insensitively as a
substring.
"""

import re
from typing import Optional, Pattern, Union

from hazelpilot.monitoring.logger import get_logger

logger = get_logger("normalizer.patterns")

_REGEX_LITERAL = re.compile(r"^/(.+)/([a-z]*)$", re.DOTALL)
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}
# JavaScript flags without a Python counterpart that change nothing for a search
_NEUTRAL_FLAGS = set("gyud")
_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")
_NAMED_BACKREF = re.compile(r"\\k<(\w+)>")

MATCH_ANYTHING = re.compile(r"[\s\S]*")


def is_regex_literal(pattern: Optional[str]) -> bool:
    """True for ``/body/flags`` strings with recognized flags."""
    if not isinstance(pattern, str):
        return False
    match = _REGEX_LITERAL.match(pattern)
    if not match:
        return False
    return set(match.group(2)) <= set(_FLAG_MAP) | _NEUTRAL_FLAGS


def _translate_js(body: str) -> str:
    body = _NAMED_GROUP.sub("(?P<", body)
    return _NAMED_BACKREF.sub(r"(?P=\1)", body)


def literalize(pattern: Union[None, str, Pattern[str]]) -> Pattern[str]:
    """
    Compile a pattern field.

    Args:
        pattern: ``/regex/flags``, a plain string, an already compiled
            pattern, or None/empty (matches anything)

    Returns:
        Compiled pattern for use with ``search``
    """
    if isinstance(pattern, re.Pattern):
        return pattern
    if not pattern:
        return MATCH_ANYTHING

    if is_regex_literal(pattern):
        match = _REGEX_LITERAL.match(pattern)
        body, flag_letters = match.group(1), match.group(2)
        # a literal without flags matches case-insensitively
        flags = 0 if flag_letters else re.IGNORECASE
        for letter in flag_letters:
            flags |= _FLAG_MAP.get(letter, 0)
        try:
            return re.compile(_translate_js(body), flags)
        except re.error as exc:
            logger.warning(
                "Invalid regular expression, matching it literally",
                extra={"pattern": pattern, "error": str(exc)},
            )

    return re.compile(re.escape(pattern), re.IGNORECASE)


def pattern_matches(pattern: Union[None, str, Pattern[str]], text: Optional[str]) -> bool:
    return literalize(pattern).search(text or "") is not None


def describe_pattern(pattern: Union[None, str, Pattern[str]]) -> str:
    compiled = literalize(pattern)
    suffix = "i" if compiled.flags & re.IGNORECASE else ""
    return f"/{compiled.pattern}/{suffix}"
