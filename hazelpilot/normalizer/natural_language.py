"""
Best-effort parsing of free-text steps.

Only used when a raw step matches no structured shape. A handful of verb
regexes pick the action; quoted fragments become values and the remaining
words become a target hint. Anything without a recognizable verb is left
unparsed.
"""

import re
from dataclasses import dataclass
from typing import Optional

from hazelpilot.core.types import ActionKind

QUOTED = re.compile(r'"([^"]*)"|\'([^\']*)\'|“([^”]*)”')
URL = re.compile(r"https?://[^\s\"'<>]+")
PATH = re.compile(r"(?<![\w/])(/[^\s\"'<>]*)")

GOTO_VERB = re.compile(r"^\s*(?:go\s+to|navigate\s+to|open)\b\s*(?P<rest>.*)$", re.IGNORECASE | re.DOTALL)
URL_CONTAINS = re.compile(
    r"\burl\s+(?:should\s+)?(?:contains?|includes?|has)\s+(?P<rest>.+)$", re.IGNORECASE | re.DOTALL
)
FILL_VERB = re.compile(r"^\s*(?:fill(?:\s+in)?|type|enter)\b\s*(?P<rest>.*)$", re.IGNORECASE | re.DOTALL)
CLICK_VERB = re.compile(
    r"^\s*(?P<verb>click(?:\s+on)?|press|tap)\b\s*(?P<rest>.*)$", re.IGNORECASE | re.DOTALL
)
SEE_VERB = re.compile(
    r"\b(?:should\s+see|sees?|verify|verifies|expects?|assert)\b\s*(?:that\s+)?(?P<rest>.*)$",
    re.IGNORECASE | re.DOTALL,
)

INTO_CLAUSE = re.compile(r"\b(?:into|in|on|for|as)\b\s+(?P<hint>.+)$", re.IGNORECASE | re.DOTALL)
WITH_CLAUSE = re.compile(r"^(?P<hint>.+?)\s+with\s+(?P<value>.+)$", re.IGNORECASE | re.DOTALL)

LEADING_FILLER = re.compile(r"^(?:the|a|an|on)\s+", re.IGNORECASE)
TRAILING_FILLER = re.compile(
    r"\s+(?:field|box|input|textbox|text\s+box|button|link|tab|icon|checkbox)$", re.IGNORECASE
)
OUTCOME_SUFFIX = re.compile(
    r"\s+(?:is|are)\s+(?:displayed|visible|shown|present)$|\s+(?:appears?|loads?|is\s+loaded)$",
    re.IGNORECASE,
)

KEY_NAMES = {
    "enter": "Enter", "return": "Enter", "tab": "Tab", "escape": "Escape", "esc": "Escape",
    "backspace": "Backspace", "delete": "Delete", "space": "Space",
    "arrowup": "ArrowUp", "arrowdown": "ArrowDown", "arrowleft": "ArrowLeft",
    "arrowright": "ArrowRight",
}


@dataclass
class ParsedSentence:
    """Fields extracted from a free-text step."""

    action: ActionKind
    target: Optional[str] = None
    value: Optional[str] = None
    pattern: Optional[str] = None
    key: Optional[str] = None


def first_quoted(text: str) -> Optional[str]:
    match = QUOTED.search(text or "")
    if not match:
        return None
    return next(group for group in match.groups() if group is not None)


def _strip_quotes(text: str) -> str:
    return QUOTED.sub(lambda m: next(g for g in m.groups() if g is not None), text)


def clean_hint(text: Optional[str]) -> Optional[str]:
    """Trim articles, trailing widget nouns and punctuation from a target hint."""
    if not text:
        return None
    hint = _strip_quotes(text).strip().rstrip(".!,;:")
    previous = None
    while previous != hint:
        previous = hint
        hint = LEADING_FILLER.sub("", hint).strip()
        hint = TRAILING_FILLER.sub("", hint).strip()
    return hint or None


def _parse_goto(rest: str) -> ParsedSentence:
    url = URL.search(rest)
    if url:
        return ParsedSentence(ActionKind.GOTO, target=url.group(0).rstrip(".,;"))
    path = PATH.search(rest)
    if path:
        return ParsedSentence(ActionKind.GOTO, target=path.group(1).rstrip(".,;"))
    # no address given: navigate to the base URL
    return ParsedSentence(ActionKind.GOTO)


def _parse_fill(rest: str) -> ParsedSentence:
    quoted = first_quoted(rest)
    with_clause = WITH_CLAUSE.match(rest)
    if with_clause and (quoted is None or quoted in with_clause.group("value")):
        value = first_quoted(with_clause.group("value")) or clean_hint(with_clause.group("value"))
        return ParsedSentence(ActionKind.FILL, target=clean_hint(with_clause.group("hint")), value=value)

    remainder = QUOTED.sub(" ", rest, count=1) if quoted is not None else rest
    into = INTO_CLAUSE.search(remainder)
    hint = clean_hint(into.group("hint")) if into else None
    if hint is None and quoted is None:
        return ParsedSentence(ActionKind.FILL, target=None, value=clean_hint(rest))
    if hint is None:
        hint = clean_hint(remainder)
    return ParsedSentence(ActionKind.FILL, target=hint, value=quoted)


def _parse_click(verb: str, rest: str) -> ParsedSentence:
    bare = clean_hint(rest) or ""
    if verb.lower() == "press" and bare.lower().replace(" ", "") in KEY_NAMES:
        return ParsedSentence(ActionKind.PRESS, key=KEY_NAMES[bare.lower().replace(" ", "")])
    return ParsedSentence(ActionKind.CLICK, target=first_quoted(rest) or clean_hint(rest))


def _parse_see(rest: str) -> ParsedSentence:
    quoted = first_quoted(rest)
    if quoted:
        return ParsedSentence(ActionKind.ASSERT_TEXT, pattern=quoted)
    text = clean_hint(rest)
    if text:
        text = OUTCOME_SUFFIX.sub("", text).strip() or text
    return ParsedSentence(ActionKind.ASSERT_TEXT, pattern=text)


def parse_sentence(text: str) -> Optional[ParsedSentence]:
    """
    Extract an action from a free-text step.

    Args:
        text: The sentence, e.g. ``'Enter "user" into username'``

    Returns:
        ParsedSentence or None when no verb is recognized
    """
    if not isinstance(text, str) or not text.strip():
        return None

    match = GOTO_VERB.match(text)
    if match:
        return _parse_goto(match.group("rest"))

    match = URL_CONTAINS.search(text)
    if match:
        rest = match.group("rest")
        pattern = first_quoted(rest) or rest.strip().rstrip(".!,;")
        return ParsedSentence(ActionKind.ASSERT_URL, pattern=pattern)

    match = FILL_VERB.match(text)
    if match:
        return _parse_fill(match.group("rest"))

    match = CLICK_VERB.match(text)
    if match:
        return _parse_click(match.group("verb"), match.group("rest"))

    match = SEE_VERB.search(text)
    if match:
        return _parse_see(match.group("rest"))

    return None
