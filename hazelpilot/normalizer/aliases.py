"""
Versioned synonym table used by the step normalizer.

All verb synonyms and field-promotion precedences live here so they can be
audited and tested without touching the decoding logic. Producers (prompt
versions, hand-written JSON) disagree on naming; the table is the single
place where those differences are reconciled.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from hazelpilot.core.types import ActionKind

ALIAS_TABLE_VERSION = "3"

_COMPACT = re.compile(r"[\s_\-]+")


def compact_verb(verb: str) -> str:
    """Lowercase and drop separators: ``"Wait_For"`` -> ``"waitfor"``."""
    return _COMPACT.sub("", verb.strip().lower())


DEFAULT_ACTION_ALIASES: Dict[str, ActionKind] = {
    # navigation
    "goto": ActionKind.GOTO,
    "navigate": ActionKind.GOTO,
    "navigateto": ActionKind.GOTO,
    "open": ActionKind.GOTO,
    "go": ActionKind.GOTO,
    "visit": ActionKind.GOTO,
    # interaction
    "click": ActionKind.CLICK,
    "clickon": ActionKind.CLICK,
    "tap": ActionKind.CLICK,
    "fill": ActionKind.FILL,
    "type": ActionKind.FILL,
    "input": ActionKind.FILL,
    "enter": ActionKind.FILL,
    "typetext": ActionKind.FILL,
    "press": ActionKind.PRESS,
    "presskey": ActionKind.PRESS,
    "keypress": ActionKind.PRESS,
    "select": ActionKind.SELECT,
    "selectoption": ActionKind.SELECT,
    "choose": ActionKind.SELECT,
    "check": ActionKind.CHECK,
    "uncheck": ActionKind.UNCHECK,
    # waiting
    "waitforvisible": ActionKind.WAIT_FOR_VISIBLE,
    "waitfor": ActionKind.WAIT_FOR_VISIBLE,
    "waitforelement": ActionKind.WAIT_FOR_VISIBLE,
    "sleep": ActionKind.SLEEP,
    "wait": ActionKind.SLEEP,
    "pause": ActionKind.SLEEP,
    # assertions
    "asserttext": ActionKind.ASSERT_TEXT,
    "expecttext": ActionKind.ASSERT_TEXT,
    "verifytext": ActionKind.ASSERT_TEXT,
    "assertvisible": ActionKind.ASSERT_VISIBLE,
    "expectvisible": ActionKind.ASSERT_VISIBLE,
    "verifyvisible": ActionKind.ASSERT_VISIBLE,
    "asserturl": ActionKind.ASSERT_URL,
    "expecturl": ActionKind.ASSERT_URL,
    "expecturlcontains": ActionKind.ASSERT_URL,
    "urlcontains": ActionKind.ASSERT_URL,
    "waitforurl": ActionKind.ASSERT_URL,
    # artifacts
    "screenshot": ActionKind.SCREENSHOT,
    "snapshot": ActionKind.SCREENSHOT,
}

DEFAULT_TARGET_FIELD_ALIASES: Dict[str, str] = {
    "role": "role",
    "name": "name",
    "label": "label",
    "text": "text",
    "placeholder": "placeholder",
    "testid": "testId",
    "test_id": "testId",
    "data-testid": "testId",
    "datatestid": "testId",
    "css": "css",
    "xpath": "xpath",
}


@dataclass(frozen=True)
class AliasTable:
    """Static normalization configuration; each tuple is in precedence order."""

    version: str = ALIAS_TABLE_VERSION
    actions: Mapping[str, ActionKind] = field(
        default_factory=lambda: dict(DEFAULT_ACTION_ALIASES)
    )
    target_fields: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_TARGET_FIELD_ALIASES)
    )
    # keys naming the verb of a fielded step; "name" only counts for known verbs
    action_keys: Tuple[str, ...] = ("step", "action", "type", "op")
    weak_action_keys: Tuple[str, ...] = ("name",)
    target_keys: Tuple[str, ...] = (
        "target", "selector", "locator", "targetText", "element", "query", "url",
    )
    # raw selector strings under these keys may carry css/xpath syntax
    selector_keys: Tuple[str, ...] = ("selector", "locator")
    value_keys: Tuple[str, ...] = ("value",)
    fill_value_keys: Tuple[str, ...] = ("input", "text")
    pattern_keys: Tuple[str, ...] = ("pattern", "regex", "contains")
    key_keys: Tuple[str, ...] = ("key",)
    sleep_keys: Tuple[str, ...] = ("ms", "duration", "timeout")
    fill_like: FrozenSet[ActionKind] = frozenset({ActionKind.FILL, ActionKind.SELECT})
    url_match: FrozenSet[ActionKind] = frozenset({ActionKind.ASSERT_URL})

    def canonical(self, verb: Optional[str]) -> Optional[ActionKind]:
        """Canonical action for ``verb`` (case-insensitive) or None if unknown."""
        if not isinstance(verb, str) or not verb.strip():
            return None
        return self.actions.get(compact_verb(verb))

    def target_field(self, key: str) -> Optional[str]:
        """Canonical TargetSpec field name for a locator key, if any."""
        return self.target_fields.get(key) or self.target_fields.get(key.lower())


DEFAULT_ALIASES = AliasTable()
