"""
Locator strategies for target resolution.

A strategy is a named recipe that builds a Playwright locator from a page.
Strategies are planned per (target, intent) in priority order; the resolver
then keeps only those whose locator currently matches something.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Pattern, Union

from hazelpilot.core.types import ActionKind, Target, TargetSpec
from hazelpilot.normalizer.patterns import is_regex_literal, literalize


class Intent(str, Enum):
    """What the step is about to do with the element."""

    FILL = "fill"
    CLICK = "click"
    SELECT = "select"
    CHECK = "check"
    READ = "read"

    @classmethod
    def for_action(cls, action: Optional[Union[str, ActionKind]]) -> "Intent":
        kind = ActionKind.parse(action) if isinstance(action, str) else action
        if kind in (ActionKind.FILL, ActionKind.PRESS):
            return cls.FILL
        if kind == ActionKind.CLICK:
            return cls.CLICK
        if kind == ActionKind.SELECT:
            return cls.SELECT
        if kind in (ActionKind.CHECK, ActionKind.UNCHECK):
            return cls.CHECK
        return cls.READ


@dataclass(frozen=True)
class Strategy:
    """A named locator recipe."""

    name: str
    build: Callable[[Any], Any]


TEXT_INPUT_SELECTOR = (
    "input:not([type]), input[type=text], input[type=email], input[type=password], "
    "input[type=search], input[type=tel], input[type=url], input[type=number], textarea"
)
CLICKABLE_SELECTOR = (
    "button, a, [role=button], [role=link], input[type=submit], input[type=button], [onclick]"
)
SUBMIT_SELECTOR = "button[type=submit], input[type=submit]"
BUTTON_LIKE_SELECTOR = "button, [role=button], input[type=button], input[type=submit]"


def text_arg(hint: str) -> Union[str, Pattern[str]]:
    """
    Name/text argument for Playwright ``get_by_*`` calls.

    ``/regex/flags`` hints compile to a pattern; plain strings are passed
    through, which Playwright matches as a case-insensitive substring.
    """
    if is_regex_literal(hint):
        return literalize(hint)
    return hint


def _css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def fuzzy_attribute_selector(hint: str, tags: str = "input, textarea, select") -> str:
    """CSS matching controls whose name/id/aria-label/test id contain ``hint``."""
    needle = _css_string(hint)
    parts = []
    for tag in (t.strip() for t in tags.split(",")):
        for attribute in ("name", "id", "aria-label", "data-testid"):
            parts.append(f'{tag}[{attribute}*="{needle}" i]')
    return ", ".join(parts)


def explicit_strategies(spec: TargetSpec) -> List[Strategy]:
    """
    Strategies for a structured TargetSpec: only the fields it names.

    Order: role (named by name or label), label, text, placeholder, testId,
    css, xpath.
    """
    strategies: List[Strategy] = []

    if spec.role:
        role_name = spec.name or spec.label
        if role_name:
            strategies.append(Strategy(
                f"role:{spec.role}",
                lambda page, r=spec.role, n=role_name: page.get_by_role(r, name=literalize(n)),
            ))
        else:
            strategies.append(Strategy(f"role:{spec.role}", lambda page, r=spec.role: page.get_by_role(r)))

    if spec.label:
        strategies.append(Strategy(
            "label-exact",
            lambda page, label=spec.label: page.get_by_label(label, exact=True),
        ))
        strategies.append(Strategy(
            "label-fuzzy",
            lambda page, label=spec.label: page.get_by_label(literalize(label)),
        ))
    if spec.text:
        strategies.append(Strategy("text", lambda page, text=spec.text: page.get_by_text(literalize(text))))
    if spec.placeholder:
        strategies.append(Strategy(
            "placeholder",
            lambda page, placeholder=spec.placeholder: page.get_by_placeholder(literalize(placeholder)),
        ))
    if spec.test_id:
        strategies.append(Strategy("testId", lambda page, test_id=spec.test_id: page.get_by_test_id(test_id)))
    if spec.css:
        strategies.append(Strategy("css", lambda page, css=spec.css: page.locator(css)))
    if spec.xpath:
        xpath = spec.xpath if spec.xpath.startswith("xpath=") else f"xpath={spec.xpath}"
        strategies.append(Strategy("xpath", lambda page, xpath=xpath: page.locator(xpath)))

    return strategies


def fill_strategies(hint: Optional[str], generic: bool = False) -> List[Strategy]:
    text_input = Strategy("text-input", lambda page: page.locator(TEXT_INPUT_SELECTOR))
    if not hint:
        return [text_input]
    arg = text_arg(hint)
    strategies = [
        Strategy("label-exact", lambda page: page.get_by_label(hint, exact=True)),
        Strategy("label-fuzzy", lambda page: page.get_by_label(arg)),
        Strategy("placeholder", lambda page: page.get_by_placeholder(arg)),
        Strategy("textbox-role", lambda page: page.get_by_role("textbox", name=arg)),
    ]
    if generic:
        strategies.append(text_input)
    strategies.append(
        Strategy("attribute-fuzzy", lambda page: page.locator(fuzzy_attribute_selector(hint)))
    )
    return strategies


def click_strategies(hint: Optional[str], generic: bool = False) -> List[Strategy]:
    fallbacks = [
        Strategy("submit", lambda page: page.locator(SUBMIT_SELECTOR)),
        Strategy("button-like", lambda page: page.locator(BUTTON_LIKE_SELECTOR)),
    ]
    if not hint:
        return fallbacks
    arg = text_arg(hint)
    strategies = [
        Strategy("role:button", lambda page: page.get_by_role("button", name=arg)),
        Strategy("role:link", lambda page: page.get_by_role("link", name=arg)),
        Strategy("clickable-text", lambda page: page.locator(CLICKABLE_SELECTOR).filter(has_text=arg)),
        Strategy("text", lambda page: page.get_by_text(arg)),
    ]
    return strategies + fallbacks if generic else strategies


def select_strategies(hint: Optional[str], generic: bool = False) -> List[Strategy]:
    any_select = Strategy("select", lambda page: page.locator("select"))
    if not hint:
        return [any_select]
    arg = text_arg(hint)
    strategies = [
        Strategy("label-exact", lambda page: page.get_by_label(hint, exact=True)),
        Strategy("label-fuzzy", lambda page: page.get_by_label(arg)),
        Strategy("role:combobox", lambda page: page.get_by_role("combobox", name=arg)),
        Strategy("attribute-fuzzy", lambda page: page.locator(fuzzy_attribute_selector(hint, "select"))),
    ]
    return strategies + [any_select] if generic else strategies


def check_strategies(hint: Optional[str], generic: bool = False) -> List[Strategy]:
    if not hint:
        return []
    arg = text_arg(hint)
    return [
        Strategy("role:checkbox", lambda page: page.get_by_role("checkbox", name=arg)),
        Strategy("role:radio", lambda page: page.get_by_role("radio", name=arg)),
        Strategy("label-fuzzy", lambda page: page.get_by_label(arg)),
        Strategy("text", lambda page: page.get_by_text(arg)),
    ]


def read_strategies(hint: Optional[str], generic: bool = False) -> List[Strategy]:
    if not hint:
        return []
    arg = text_arg(hint)
    return [
        Strategy("text-exact", lambda page: page.get_by_text(hint, exact=True)),
        Strategy("text", lambda page: page.get_by_text(arg)),
        Strategy("label-fuzzy", lambda page: page.get_by_label(arg)),
        Strategy("placeholder", lambda page: page.get_by_placeholder(arg)),
    ]


_INTENT_PLANNERS = {
    Intent.FILL: fill_strategies,
    Intent.CLICK: click_strategies,
    Intent.SELECT: select_strategies,
    Intent.CHECK: check_strategies,
    Intent.READ: read_strategies,
}


def plan_strategies(
    target: Optional[Target],
    intent: Intent,
    generic_fallbacks: bool = False,
) -> List[Strategy]:
    """
    Ordered strategies for a target under an intent.

    Plain strings go through the intent heuristics. A TargetSpec uses its
    explicit fields; a spec carrying only ``name`` (no role) falls back to
    the heuristics with the name as hint. A missing target only gets the
    hint-less fallbacks of fill/click/select intents.

    With ``generic_fallbacks`` the heuristics for a hint also include those
    generic controls (any text input, submit and button-like controls, any
    select), so a hint that matches nothing may still act on some element.
    """
    planner = _INTENT_PLANNERS[intent]

    if isinstance(target, TargetSpec):
        if not target.is_resolvable():
            return []
        strategies = explicit_strategies(target)
        if not strategies and target.name:
            strategies = planner(target.name, generic_fallbacks)
        return strategies

    if isinstance(target, str):
        hint = target.strip()
        return planner(hint, generic_fallbacks) if hint else []

    return planner(None)
