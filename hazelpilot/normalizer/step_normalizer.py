"""
Step normalizer: heterogeneous raw steps in, canonical NormalizedStep out.

Three raw shapes are decoded, in this order:

* fielded objects carrying an action key (``step``/``action``/``type``/``op``,
  or ``name`` when it holds a known verb),
* single-verb objects ``{<verb>: <payload>}``,
* free-text sentences (also reached when a fielded object's action is a
  sentence such as ``{"step": "Go to https://...", "expect": "..."}``).

Anything that cannot be classified raises NormalizationDrop internally and
is silently excluded from the normalized sequence.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from hazelpilot.core.types import ActionKind, NormalizedStep, TargetSpec
from hazelpilot.error_handling.exceptions import NormalizationDrop
from hazelpilot.monitoring.logger import get_logger
from hazelpilot.normalizer.aliases import DEFAULT_ALIASES, AliasTable
from hazelpilot.normalizer.natural_language import parse_sentence

logger = get_logger("normalizer")

# verb-object payload strings land in the field that the action consumes
_STRING_PAYLOAD_FIELD = {
    ActionKind.GOTO: "target",
    ActionKind.FILL: "value",
    ActionKind.SELECT: "value",
    ActionKind.PRESS: "key",
    ActionKind.SLEEP: "value",
    ActionKind.ASSERT_TEXT: "pattern",
    ActionKind.ASSERT_URL: "pattern",
    ActionKind.SCREENSHOT: "value",
}


_CSS_SELECTOR = re.compile(r"^(?:[#.][A-Za-z_-]|\[|[a-z][a-z0-9]*[#.\[])")


def selector_target(raw: str) -> Union[str, TargetSpec]:
    """
    Interpret a ``selector``/``locator`` string.

    Explicit ``css=``/``xpath=`` engines and strings that are unmistakably CSS
    (``#id``, ``.class``, ``[attr]``, ``input[name=q]``) or XPath (``//div``)
    become structured locators; anything else stays a visible-text hint.
    """
    if raw.startswith("css="):
        return TargetSpec(css=raw[4:].strip())
    if raw.startswith("xpath="):
        return TargetSpec(xpath=raw[6:].strip())
    if raw.startswith("//") or raw.startswith("(//"):
        return TargetSpec(xpath=raw)
    if _CSS_SELECTOR.match(raw) and " " not in raw.split("[", 1)[0]:
        return TargetSpec(css=raw)
    return raw


def _as_text(value: Any) -> Optional[str]:
    """Coerce scalar field values to strings; containers and None yield None."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    return text if text != "" else None


class StepNormalizer:
    """Decodes raw producer steps into the canonical IR."""

    def __init__(
        self,
        aliases: AliasTable = DEFAULT_ALIASES,
        strict_actions: bool = False,
    ) -> None:
        """
        Initialize the normalizer.

        Args:
            aliases: Synonym and field-precedence configuration
            strict_actions: Drop steps whose verb is unknown instead of
                passing them on for the executor to reject
        """
        self.aliases = aliases
        self.strict_actions = strict_actions

    def normalize(self, raw: Any) -> Optional[NormalizedStep]:
        """Normalize one raw step, or return None if it cannot be classified."""
        try:
            return self._decode(raw)
        except NormalizationDrop as drop:
            logger.debug(
                "Dropping unclassifiable step",
                extra={"reason": drop.message, "raw": drop.details.get("raw")},
            )
            return None

    def normalize_all(self, raws: Iterable[Any]) -> List[NormalizedStep]:
        """Normalize a sequence, preserving order and excluding dropped steps."""
        steps: List[NormalizedStep] = []
        dropped = 0
        for raw in raws:
            step = self.normalize(raw)
            if step is None:
                dropped += 1
                continue
            steps.append(step)

        logger.info(
            f"Normalized {len(steps)} step(s), dropped {dropped}",
            extra={"alias_table_version": self.aliases.version},
        )
        return steps

    # Shape decoding

    def _decode(self, raw: Any) -> NormalizedStep:
        if isinstance(raw, NormalizedStep):
            return raw
        if isinstance(raw, str):
            return self._from_sentence(raw, {})
        if isinstance(raw, Mapping):
            action_key = self._find_action_key(raw)
            if action_key is not None:
                return self._from_fielded(raw, action_key)
            verb_key = self._find_verb_key(raw)
            if verb_key is not None:
                return self._from_verb_object(raw, verb_key)
            raise NormalizationDrop("No recognizable action key or verb", raw=raw)
        raise NormalizationDrop(f"Unsupported raw step type: {type(raw).__name__}", raw=raw)

    def _find_action_key(self, raw: Mapping) -> Optional[str]:
        for key in self.aliases.action_keys:
            if _as_text(raw.get(key)):
                return key
        for key in self.aliases.weak_action_keys:
            if self.aliases.canonical(_as_text(raw.get(key))) is not None:
                return key
        return None

    def _find_verb_key(self, raw: Mapping) -> Optional[str]:
        for key in raw:
            if isinstance(key, str) and self.aliases.canonical(key) is not None:
                return key
        return None

    def _from_fielded(self, raw: Mapping, action_key: str) -> NormalizedStep:
        verb = _as_text(raw[action_key]).strip()
        fields = {key: value for key, value in raw.items() if key != action_key}
        kind = self.aliases.canonical(verb)

        if kind is None and any(ch.isspace() for ch in verb):
            return self._from_sentence(verb, fields)

        return self._build(verb, kind, fields)

    def _from_verb_object(self, raw: Mapping, verb_key: str) -> NormalizedStep:
        kind = self.aliases.canonical(verb_key)
        payload = raw[verb_key]
        fields: Dict[str, Any] = {key: value for key, value in raw.items() if key != verb_key}

        if isinstance(payload, Mapping):
            merged = dict(payload)
            merged.update(fields)
            fields = merged
        elif _as_text(payload) is not None:
            field_name = _STRING_PAYLOAD_FIELD.get(kind, "target")
            fields.setdefault(field_name, _as_text(payload))
        elif payload is not None:
            raise NormalizationDrop(f"Unsupported payload for verb {verb_key!r}", raw=raw)

        return self._build(verb_key, kind, fields)

    def _from_sentence(self, text: str, fields: Mapping) -> NormalizedStep:
        parsed = parse_sentence(text)
        if parsed is None:
            raise NormalizationDrop("No verb recognized in free text", raw=text)

        merged: Dict[str, Any] = {
            "target": parsed.target,
            "value": parsed.value,
            "pattern": parsed.pattern,
            "key": parsed.key,
        }
        # explicit fields from the producer win over words pulled from the sentence
        for key, value in fields.items():
            if key == "expect":
                continue
            if value is not None:
                merged[key] = value
        if parsed.action == ActionKind.ASSERT_URL and "expect" in fields and not merged.get("pattern"):
            merged["pattern"] = fields["expect"]

        return self._build(parsed.action.value, parsed.action, merged)

    # Field promotion

    def _build(
        self,
        verb: str,
        kind: Optional[ActionKind],
        fields: Mapping[str, Any],
    ) -> NormalizedStep:
        if kind is None and self.strict_actions:
            raise NormalizationDrop(f"Unknown verb {verb!r}", raw=dict(fields))

        action = kind.value if kind is not None else verb
        aliases = self.aliases

        target = self._promote_target(fields)
        text_field = _as_text(fields.get("text"))

        value = self._first_text(fields, aliases.value_keys)
        if value is None and kind in aliases.fill_like:
            value = self._first_text(fields, aliases.fill_value_keys)
            text_field = None

        pattern = self._first_text(fields, aliases.pattern_keys)
        expect = _as_text(fields.get("expect"))
        if pattern is None and expect is not None:
            if kind in aliases.url_match:
                pattern = expect
            elif text_field is None:
                text_field = expect

        key = self._first_text(fields, aliases.key_keys)

        if kind == ActionKind.ASSERT_TEXT:
            if pattern is None and text_field is not None:
                pattern = text_field
        elif kind == ActionKind.ASSERT_URL:
            if pattern is None:
                pattern = text_field or (target if isinstance(target, str) else None)
            target = None
        elif kind == ActionKind.GOTO:
            if not isinstance(target, str):
                target = value
                value = None
        elif kind == ActionKind.PRESS:
            if key is None:
                key = value
                value = None
        elif kind == ActionKind.SLEEP:
            if value is None:
                value = self._first_text(fields, aliases.sleep_keys)
        elif text_field is not None and kind not in aliases.fill_like:
            if target is None:
                target = text_field.strip() or None
            elif isinstance(target, TargetSpec) and target.text is None:
                target = target.model_copy(update={"text": text_field})

        return NormalizedStep(
            action=action,
            target=target,
            value=value,
            pattern=pattern,
            key=key,
        )

    def _first_text(self, fields: Mapping[str, Any], keys) -> Optional[str]:
        for key in keys:
            text = _as_text(fields.get(key))
            if text is not None:
                return text
        return None

    def _promote_target(self, fields: Mapping[str, Any]) -> Optional[Union[str, TargetSpec]]:
        for key in self.aliases.target_keys:
            target = self.coerce_target(fields.get(key))
            if target is None:
                continue
            if key in self.aliases.selector_keys and isinstance(target, str):
                return selector_target(target)
            return target

        # fielded steps may carry locator fields inline: {"action": "click", "role": "button", ...}
        inline = {
            key: value for key, value in fields.items()
            if isinstance(key, str) and key != "text" and self.aliases.target_field(key)
        }
        if inline:
            return self.coerce_target(inline)
        return None

    def coerce_target(self, raw: Any) -> Optional[Union[str, TargetSpec]]:
        """Turn a raw target into a stripped string or a resolvable TargetSpec."""
        if isinstance(raw, TargetSpec):
            return raw if raw.is_resolvable() else None
        if isinstance(raw, Mapping):
            spec_fields: Dict[str, str] = {}
            for key, value in raw.items():
                if not isinstance(key, str):
                    continue
                field_name = self.aliases.target_field(key)
                text = _as_text(value)
                if field_name and text is not None and field_name not in spec_fields:
                    spec_fields[field_name] = text.strip()
            spec = TargetSpec(**spec_fields)
            return spec if spec.is_resolvable() else None
        text = _as_text(raw)
        if text is None:
            return None
        return text.strip() or None


def normalize(raw: Any, aliases: AliasTable = DEFAULT_ALIASES) -> Optional[NormalizedStep]:
    """Normalize a single raw step with the default configuration."""
    return StepNormalizer(aliases).normalize(raw)


def normalize_steps(
    raws: Iterable[Any],
    aliases: AliasTable = DEFAULT_ALIASES,
    strict_actions: bool = False,
) -> List[NormalizedStep]:
    """Normalize a raw step sequence, dropping unclassifiable entries."""
    return StepNormalizer(aliases, strict_actions=strict_actions).normalize_all(raws)
