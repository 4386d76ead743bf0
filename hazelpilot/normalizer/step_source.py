"""
Loading raw steps from files and producer output.

Accepted documents:

* a JSON array of raw steps,
* an object with a ``steps`` array (and optional ``baseUrl``/``variables``),
* a plan ``{"baseUrl", "variables", "entities", "scenarios": [{"name", "steps"}]}``
  whose scenarios are flattened in order,
* LLM output wrapping any of the above in prose or code fences,
* plain text, one free-text step per non-empty line.

``{{name}}`` and ``{{entity.field}}`` placeholders in string values are
rendered from the plan variables and entities before normalization.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from hazelpilot.error_handling.exceptions import StepSourceError
from hazelpilot.monitoring.logger import get_logger

logger = get_logger("normalizer.step_source")

_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*(?P<body>[\s\S]*?)```")
_PLACEHOLDER = re.compile(r"\{\{\s*([\w.\-]+)\s*\}\}")


@dataclass
class StepSource:
    """Raw steps plus the context they were declared with."""

    steps: List[Any] = field(default_factory=list)
    base_url: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)


def extract_json(text: str) -> Any:
    """
    Pull a JSON document out of free-form text.

    Tries the whole text, then fenced code blocks, then the outermost
    ``[...]`` and ``{...}`` spans.

    Raises:
        ValueError: If no JSON document can be found
    """
    stripped = text.strip()
    candidates = [stripped]
    candidates.extend(match.group("body").strip() for match in _CODE_FENCE.finditer(text))
    for opening, closing in (("[", "]"), ("{", "}")):
        start, end = stripped.find(opening), stripped.rfind(closing)
        if start != -1 and end > start:
            candidates.append(stripped[start:end + 1])

    for candidate in candidates:
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ValueError("No JSON document found in text")


def _lookup(path: str, context: Dict[str, Any]) -> Any:
    current: Any = context
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
    return current


def render_template(value: Any, context: Dict[str, Any]) -> Any:
    """Render ``{{path}}`` placeholders recursively; unknown paths become ``""``."""
    if isinstance(value, str):
        def substitute(match: "re.Match[str]") -> str:
            resolved = _lookup(match.group(1), context)
            return "" if resolved is None else str(resolved)

        return _PLACEHOLDER.sub(substitute, value)
    if isinstance(value, list):
        return [render_template(item, context) for item in value]
    if isinstance(value, dict):
        return {key: render_template(item, context) for key, item in value.items()}
    return value


def parse_step_source(document: Any, base_url: Optional[str] = None) -> StepSource:
    """
    Interpret a decoded document as a step source.

    Args:
        document: Decoded JSON (list or dict)
        base_url: Overrides any ``baseUrl`` declared by the document

    Returns:
        StepSource with templated raw steps
    """
    if isinstance(document, list):
        return StepSource(steps=list(document), base_url=base_url)

    if not isinstance(document, dict):
        raise StepSourceError(f"Unsupported step document type: {type(document).__name__}")

    variables = dict(document.get("variables") or {})
    context: Dict[str, Any] = dict(variables)
    entities = document.get("entities") or {}
    if isinstance(entities, dict):
        context.update(entities)
    context.setdefault("entities", entities)
    context.setdefault("project", document.get("project") or {})
    context.setdefault("variables", variables)

    if isinstance(document.get("steps"), list):
        raw_steps = list(document["steps"])
    elif isinstance(document.get("scenarios"), list):
        raw_steps = []
        for scenario in document["scenarios"]:
            if not isinstance(scenario, dict):
                continue
            scenario_steps = scenario.get("steps") or []
            logger.debug(
                "Flattening scenario",
                extra={"scenario": scenario.get("name"), "step_count": len(scenario_steps)},
            )
            raw_steps.extend(scenario_steps)
    else:
        raise StepSourceError("Step document has neither 'steps' nor 'scenarios'")

    declared_base = document.get("baseUrl") or document.get("base_url")
    return StepSource(
        steps=render_template(raw_steps, context),
        base_url=base_url or declared_base,
        variables=variables,
    )


def parse_step_text(text: str, base_url: Optional[str] = None) -> StepSource:
    """Parse step text: JSON (possibly wrapped in prose) or one sentence per line."""
    try:
        document = extract_json(text)
    except ValueError:
        lines = [line.strip() for line in text.splitlines()]
        steps = [line for line in lines if line and not line.startswith("#")]
        return StepSource(steps=steps, base_url=base_url)
    return parse_step_source(document, base_url=base_url)


def load_step_source(path: Union[str, Path], base_url: Optional[str] = None) -> StepSource:
    """Read and parse a step file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StepSourceError(f"Cannot read step file: {e}", source=str(path), cause=e) from e

    source = parse_step_text(text, base_url=base_url)
    logger.info(
        f"Loaded {len(source.steps)} raw step(s) from {path.name}",
        extra={"base_url": source.base_url},
    )
    return source
