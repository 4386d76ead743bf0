"""
Step normalization module exports.
"""

from hazelpilot.normalizer.aliases import ALIAS_TABLE_VERSION, DEFAULT_ALIASES, AliasTable
from hazelpilot.normalizer.natural_language import ParsedSentence, parse_sentence
from hazelpilot.normalizer.patterns import describe_pattern, is_regex_literal, literalize, pattern_matches
from hazelpilot.normalizer.step_normalizer import StepNormalizer, normalize, normalize_steps
from hazelpilot.normalizer.step_source import (
    StepSource,
    extract_json,
    load_step_source,
    parse_step_source,
    parse_step_text,
    render_template,
)

__all__ = [
    "ALIAS_TABLE_VERSION",
    "DEFAULT_ALIASES",
    "AliasTable",
    "ParsedSentence",
    "parse_sentence",
    "describe_pattern",
    "is_regex_literal",
    "literalize",
    "pattern_matches",
    "StepNormalizer",
    "normalize",
    "normalize_steps",
    "StepSource",
    "extract_json",
    "load_step_source",
    "parse_step_source",
    "parse_step_text",
    "render_template",
]
