"""
Redaction of secrets from run logs.

Steps routinely type credentials into login forms, and tie-breaker calls
carry API keys; neither may end up verbatim in ``run.log`` or the console.
"""

import hashlib
import logging
import re
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Pattern

logger = logging.getLogger(__name__)

SECRET_TARGET_PATTERN = re.compile(
    r"pass(word|wd|code|phrase)?|pwd|secret|token|otp|pin\b|api[_-]?key|cvv|cvc",
    re.IGNORECASE,
)


class RedactionMethod(Enum):
    """Methods for redacting sensitive data."""
    MASK = auto()          # Replace with asterisks
    HASH = auto()          # Replace with hash
    PLACEHOLDER = auto()   # Replace with placeholder text


@dataclass
class SensitiveDataPattern:
    """Pattern for identifying sensitive data."""

    name: str
    pattern: Pattern[str]
    redaction_method: RedactionMethod = RedactionMethod.PLACEHOLDER
    placeholder: str = "[REDACTED]"
    group: int = 0
    enabled: bool = True

    def matches(self, text: str) -> List[re.Match]:
        """Find all matches in text."""
        if not self.enabled:
            return []
        return list(self.pattern.finditer(text))


class DataSanitizer:
    """Sanitizer applied to log messages and structured log payloads."""

    SECRET_KEYS = ("password", "passwd", "api_key", "apikey", "token", "secret",
                   "authorization", "x-api-key")

    def __init__(self):
        """Initialize with default patterns."""
        self.patterns: List[SensitiveDataPattern] = [
            SensitiveDataPattern(
                name="openai_key",
                pattern=re.compile(r'\bsk-[A-Za-z0-9_-]{16,}\b'),
            ),
            SensitiveDataPattern(
                name="bearer_token",
                pattern=re.compile(r'Bearer\s+[A-Za-z0-9\-._~+/]+=*', re.IGNORECASE),
                placeholder="Bearer [REDACTED]",
            ),
            SensitiveDataPattern(
                name="api_key_prefix",
                pattern=re.compile(
                    r'(?:api[_-]?key|apikey|access[_-]?token)\s*[:=]\s*["\']?([^"\'\s,}]+)',
                    re.IGNORECASE,
                ),
                group=1,
            ),
            SensitiveDataPattern(
                name="password_field",
                pattern=re.compile(
                    r'(?:password|passwd|pwd)\s*[:=]\s*["\']?([^"\'\s,}]+)',
                    re.IGNORECASE,
                ),
                placeholder="[PASSWORD]",
                group=1,
            ),
            SensitiveDataPattern(
                name="jwt_token",
                pattern=re.compile(r'eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+'),
                redaction_method=RedactionMethod.HASH,
            ),
        ]

    def add_pattern(self, pattern: SensitiveDataPattern) -> None:
        """Add a custom pattern."""
        self.patterns.append(pattern)

    def sanitize_string(self, text: str) -> str:
        """Redact every enabled pattern in ``text``."""
        if not text:
            return text

        spans = []
        for pattern in self.patterns:
            for match in pattern.matches(text):
                spans.append((match.start(pattern.group), match.end(pattern.group), pattern))

        # Apply from the end so earlier offsets stay valid
        spans.sort(key=lambda span: span[0], reverse=True)
        result = text
        last_start = len(text) + 1
        for start, end, pattern in spans:
            if end > last_start:
                continue
            result = result[:start] + self._replacement(result[start:end], pattern) + result[end:]
            last_start = start
        return result

    def _replacement(self, matched_text: str, pattern: SensitiveDataPattern) -> str:
        if pattern.redaction_method == RedactionMethod.MASK:
            return "*" * len(matched_text)
        if pattern.redaction_method == RedactionMethod.HASH:
            hash_val = hashlib.sha256(matched_text.encode()).hexdigest()[:8]
            return f"[HASH:{hash_val}]"
        return pattern.placeholder

    def sanitize_dict(self, data: Dict[str, Any], max_depth: int = 10) -> Dict[str, Any]:
        """Sanitize a dictionary recursively, blanking values under secret keys."""
        if max_depth <= 0:
            logger.warning("Max recursion depth reached in sanitize_dict")
            return data

        result = deepcopy(data)
        for key, value in result.items():
            if isinstance(value, str):
                if any(secret in str(key).lower() for secret in self.SECRET_KEYS):
                    result[key] = "[REDACTED]" if value else value
                else:
                    result[key] = self.sanitize_string(value)
            elif isinstance(value, dict):
                result[key] = self.sanitize_dict(value, max_depth - 1)
            elif isinstance(value, list):
                result[key] = [
                    self.sanitize_string(item) if isinstance(item, str) else item
                    for item in value
                ]
        return result

    def sanitize_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """Sanitize a log record in place and return it."""
        record.msg = self.sanitize_string(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = self.sanitize_dict(record.args)
            else:
                record.args = tuple(
                    self.sanitize_string(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )
        return record


def is_secret_target(hint: Optional[str]) -> bool:
    """True when a target description looks like a credential field."""
    return bool(hint) and bool(SECRET_TARGET_PATTERN.search(hint))


def mask_value(value: Optional[str]) -> str:
    """Mask a typed value entirely, keeping only its length visible."""
    if not value:
        return ""
    return "*" * min(len(value), 8)
