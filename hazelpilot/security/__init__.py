"""
Security module exports.
"""

from hazelpilot.security.sanitizer import (
    DataSanitizer,
    RedactionMethod,
    SensitiveDataPattern,
    is_secret_target,
    mask_value,
)

__all__ = [
    "DataSanitizer",
    "RedactionMethod",
    "SensitiveDataPattern",
    "is_secret_target",
    "mask_value",
]
