"""
Model client exports.
"""

from hazelpilot.models.openai_client import OpenAIClient

__all__ = ["OpenAIClient"]
