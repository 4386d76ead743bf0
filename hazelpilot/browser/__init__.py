"""
Browser automation module exports.
"""

from hazelpilot.browser.session import BrowserSession

__all__ = [
    "BrowserSession",
]
