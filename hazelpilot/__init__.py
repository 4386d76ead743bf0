"""
HazelPilot - step normalization, target resolution and execution for browser UI tests.
"""

__version__ = "0.1.0"
