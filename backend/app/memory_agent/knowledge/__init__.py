"""
Knowledge Base System

Persistent memory of learned sequences, element mappings
and execution history, plus the site pattern matcher.
"""

from .memory_store import MemoryStore, parse_locator_strategy
from .site_matcher import matches_site, is_dangerous_pattern, MAX_PATTERN_LENGTH

__all__ = [
    "MemoryStore",
    "parse_locator_strategy",
    "matches_site",
    "is_dangerous_pattern",
    "MAX_PATTERN_LENGTH"
]
