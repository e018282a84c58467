"""
Site Matcher

Decides whether a stored site pattern applies to a URL.

Patterns are treated as regular expressions when that is safe and
as plain substrings otherwise:

1. Patterns longer than MAX_PATTERN_LENGTH match by substring on the
   truncated pattern.
2. Patterns that look like catastrophic-backtracking shapes (nested or
   stacked quantifiers) match by substring on the full pattern.
3. Everything else is compiled and searched as a regex.
4. Patterns that fail to compile match by substring.

The dangerous-shape check is a denylist heuristic. It bounds the common
cases; it does not prove every accepted pattern is linear-time.
"""

import logging
import re

logger = logging.getLogger(__name__)

MAX_PATTERN_LENGTH = 200

# Stacked quantifiers (a++, a**, {2,}+, (?:x)+) and a quantified group
# whose body already contains a quantifier, e.g. (a+)+ or (\d{2,})*
DANGEROUS_PATTERN = re.compile(
    r"(\+\+|\*\*|\{\d+,\d*\}\+|\{\d+,\d*\}\*"
    r"|\(\?[^)]*\)\+|\(\?[^)]*\)\*"
    r"|\([^()]*[+*}][^()]*\)[+*{])"
)


def is_dangerous_pattern(pattern: str) -> bool:
    """Check whether a pattern has a known backtracking-prone shape"""
    return DANGEROUS_PATTERN.search(pattern) is not None


def matches_site(pattern: str, url: str) -> bool:
    """
    Test a site pattern against a URL.

    Args:
        pattern: Stored site pattern (regex or plain text)
        url: Candidate URL

    Returns:
        True if the pattern applies to the URL
    """
    if len(pattern) > MAX_PATTERN_LENGTH:
        return pattern[:MAX_PATTERN_LENGTH] in url

    if is_dangerous_pattern(pattern):
        logger.debug(f"Site pattern treated as substring (dangerous shape): {pattern}")
        return pattern in url

    try:
        compiled = re.compile(pattern)
    except re.error:
        logger.debug(f"Site pattern treated as substring (invalid regex): {pattern}")
        return pattern in url

    return compiled.search(url) is not None
