"""
Issue key extraction.

Issue keys look like ``<prefix>-<number>`` (e.g. ``ABC-42``). The prefix is
the project's literal ``issue_prefix``; it is escaped before being compiled
so prefixes such as ``A.B`` only match themselves.
"""

import re
from functools import lru_cache
from typing import Optional, Pattern


@lru_cache(maxsize=256)
def build_issue_key_pattern(issue_prefix: str) -> Pattern[str]:
    """Compile the case-insensitive key pattern for a prefix."""
    return re.compile(rf"{re.escape(issue_prefix)}-(\d+)", re.IGNORECASE)


def extract_issue_key(issue_prefix: Optional[str], text: Optional[str]) -> Optional[str]:
    """
    Return the first issue key found in ``text``, uppercased.

    >>> extract_issue_key("ABC", "Fixes abc-42 and also ABC-1")
    'ABC-42'
    """
    if not issue_prefix or not text:
        return None

    match = build_issue_key_pattern(issue_prefix).search(text)
    if match is None:
        return None
    return match.group(0).upper()
