"""
Roll result parsing.

Extracts the number of successes from the text a dice bot posts.

Pattern Order:
1. "successes: N"
2. "N successes"
3. "total successes: N"
4. "result: N successes"
5. "success" followed (loosely) by a number
6. a number followed (loosely) by "success"
"""

import re
from typing import Iterable, List, Optional

from .events import Embed

SUCCESS_PATTERNS: List[re.Pattern] = [
    re.compile(r"successes?:\s*(\d+)", re.IGNORECASE | re.ASCII),
    re.compile(r"(\d+)\s+successes?", re.IGNORECASE | re.ASCII),
    re.compile(r"total successes?:\s*(\d+)", re.IGNORECASE | re.ASCII),
    re.compile(r"result:\s*(\d+)\s+successes?", re.IGNORECASE | re.ASCII),
    re.compile(r"success.*?(\d+)", re.IGNORECASE | re.ASCII),
    re.compile(r"(\d+).*?success", re.IGNORECASE | re.ASCII),
]


def parse_successes(text: Optional[str]) -> int:
    """Return the success count found in a block of text.

    Patterns are tried in priority order and the first match wins.

    Args:
        text: Message body, embed description or embed field value

    Returns:
        The captured integer, or 0 if no pattern matches
    """
    if not text:
        return 0
    for pattern in SUCCESS_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return 0


def candidate_texts(text: Optional[str], embeds: Iterable[Embed] = ()) -> List[str]:
    """Collect every block of text a roll message carries."""
    candidates = [text] if text else []
    for embed in embeds:
        if embed.description:
            candidates.append(embed.description)
        for field in embed.fields:
            if field.value:
                candidates.append(field.value)
    return candidates


def extract_successes(text: Optional[str], embeds: Iterable[Embed] = ()) -> int:
    """Parse the body and every embed block and return the largest count.

    Dice bots may repeat the result across the body and the embed, and a
    single embed field can under-report, so the maximum is taken rather
    than the first non-zero value.
    """
    return max((parse_successes(c) for c in candidate_texts(text, embeds)), default=0)
