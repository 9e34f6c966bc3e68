"""String similarity helpers used by the fuzzy name matchers.

Similarity is the Levenshtein distance normalised by the length of the
longer string, so identical strings score 1.0 and strings with nothing
in common score 0.0.  The edit distance itself comes from ``rapidfuzz``
(single-character insert, delete and substitute, each of unit cost).
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def levenshtein_distance(a: str, b: str) -> int:
    """Return the classic Levenshtein edit distance between two strings."""
    return Levenshtein.distance(a or "", b or "")


def similarity(a: str, b: str) -> float:
    """Return ``(max_len - distance) / max_len`` in the range [0, 1].

    Two empty strings are considered identical and score 1.0.
    """
    a = a or ""
    b = b or ""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return (max_len - levenshtein_distance(a, b)) / max_len
