"""Fuzzy equality for organization and bank names.

Receipts rarely print the account holder or bank exactly as it is
stored on the organization's record.  Two matchers tolerate the usual
differences:

* ``OrganizationNameMatcher`` strips legal-entity tokens such as
  ``ltd`` or ``foundation`` and then accepts containment in either
  direction or a Levenshtein similarity above the configured threshold.
  Token removal is plain substring removal, not word-aware:
  ``"georgetown"`` loses its ``org`` as well.
* ``BankNameMatcher`` accepts containment in either direction or a hit
  in the alias table, where one side mentions the short key (``hnb``)
  and the other mentions one of its full-name variants
  (``hatton national bank``).  There is no similarity fallback for banks.

Both matchers take a :class:`MatchingPolicy` so thresholds and tables
come from configuration.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Pattern, Tuple

from donation_verifier.models.schemas import MatchingPolicy
from donation_verifier.utils.similarity import similarity


def _stopword_pattern(stopwords: Iterable[str]) -> Optional[Pattern[str]]:
    tokens = [re.escape(t.lower()) for t in stopwords if t]
    if not tokens:
        return None
    return re.compile("(" + "|".join(tokens) + ")")


class OrganizationNameMatcher:
    """Compare a receipt's recipient name with an organization's account name."""

    def __init__(self, policy: MatchingPolicy) -> None:
        self.threshold = policy.name_similarity_threshold
        self._pattern = _stopword_pattern(policy.org_name_stopwords)

    def clean(self, name: str) -> str:
        """Lower-case, trim and strip legal-entity tokens from ``name``."""
        cleaned = (name or "").lower().strip()
        if self._pattern is not None:
            cleaned = self._pattern.sub("", cleaned)
        return cleaned.strip()

    def match(self, extracted: str, expected: str) -> bool:
        clean_extracted = self.clean(extracted)
        clean_expected = self.clean(expected)
        return (
            clean_expected in clean_extracted
            or clean_extracted in clean_expected
            or similarity(clean_extracted, clean_expected) > self.threshold
        )


class BankNameMatcher:
    """Compare a receipt's bank name with an organization's bank."""

    def __init__(self, policy: MatchingPolicy) -> None:
        self.aliases: Dict[str, Tuple[str, ...]] = {
            key.lower(): tuple(v.lower() for v in variants)
            for key, variants in policy.bank_aliases.items()
        }

    def match(self, extracted: str, expected: str) -> bool:
        extracted_lower = (extracted or "").lower()
        expected_lower = (expected or "").lower()

        if extracted_lower in expected_lower or expected_lower in extracted_lower:
            return True

        for key, variants in self.aliases.items():
            if key in extracted_lower and any(v in expected_lower for v in variants):
                return True
            if key in expected_lower and any(v in extracted_lower for v in variants):
                return True
        return False
