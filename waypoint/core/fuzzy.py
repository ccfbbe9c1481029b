"""Fuzzy string matching used to filter and rank records against a query."""

import math


class FuzzyMatcher:
    """
    Pure, stateless query-to-candidate scoring.

    Match classes, best first:
        exact      100
        prefix      90
        substring   60
        subsequence 10 + density bonus (shorter candidates score higher)
        none         0

    An empty query matches everything with the lowest positive score (1),
    so empty-query listings fall back to frecency ordering.
    """

    EXACT = 100
    PREFIX = 90
    SUBSTRING = 60
    SUBSEQUENCE_BASE = 10
    DENSITY_RANGE = 20
    EMPTY_QUERY = 1
    NO_MATCH = 0

    @staticmethod
    def score(query: str, text: str) -> int:
        """Return a match quality in [0, 100] for ``query`` against ``text``."""
        if not query:
            return FuzzyMatcher.EMPTY_QUERY

        q = query.casefold()
        t = text.casefold()

        if q == t:
            return FuzzyMatcher.EXACT
        if t.startswith(q):
            return FuzzyMatcher.PREFIX
        if q in t:
            return FuzzyMatcher.SUBSTRING
        if not FuzzyMatcher.is_subsequence(q, t):
            return FuzzyMatcher.NO_MATCH

        # Clamped to keep subsequence scores below 30
        density = len(q) / len(t)
        bonus = min(FuzzyMatcher.DENSITY_RANGE - 1, _round_half_up(density * FuzzyMatcher.DENSITY_RANGE))
        return FuzzyMatcher.SUBSEQUENCE_BASE + bonus

    @staticmethod
    def is_subsequence(query: str, text: str) -> bool:
        """True when every character of ``query`` appears in ``text`` in order."""
        if not query:
            return True
        remaining = iter(text)
        return all(ch in remaining for ch in query)

    @staticmethod
    def matches(query: str, text: str) -> bool:
        return FuzzyMatcher.score(query, text) > FuzzyMatcher.NO_MATCH


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
