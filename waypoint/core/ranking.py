"""Ranking pipeline: (query, items, history, view) -> ordered results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .fuzzy import FuzzyMatcher
from .models import JumpRecord, PathRecord, SourceType, alias_for, normalize_path, stable_id, utcnow
from .predictor import ContextPredictor
from .scoring import ScoringWeights, frecency_score


DEFAULT_LIMIT = 20


class View(Enum):
    """Active result view; switched cyclically by the caller."""
    ALL = "all"
    FAVORITES = "favorites"
    HISTORY = "history"

    def next(self) -> "View":
        members = list(View)
        return members[(members.index(self) + 1) % len(members)]


@dataclass
class RankedRecord:
    """A record together with the numbers it was ranked by."""
    record: PathRecord
    score: float
    match_score: Optional[int] = None


@dataclass
class RankingResult:
    """Ordered records plus the default selection."""
    ranked: List[RankedRecord] = field(default_factory=list)

    @property
    def records(self) -> List[PathRecord]:
        return [r.record for r in self.ranked]

    @property
    def selected_index(self) -> Optional[int]:
        return 0 if self.ranked else None

    def __len__(self) -> int:
        return len(self.ranked)


class RankingPipeline:
    """
    Pure ranking over caller-supplied snapshots.

    Empty query: candidates by frecency score (descending), then path.
    Non-empty query: candidates matching alias or path, by
    ``max(2 * alias_score, path_score) + context bonus``, then frecency
    score, then path.
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        predictor: Optional[ContextPredictor] = None,
        default_limit: int = DEFAULT_LIMIT
    ):
        self.weights = weights or ScoringWeights()
        self.predictor = predictor
        self.default_limit = default_limit

    def compute(
        self,
        query: str,
        items: Sequence[PathRecord],
        history: Sequence[JumpRecord],
        view: View = View.ALL,
        now: Optional[datetime] = None
    ) -> RankingResult:
        """
        Produce the ordered result list for the current inputs.

        Args:
            query: Text typed by the user (may be empty)
            items: Snapshot of the item store
            history: Snapshot of the jump history log
            view: Active view selector
            now: Reference time for recency decay and time-of-day bonus

        Returns:
            RankingResult with the ordered records and default selection
        """
        if now is None:
            now = utcnow()

        candidates = self.candidates(items, history, view)

        if not query:
            ranked = [RankedRecord(c, self._score(c, now)) for c in candidates]
            ranked.sort(key=lambda r: (-r.score, r.record.path))
            if view != View.HISTORY:
                ranked = ranked[:self.default_limit]
            return RankingResult(ranked)

        ranked = []
        for candidate in candidates:
            alias_score = FuzzyMatcher.score(query, candidate.alias)
            path_score = FuzzyMatcher.score(query, candidate.path)
            if alias_score == 0 and path_score == 0:
                continue
            match_score = max(alias_score * 2, path_score) + self._bonus(candidate, now)
            ranked.append(RankedRecord(candidate, self._score(candidate, now), match_score))

        ranked.sort(key=lambda r: (-r.match_score, -r.score, r.record.path))
        return RankingResult(ranked)

    def candidates(
        self,
        items: Sequence[PathRecord],
        history: Sequence[JumpRecord],
        view: View
    ) -> List[PathRecord]:
        """Candidate set for ``view``, deduplicated by normalized path."""
        if view == View.HISTORY:
            return history_candidates(items, history)

        if view == View.FAVORITES:
            source = [item for item in items if item.is_favorite]
        else:
            source = list(items)
        return _dedupe(source)

    def _score(self, record: PathRecord, now: datetime) -> float:
        return frecency_score(record, self.weights, predictor=self.predictor, now=now)

    def _bonus(self, record: PathRecord, now: datetime) -> int:
        if self.predictor is None:
            return 0
        return self.predictor.bonus(record, now=now)


def history_candidates(items: Sequence[PathRecord], history: Sequence[JumpRecord]) -> List[PathRecord]:
    """
    Rebuild records from the jump log, most recent first, one per path.

    Paths no longer in the store get a transient record with a
    deterministic id derived from the path.
    """
    by_path: Dict[str, PathRecord] = {}
    for item in items:
        by_path.setdefault(normalize_path(item.path), item)

    ordered: List[Tuple[int, JumpRecord]] = sorted(
        enumerate(history), key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True
    )

    seen = set()
    result: List[PathRecord] = []
    for _, jump in ordered:
        path = normalize_path(jump.path)
        if path in seen:
            continue
        seen.add(path)
        record = by_path.get(path)
        if record is None:
            record = PathRecord(
                id=stable_id(path),
                path=path,
                alias=alias_for(path),
                visit_count=0,
                last_visited_at=jump.timestamp,
                source=SourceType.FILESYSTEM_OBSERVATION,
            )
        result.append(record)
    return result


def _dedupe(records: Sequence[PathRecord]) -> List[PathRecord]:
    seen = set()
    result = []
    for record in records:
        path = normalize_path(record.path)
        if path in seen:
            continue
        seen.add(path)
        result.append(record)
    return result
