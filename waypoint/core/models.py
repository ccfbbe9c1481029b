"""Records, history entries and analysis results shared by the ranking core."""

import hashlib
import os
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple, TYPE_CHECKING

import ulid
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .predictor import ContextPredictor
    from .scoring import ScoringWeights


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_path(path: str) -> str:
    """Trim whitespace and trailing separators; the root stays '/'."""
    clean = path.strip()
    while len(clean) > 1 and clean.endswith("/"):
        clean = clean[:-1]
    return clean


def alias_for(path: str) -> str:
    """Default display name: the last path component."""
    normalized = normalize_path(path)
    name = os.path.basename(normalized)
    return name or normalized


def stable_id(path: str) -> str:
    """Deterministic identifier for records synthesized from a path."""
    return hashlib.sha256(normalize_path(path).encode("utf-8")).hexdigest()[:32]


class SourceType(str, Enum):
    """Where a record came from. Provenance only, never scored."""
    MANUAL = "manual"
    FILESYSTEM_OBSERVATION = "filesystem_observation"
    CLIPBOARD_DETECTED = "clipboard_detected"


class ActionType(str, Enum):
    """Kind of contextual action offered for a folder."""
    SHELL_COMMAND = "shell_command"
    URL = "url"


class ContextAction(BaseModel):
    """A quick action derived from a matching action rule."""
    model_config = ConfigDict(frozen=True)

    type: ActionType
    label: str
    icon: str = ""
    target: Optional[str] = None  # command line or URL


class AnalysisResult(BaseModel):
    """Derived (tags, technology, status, actions) tuple for one directory."""
    model_config = ConfigDict(frozen=True)

    tags: Tuple[str, ...] = ()
    technology: Optional[str] = None
    status_summary: Optional[str] = None
    actions: Tuple[ContextAction, ...] = ()

    @classmethod
    def empty(cls) -> "AnalysisResult":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.tags or self.technology or self.status_summary or self.actions)


class PathRecord(BaseModel):
    """One tracked directory."""

    id: str = Field(default_factory=lambda: str(ulid.ULID()))
    path: str
    alias: str = ""
    visit_count: int = 1
    last_visited_at: datetime = Field(default_factory=utcnow)
    is_favorite: bool = False
    source: SourceType = SourceType.MANUAL

    # Analysis fields, overwritten wholesale on every refresh
    tags: List[str] = Field(default_factory=list)
    technology: Optional[str] = None
    status_summary: Optional[str] = None
    actions: List[ContextAction] = Field(default_factory=list)

    def model_post_init(self, __context) -> None:
        self.path = normalize_path(self.path)
        if not self.alias:
            self.alias = alias_for(self.path)

    def score(
        self,
        weights: "ScoringWeights",
        predictor: Optional["ContextPredictor"] = None,
        now: Optional[datetime] = None
    ) -> float:
        """Frecency score of this record; see :func:`waypoint.core.scoring.frecency_score`."""
        from .scoring import frecency_score
        return frecency_score(self, weights, predictor=predictor, now=now)

    def apply_analysis(self, result: AnalysisResult) -> None:
        self.tags = list(result.tags)
        self.technology = result.technology
        self.status_summary = result.status_summary
        self.actions = list(result.actions)


class JumpRecord(BaseModel):
    """One confirmed jump, as kept in the history log."""
    path: str
    timestamp: datetime = Field(default_factory=utcnow)
    action_type: str = "Finder"
