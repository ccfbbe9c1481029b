"""Item store: tracked records, exclusions and the jump history, persisted as JSON."""

import json
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .bus import Event, EventBus
from .core.models import (
    AnalysisResult, JumpRecord, PathRecord, SourceType, alias_for, normalize_path, utcnow
)
from .enrichment import ANALYSIS_COMPLETED


ITEMS_FILE = "waypoints.json"
EXCLUDED_FILE = "excluded_paths.json"
HISTORY_FILE = "jump_history.json"

DEFAULT_AUTOJUMP_FILES = [
    Path.home() / ".local" / "share" / "autojump" / "autojump.txt",
    Path.home() / "Library" / "autojump" / "autojump.txt",
]

_records_adapter = TypeAdapter(List[PathRecord])
_history_adapter = TypeAdapter(List[JumpRecord])


class ItemStore:
    """
    Owns the mutable record list; the ranking core only sees snapshots.

    A record is created on the first visit of an existing directory,
    updated in place on revisits and removed when its path is excluded.
    Excluded paths are never re-created until un-excluded.
    """

    def __init__(self, data_dir: Optional[Path] = None, max_history: int = 1000, autosave: bool = True):
        """
        Initialize the store.

        Args:
            data_dir: Directory holding the JSON files (None keeps everything in memory)
            max_history: Number of jump records kept
            autosave: Write to disk after every mutation
        """
        self.data_dir = Path(data_dir).expanduser() if data_dir else None
        self.max_history = max_history
        self.autosave = autosave and self.data_dir is not None

        self._lock = threading.RLock()
        self._items: List[PathRecord] = []
        self._excluded: Set[str] = set()
        self._history: List[JumpRecord] = []

    # Snapshots

    def snapshot(self) -> List[PathRecord]:
        """Deep copies of all records."""
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items]

    def history(self) -> List[JumpRecord]:
        with self._lock:
            return [jump.model_copy() for jump in self._history]

    def excluded_paths(self) -> Set[str]:
        with self._lock:
            return set(self._excluded)

    def get(self, path: str) -> Optional[PathRecord]:
        clean = canonical_path(path)
        with self._lock:
            for item in self._items:
                if item.path == clean:
                    return item.model_copy(deep=True)
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    # Mutations

    def add_or_update(
        self,
        path: str,
        source: SourceType = SourceType.MANUAL,
        now: Optional[datetime] = None
    ) -> Optional[PathRecord]:
        """
        Count a visit to ``path``.

        Returns the updated record, or None when the path is excluded or
        not an existing directory.
        """
        clean = canonical_path(path)
        if now is None:
            now = utcnow()

        with self._lock:
            if clean in self._excluded:
                logger.debug(f"Ignoring excluded path: {clean}")
                return None
            if not os.path.isdir(clean):
                logger.debug(f"Ignoring non-directory path: {clean}")
                return None

            item = self._find(clean)
            if item is not None:
                item.visit_count += 1
                item.last_visited_at = now
            else:
                item = PathRecord(path=clean, alias=alias_for(clean), last_visited_at=now, source=source)
                self._items.append(item)
                logger.info(f"Tracking new path: {clean}")

            self._changed()
            return item.model_copy(deep=True)

    def record_jump(self, path: str, action_type: str = "Finder", now: Optional[datetime] = None) -> JumpRecord:
        """Append a jump to the history, keeping only the newest ``max_history``."""
        jump = JumpRecord(path=canonical_path(path), timestamp=now or utcnow(), action_type=action_type)
        with self._lock:
            self._history.append(jump)
            overflow = len(self._history) - self.max_history
            if overflow > 0:
                del self._history[:overflow]
            self._changed(history=True)
        return jump

    def visit(
        self,
        path: str,
        action_type: str = "Finder",
        source: SourceType = SourceType.MANUAL,
        now: Optional[datetime] = None
    ) -> Optional[PathRecord]:
        """A confirmed jump: count the visit and log it."""
        record = self.add_or_update(path, source=source, now=now)
        if record is not None:
            self.record_jump(record.path, action_type=action_type, now=now)
        return record

    def exclude(self, path: str) -> int:
        """Exclude ``path``; returns the number of records removed."""
        clean = canonical_path(path)
        with self._lock:
            self._excluded.add(clean)
            before = len(self._items)
            self._items = [item for item in self._items if item.path != clean]
            # Excluded paths leave the history view as well
            self._history = [jump for jump in self._history if normalize_path(jump.path) != clean]
            self._changed()
            self._changed(history=True)
            return before - len(self._items)

    def unexclude(self, path: str) -> bool:
        clean = canonical_path(path)
        with self._lock:
            if clean not in self._excluded:
                return False
            self._excluded.discard(clean)
            self._changed()
            return True

    def toggle_favorite(self, record_id: str) -> Optional[bool]:
        """Flip the favorite flag; returns the new value or None if unknown."""
        with self._lock:
            for item in self._items:
                if item.id == record_id:
                    item.is_favorite = not item.is_favorite
                    self._changed()
                    return item.is_favorite
        return None

    def rename(self, record_id: str, alias: str) -> bool:
        """Set a user alias. Blank aliases are ignored."""
        alias = alias.strip()
        if not alias:
            return False
        with self._lock:
            for item in self._items:
                if item.id == record_id:
                    item.alias = alias
                    self._changed()
                    return True
        return False

    def apply_analysis(self, path: str, result: AnalysisResult) -> bool:
        """Overwrite the analysis fields of the record at ``path``."""
        clean = canonical_path(path)
        with self._lock:
            item = self._find(clean)
            if item is None:
                return False
            item.apply_analysis(result)
            self._changed()
            return True

    async def on_analysis_completed(self, event: Event) -> None:
        """EventBus handler for ``analysis.completed``."""
        self.apply_analysis(event.data["path"], event.data["result"])

    def attach(self, event_bus: EventBus) -> None:
        event_bus.subscribe(ANALYSIS_COMPLETED, self.on_analysis_completed)

    def import_autojump(self, files: Optional[Iterable[Path]] = None) -> int:
        """
        Merge autojump databases (``weight<TAB>path`` lines).

        Known paths have their visit count raised to the weight; unknown
        existing directories are added. Returns the number of changes.
        """
        changes = 0
        for db_path in files if files is not None else DEFAULT_AUTOJUMP_FILES:
            db_path = Path(db_path)
            if not db_path.exists():
                continue
            try:
                lines = db_path.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Autojump import failed for {db_path}: {e}")
                continue

            with self._lock:
                for line in lines:
                    parsed = _parse_autojump_line(line)
                    if parsed is None:
                        continue
                    weight, clean = parsed
                    if clean in self._excluded:
                        continue
                    item = self._find(clean)
                    if item is not None:
                        if item.visit_count < weight:
                            item.visit_count = weight
                            changes += 1
                    elif os.path.isdir(clean):
                        self._items.append(PathRecord(path=clean, visit_count=weight, source=SourceType.MANUAL))
                        changes += 1

        if changes:
            logger.info(f"Imported {changes} autojump entries")
            with self._lock:
                self._changed()
        return changes

    def _find(self, clean: str) -> Optional[PathRecord]:
        for item in self._items:
            if item.path == clean:
                return item
        return None

    def _changed(self, history: bool = False) -> None:
        if not self.autosave:
            return
        if history:
            self.save_history()
        else:
            self.save()

    # Persistence

    def load(self) -> None:
        """Load records, exclusions and history; corrupt files start empty."""
        if self.data_dir is None:
            return
        with self._lock:
            self._items = _read_json(self.data_dir / ITEMS_FILE, _records_adapter, [])
            self._excluded = set(_read_json(self.data_dir / EXCLUDED_FILE, TypeAdapter(List[str]), []))
            self._history = _read_json(self.data_dir / HISTORY_FILE, _history_adapter, [])
        logger.debug(f"Loaded {len(self._items)} records, {len(self._history)} jumps")

    def save(self) -> None:
        if self.data_dir is None:
            return
        with self._lock:
            _write_json(self.data_dir / ITEMS_FILE, _records_adapter.dump_python(self._items, mode="json"))
            _write_json(self.data_dir / EXCLUDED_FILE, sorted(self._excluded))

    def save_history(self) -> None:
        if self.data_dir is None:
            return
        with self._lock:
            _write_json(self.data_dir / HISTORY_FILE, _history_adapter.dump_python(self._history, mode="json"))


def canonical_path(path: str) -> str:
    """Normalized absolute form of ``path``; relative paths resolve against the cwd."""
    clean = normalize_path(path)
    if not clean:
        return clean
    return normalize_path(os.path.abspath(os.path.expanduser(clean)))


def _parse_autojump_line(line: str) -> Optional[Tuple[int, str]]:
    parts = line.split("\t")
    if len(parts) < 2:
        return None
    try:
        weight = int(float(parts[0]))
    except ValueError:
        return None
    clean = canonical_path(parts[1])
    if not clean:
        return None
    return weight, clean


def _read_json(path: Path, adapter: TypeAdapter, default):
    if not path.exists():
        return default
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return adapter.validate_python(json.load(f))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Could not load {path.name}, starting empty: {e}")
        return default


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
    os.replace(tmp_path, path)
