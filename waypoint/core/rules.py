"""Detection, action and predictor rules, and the RuleBook that serves them."""

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .models import ActionType


# Built-in action rule that resolves the VCS remote itself instead of shelling out
GIT_REMOTE_RULE_ID = "open-repo"


def split_patterns(triggers: str) -> List[str]:
    """Comma-separated trigger list -> individual patterns (OR semantics)."""
    return [p.strip() for p in triggers.split(",") if p.strip()]


class DetectionRule(BaseModel):
    """Maps directory contents to a technology tag and optional status command."""
    name: str
    trigger_files: str  # e.g. "pom.xml, build.gradle"
    status_command: Optional[str] = None
    enabled: bool = True
    builtin: bool = False

    @property
    def patterns(self) -> List[str]:
        return split_patterns(self.trigger_files)


class ActionRule(BaseModel):
    """Maps directory contents to an offered quick action."""
    id: str = ""
    name: str
    trigger_files: str
    action_type: ActionType = ActionType.SHELL_COMMAND
    command: str
    icon: str = ""
    enabled: bool = True
    builtin: bool = False

    @property
    def patterns(self) -> List[str]:
        return split_patterns(self.trigger_files)

    def model_post_init(self, __context) -> None:
        if not self.id:
            self.id = self.name.strip().lower().replace(" ", "-")


class PredictorRule(BaseModel):
    """Boosts records with matching tags while ``app_id`` is in the foreground."""
    app_id: str
    target_tags: List[str] = Field(default_factory=list)
    boost: int = 0
    enabled: bool = True


DEFAULT_DETECTION_RULES: List[DetectionRule] = [
    DetectionRule(name="Node.js", trigger_files="package.json", status_command="node -v", builtin=True),
    DetectionRule(
        name="Python",
        trigger_files="requirements.txt, Pipfile, pyproject.toml, *.py",
        status_command="python3 --version 2>&1 | awk '{print $2}'",
        builtin=True,
    ),
    DetectionRule(
        name="Java",
        trigger_files="pom.xml, build.gradle, src/main/java",
        status_command="java -version 2>&1 | head -n 1 | awk -F '\"' '{print $2}'",
        builtin=True,
    ),
    DetectionRule(
        name="Swift",
        trigger_files="*.xcodeproj, Package.swift",
        status_command="swift --version | head -n 1 | awk '{print $4}'",
        builtin=True,
    ),
    DetectionRule(name="Rust", trigger_files="Cargo.toml", status_command="rustc --version | awk '{print $2}'", builtin=True),
    DetectionRule(name="Go", trigger_files="go.mod", status_command="go version | awk '{print $3}'", builtin=True),
    DetectionRule(name="Design", trigger_files="*.psd, *.fig, *.sketch", builtin=True),
]

DEFAULT_ACTION_RULES: List[ActionRule] = [
    ActionRule(
        id=GIT_REMOTE_RULE_ID,
        name="Open Repo",
        trigger_files=".git",
        action_type=ActionType.URL,
        command="git remote get-url origin",
        icon="globe",
        builtin=True,
    ),
    ActionRule(name="npm start", trigger_files="package.json", command="npm start", icon="play.circle.fill", builtin=True),
    ActionRule(name="Install Deps", trigger_files="package.json", command="npm install", icon="arrow.down.circle.fill", builtin=True),
    ActionRule(name="Docker Up", trigger_files="docker-compose.yml", command="docker-compose up -d", icon="shippingbox.fill", builtin=True),
    ActionRule(name="mvn install", trigger_files="pom.xml", command="mvn clean install", icon="cup.and.saucer.fill", builtin=True),
    ActionRule(name="cargo run", trigger_files="Cargo.toml", command="cargo run", icon="gearshape.fill", builtin=True),
]

DEFAULT_PREDICTOR_RULES: List[PredictorRule] = [
    PredictorRule(app_id="com.apple.dt.Xcode", target_tags=["Code", "Swift"], boost=500),
    PredictorRule(app_id="com.microsoft.VSCode", target_tags=["Code", "Python", "Java", "Rust", "Go"], boost=500),
    PredictorRule(app_id="com.jetbrains.intellij", target_tags=["Code", "Java", "Kotlin"], boost=500),
    PredictorRule(app_id="dev.zed.Zed", target_tags=["Code", "Rust"], boost=500),
    PredictorRule(app_id="com.googlecode.iterm2", target_tags=["Code", "Python", "Rust"], boost=300),
    PredictorRule(app_id="com.adobe.Photoshop", target_tags=["Design"], boost=500),
    PredictorRule(app_id="com.figma.Desktop", target_tags=["Design"], boost=500),
]


RuleT = TypeVar("RuleT", bound=BaseModel)


class RuleBook:
    """
    Rule provider for the analyzer and the predictor.

    Readers take snapshots (``detection_rules()`` etc. return copies of the
    enabled rules); every mutation bumps ``revision`` so cache owners can
    invalidate wholesale.
    """

    def __init__(
        self,
        detection: Optional[List[DetectionRule]] = None,
        actions: Optional[List[ActionRule]] = None,
        predictors: Optional[List[PredictorRule]] = None
    ):
        self._lock = threading.Lock()
        self._detection = _copy_rules(detection, DEFAULT_DETECTION_RULES)
        self._actions = _copy_rules(actions, DEFAULT_ACTION_RULES)
        self._predictors = _copy_rules(predictors, DEFAULT_PREDICTOR_RULES)
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    # Snapshots

    def detection_rules(self, include_disabled: bool = False) -> List[DetectionRule]:
        with self._lock:
            return [r.model_copy() for r in self._detection if include_disabled or r.enabled]

    def action_rules(self, include_disabled: bool = False) -> List[ActionRule]:
        with self._lock:
            return [r.model_copy() for r in self._actions if include_disabled or r.enabled]

    def predictor_rules(self, include_disabled: bool = False) -> List[PredictorRule]:
        with self._lock:
            return [r.model_copy() for r in self._predictors if include_disabled or r.enabled]

    # Mutations

    def add_detection_rule(self, rule: DetectionRule) -> None:
        with self._lock:
            self._detection.append(rule)
            self._bump()

    def add_action_rule(self, rule: ActionRule) -> None:
        with self._lock:
            self._actions.append(rule)
            self._bump()

    def add_predictor_rule(self, rule: PredictorRule) -> None:
        with self._lock:
            self._predictors.append(rule)
            self._bump()

    def remove_detection_rule(self, name: str) -> bool:
        """Remove a user rule by name. Built-in rules can only be disabled."""
        with self._lock:
            for i, rule in enumerate(self._detection):
                if rule.name == name:
                    if rule.builtin:
                        logger.warning(f"Refusing to delete built-in detection rule: {name}")
                        return False
                    del self._detection[i]
                    self._bump()
                    return True
        return False

    def remove_action_rule(self, rule_id: str) -> bool:
        with self._lock:
            for i, rule in enumerate(self._actions):
                if rule.id == rule_id:
                    if rule.builtin:
                        logger.warning(f"Refusing to delete built-in action rule: {rule_id}")
                        return False
                    del self._actions[i]
                    self._bump()
                    return True
        return False

    def remove_predictor_rule(self, app_id: str) -> int:
        """Remove every predictor rule for ``app_id``; returns how many were removed."""
        with self._lock:
            before = len(self._predictors)
            self._predictors = [r for r in self._predictors if r.app_id != app_id]
            removed = before - len(self._predictors)
            if removed:
                self._bump()
            return removed

    def set_detection_enabled(self, name: str, enabled: bool) -> bool:
        with self._lock:
            for rule in self._detection:
                if rule.name == name:
                    rule.enabled = enabled
                    self._bump()
                    return True
        return False

    def set_action_enabled(self, rule_id: str, enabled: bool) -> bool:
        with self._lock:
            for rule in self._actions:
                if rule.id == rule_id:
                    rule.enabled = enabled
                    self._bump()
                    return True
        return False

    def _bump(self) -> None:
        self._revision += 1
        logger.debug(f"Rule book changed (revision {self._revision})")

    # Persistence

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "detection_rules": [r.model_dump(mode="json") for r in self._detection],
                "action_rules": [r.model_dump(mode="json") for r in self._actions],
                "predictor_rules": [r.model_dump(mode="json") for r in self._predictors],
            }

    def save(self, path: Path) -> None:
        """Write the rules as JSON (atomic replace)."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)
        os.replace(tmp_path, path)

    @classmethod
    def load(cls, path: Path) -> "RuleBook":
        """
        Load rules from JSON.

        Missing sections fall back to the built-in defaults; individual
        malformed rules are skipped so they contribute nothing.
        """
        if not path.exists():
            return cls()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read rules from {path}, using defaults: {e}")
            return cls()

        if not isinstance(data, dict):
            logger.warning(f"Unexpected rules format in {path}, using defaults")
            return cls()

        return cls(
            detection=_parse_rules(data.get("detection_rules"), DetectionRule),
            actions=_parse_rules(data.get("action_rules"), ActionRule),
            predictors=_parse_rules(data.get("predictor_rules"), PredictorRule),
        )


def _parse_rules(raw: Any, model: Type[RuleT]) -> Optional[List[RuleT]]:
    if raw is None:
        return None
    if not isinstance(raw, list):
        logger.warning(f"Expected a list of {model.__name__}, got {type(raw).__name__}")
        return []

    rules = []
    for entry in raw:
        try:
            rules.append(model.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__}: {e.error_count()} error(s)")
    return rules


def _copy_rules(rules: Optional[List[RuleT]], defaults: List[RuleT]) -> List[RuleT]:
    source = rules if rules is not None else defaults
    return [r.model_copy(deep=True) for r in source]
