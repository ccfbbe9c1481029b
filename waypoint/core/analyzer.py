"""Rule-driven folder analysis with an external-process-backed cache.

For a directory the analyzer derives:
- tags (``Code`` for git repositories plus every matching detection rule)
- technology (first matching detection rule)
- a status summary (first status script with output, else git status,
  else "Modified <relative time>")
- contextual actions from matching action rules

Every external command degrades to "no output" on failure, and
``analyze`` itself never raises.
"""

import os
import re
import shlex
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Protocol, Set

from loguru import logger

from .cache import AnalysisCache
from .models import ActionType, AnalysisResult, ContextAction, normalize_path, utcnow
from .rules import GIT_REMOTE_RULE_ID, ActionRule, DetectionRule, RuleBook
from .runner import CommandRunner, SubprocessRunner, run_shell


CODE_TAG = "Code"
WILDCARD = "*"


class FileSystem(Protocol):
    """Filesystem facility: existence checks, listing and modification times."""

    def exists(self, path: str) -> bool:
        ...

    def is_dir(self, path: str) -> bool:
        ...

    def list_dir(self, path: str) -> Optional[List[str]]:
        ...

    def mtime(self, path: str) -> Optional[datetime]:
        ...


class LocalFileSystem:
    """FileSystem over ``os``; unreadable paths look absent."""

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def list_dir(self, path: str) -> Optional[List[str]]:
        try:
            return os.listdir(path)
        except OSError:
            return None

    def mtime(self, path: str) -> Optional[datetime]:
        try:
            return datetime.fromtimestamp(os.path.getmtime(path)).astimezone()
        except (OSError, OverflowError, ValueError):
            return None


def relative_time(then: datetime, now: datetime) -> str:
    """Short human description of how long ago ``then`` was."""
    seconds = int((now - then).total_seconds())
    if seconds < 60:
        return "just now"
    for unit_seconds, suffix in (
        (365 * 86400, "y"),
        (30 * 86400, "mo"),
        (7 * 86400, "w"),
        (86400, "d"),
        (3600, "h"),
        (60, "m"),
    ):
        if seconds >= unit_seconds:
            return f"{seconds // unit_seconds}{suffix} ago"
    return "just now"


def git_remote_to_https(remote: str) -> Optional[str]:
    """
    Map a git remote to a browsable HTTPS URL.

    git@github.com:user/repo.git      -> https://github.com/user/repo
    ssh://git@host:22/user/repo.git   -> https://host/user/repo
    https://host/user/repo.git        -> https://host/user/repo
    """
    url = remote.strip()
    if not url:
        return None

    if url.startswith("ssh://"):
        rest = url[len("ssh://"):]
        if "@" in rest.split("/", 1)[0]:
            rest = rest.split("@", 1)[1]
        host, _, repo_path = rest.partition("/")
        host = host.split(":", 1)[0]
        url = f"https://{host}/{repo_path}"
    elif url.startswith("git@"):
        host, _, repo_path = url[len("git@"):].partition(":")
        url = f"https://{host}/{repo_path}"

    if url.endswith(".git"):
        url = url[:-4]
    url = url.rstrip("/")
    return url or None


class FolderAnalyzer:
    """
    Analyzes directories against the current rule set, cache first.

    The cache is invalidated wholesale whenever the rule book's revision
    changes or ``clear_cache()`` is called.
    """

    def __init__(
        self,
        rules: RuleBook,
        runner: Optional[CommandRunner] = None,
        filesystem: Optional[FileSystem] = None,
        cache: Optional[AnalysisCache] = None,
        git_executable: str = "git",
        shell: str = "/bin/bash",
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize folder analyzer.

        Args:
            rules: Rule provider for detection and action rules
            runner: Process execution facility (defaults to SubprocessRunner)
            filesystem: Filesystem facility (defaults to LocalFileSystem)
            cache: Analysis cache (a private one is created if omitted)
            git_executable: Version control binary
            shell: Interpreter for rule commands
            clock: Source of "now" for the modified-time fallback
        """
        self.rules = rules
        self.runner = runner or SubprocessRunner(shell=shell)
        self.fs = filesystem or LocalFileSystem()
        self.cache = cache or AnalysisCache()
        self.git_executable = git_executable
        self.shell = shell
        self.clock = clock
        self._seen_revision = rules.revision

    def clear_cache(self) -> None:
        """Drop every cached analysis; the next ``analyze`` re-evaluates."""
        self.cache.clear()
        logger.debug("Analysis cache cleared")

    async def analyze(self, path: str) -> AnalysisResult:
        """
        Analyze ``path``, returning the cached result when present.

        Never raises: failures produce an empty or partial result.
        """
        normalized = normalize_path(path)
        try:
            self._sync_rules()

            cached = self.cache.get(normalized)
            if cached is not None:
                logger.debug(f"Analysis cache hit: {normalized}")
                return cached

            generation = self.cache.generation
            if not self.fs.is_dir(normalized):
                logger.debug(f"Not an accessible directory, skipping analysis: {normalized}")
                return AnalysisResult.empty()

            result = await self._evaluate(normalized)
            self.cache.put(normalized, result, generation=generation)
            return result

        except Exception as e:
            logger.exception(f"Analysis failed for {normalized}: {e}")
            return AnalysisResult.empty()

    def _sync_rules(self) -> None:
        revision = self.rules.revision
        if revision != self._seen_revision:
            logger.info(f"Rules changed (revision {self._seen_revision} -> {revision}), clearing analysis cache")
            self._seen_revision = revision
            self.clear_cache()

    async def _evaluate(self, path: str) -> AnalysisResult:
        listing = set(self.fs.list_dir(path) or [])
        tags: List[str] = []
        technology: Optional[str] = None

        # 1. Version control
        vcs_status = None
        if self.fs.exists(os.path.join(path, ".git")):
            tags.append(CODE_TAG)
            vcs_status = await self._git_status(path)

        # 2. Detection rules, stable by name; at most one status script runs
        script_status = None
        for rule in sorted_detection_rules(self.rules.detection_rules()):
            if not self._matches(rule.patterns, path, listing):
                continue
            if rule.name not in tags:
                tags.append(rule.name)
            if technology is None:
                technology = rule.name
            if script_status is None and rule.status_command:
                script_status = await self._run_status_script(rule, path)

        # 3. Status fallback chain
        status = script_status or vcs_status or self._modified_status(path)

        # 4. Actions
        actions: List[ContextAction] = []
        for rule in self.rules.action_rules():
            if not self._matches(rule.patterns, path, listing):
                continue
            action = await self._build_action(rule, path)
            if action is not None:
                actions.append(action)

        return AnalysisResult(
            tags=tuple(tags),
            technology=technology,
            status_summary=status,
            actions=tuple(actions),
        )

    def _matches(self, patterns: Iterable[str], path: str, listing: Set[str]) -> bool:
        """
        OR over patterns: nested paths by existence, names against the listing.

        Listing matches ignore case; ``*`` is the only wildcard.
        """
        names = {name.casefold() for name in listing}
        for pattern in patterns:
            if "/" in pattern:
                if self.fs.exists(os.path.join(path, pattern)):
                    return True
            elif WILDCARD in pattern:
                regex = wildcard_regex(pattern)
                if any(regex.fullmatch(name) for name in names):
                    return True
            elif pattern.casefold() in names:
                return True
        return False

    async def _run_status_script(self, rule: DetectionRule, path: str) -> Optional[str]:
        output = await run_shell(self.runner, rule.status_command, cwd=path, shell=self.shell)
        if output is None or not output.strip():
            return None
        logger.debug(f"Status from rule {rule.name} for {path}")
        return output.strip()

    async def _git_status(self, path: str) -> Optional[str]:
        output = await self.runner.run(self.git_executable, ["-C", path, "status", "--porcelain"])
        if output is None:
            return None
        changed = [line for line in output.splitlines() if line.strip()]
        if changed:
            return f"{len(changed)} files changed (Git)"
        return "Clean (Git)"

    async def _git_remote(self, path: str) -> Optional[str]:
        output = await self.runner.run(self.git_executable, ["-C", path, "remote", "get-url", "origin"])
        if output is None:
            return None
        return git_remote_to_https(output)

    def _modified_status(self, path: str) -> Optional[str]:
        modified = self.fs.mtime(path)
        if modified is None:
            return None
        return f"Modified {relative_time(modified, self.clock())}"

    async def _build_action(self, rule: ActionRule, path: str) -> Optional[ContextAction]:
        if rule.action_type == ActionType.URL:
            if rule.id == GIT_REMOTE_RULE_ID:
                url = await self._git_remote(path)
            else:
                output = await run_shell(self.runner, rule.command, cwd=path, shell=self.shell)
                url = output.strip() if output else None
            if not url:
                return None
            return ContextAction(type=ActionType.URL, label=rule.name, icon=rule.icon, target=url)

        return ContextAction(
            type=ActionType.SHELL_COMMAND,
            label=rule.name,
            icon=rule.icon,
            target=render_command(rule.command, path),
        )


def sorted_detection_rules(rules: List[DetectionRule]) -> List[DetectionRule]:
    """Evaluation order for detection rules: by name, case-insensitive."""
    return sorted(rules, key=lambda r: (r.name.casefold(), r.name))


def wildcard_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a trigger pattern where ``*`` matches any run of characters."""
    parts = pattern.casefold().split(WILDCARD)
    return re.compile(".*".join(re.escape(part) for part in parts))


def render_command(template: str, path: str) -> str:
    """Substitute ``{path}`` in an action command with the quoted directory."""
    return template.replace("{path}", shlex.quote(path))
