"""Change Set Inspector - classify working tree state and summarize staged changes."""

import hashlib
from dataclasses import dataclass, field
from enum import Enum

from aicommit.git.diff_processor import DiffProcessor, ProcessorConfig
from aicommit.git.repository import (
    RepositoryError,
    RepositoryErrorKind,
    StatusRecord,
    VersionControl,
)
from aicommit.util.logging import get_logger

logger = get_logger(__name__)


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


_KIND_BY_CODE = {
    'A': ChangeKind.ADDED,
    'C': ChangeKind.ADDED,
    'M': ChangeKind.MODIFIED,
    'T': ChangeKind.MODIFIED,
    'D': ChangeKind.DELETED,
    'R': ChangeKind.RENAMED,
}


@dataclass(frozen=True)
class PathEntry:
    """A single path and how it changed."""
    path: str
    change_kind: ChangeKind = ChangeKind.MODIFIED
    original_path: str | None = None

    @property
    def label(self) -> str:
        if self.change_kind == ChangeKind.RENAMED and self.original_path:
            return f"{self.original_path} -> {self.path}"
        return self.path


@dataclass(frozen=True)
class ChangeSet:
    """Snapshot of staged, modified and untracked paths. A path lives in one set only."""
    staged: frozenset[PathEntry] = field(default_factory=frozenset)
    modified: frozenset[PathEntry] = field(default_factory=frozenset)
    untracked: frozenset[PathEntry] = field(default_factory=frozenset)

    def __post_init__(self):
        staged = {e.path for e in self.staged}
        modified = {e.path for e in self.modified}
        untracked = {e.path for e in self.untracked}
        overlap = (staged & modified) | (staged & untracked) | (modified & untracked)
        if overlap:
            raise ValueError(f"Paths classified more than once: {sorted(overlap)}")

    @property
    def is_clean(self) -> bool:
        return not (self.staged or self.modified or self.untracked)

    @property
    def unstaged(self) -> frozenset[PathEntry]:
        return self.modified | self.untracked

    def staged_paths(self) -> frozenset[str]:
        return frozenset(e.path for e in self.staged)


@dataclass(frozen=True)
class DiffSummary:
    """Bounded rendering of the staged changes; `truncated` flags anything cut.

    `fingerprint` is a digest of the full staged diff the summary was made from.
    """
    content: str
    truncated: bool
    context_lines: int
    entries: tuple[PathEntry, ...] = ()
    filtered_files: int = 0
    fingerprint: str = ""


def classify(records: list[StatusRecord]) -> ChangeSet:
    """Sort porcelain records into staged > modified > untracked, first match wins."""
    staged, modified, untracked = {}, {}, {}
    for record in records:
        if record.is_untracked:
            untracked[record.path] = PathEntry(record.path, ChangeKind.ADDED)
        elif record.index in _KIND_BY_CODE:
            original = record.original_path if record.index == 'R' else None
            staged[record.path] = PathEntry(record.path, _KIND_BY_CODE[record.index], original)
        elif record.worktree in _KIND_BY_CODE:
            modified[record.path] = PathEntry(record.path, _KIND_BY_CODE[record.worktree], record.original_path)

    # `git rm --cached` reports the same path as staged-deleted and untracked
    for path in staged:
        modified.pop(path, None)
        untracked.pop(path, None)
    for path in modified:
        untracked.pop(path, None)

    return ChangeSet(
        staged=frozenset(staged.values()),
        modified=frozenset(modified.values()),
        untracked=frozenset(untracked.values()),
    )


class ChangeSetInspector:
    """Reads repository state; never modifies it."""

    def __init__(self, max_chars: int = 16000):
        self.processor = DiffProcessor(ProcessorConfig(max_chars=max_chars))

    def inspect(self, repo: VersionControl) -> ChangeSet:
        records = repo.status()
        conflicted = sorted(r.path for r in records if r.is_unmerged)
        if conflicted:
            raise RepositoryError(
                RepositoryErrorKind.CONFLICTED,
                "Resolve merge conflicts first: " + ", ".join(conflicted),
            )
        if repo.is_detached():
            raise RepositoryError(
                RepositoryErrorKind.DETACHED_HEAD,
                "HEAD is detached; check out a branch before committing",
            )
        changes = classify(records)
        logger.debug(
            "Change set: %d staged, %d modified, %d untracked",
            len(changes.staged), len(changes.modified), len(changes.untracked),
        )
        return changes

    def summarize(self, repo: VersionControl, staged: frozenset[PathEntry], context_lines: int) -> DiffSummary:
        if not staged:
            raise RepositoryError(RepositoryErrorKind.NOTHING_STAGED, "No staged changes to summarize")

        entries = tuple(sorted(staged, key=lambda e: e.path))
        raw = repo.diff(_diff_paths(entries), context_lines)
        processed = self.processor.process(raw)
        if processed.truncated:
            logger.info("Staged diff truncated to %d characters", self.processor.config.max_chars)
        return DiffSummary(
            content=processed.content,
            truncated=processed.truncated,
            context_lines=context_lines,
            entries=entries,
            filtered_files=processed.filtered_files,
            fingerprint=_digest(raw),
        )

    def fingerprint(self, repo: VersionControl, staged: frozenset[PathEntry], context_lines: int) -> str:
        """Digest of the full staged diff, matching `DiffSummary.fingerprint` while nothing changed."""
        entries = tuple(sorted(staged, key=lambda e: e.path))
        return _digest(repo.diff(_diff_paths(entries), context_lines))


def _diff_paths(entries: tuple[PathEntry, ...]) -> list[str]:
    paths = []
    for entry in entries:
        paths.append(entry.path)
        if entry.original_path:
            paths.append(entry.original_path)
    return paths


def _digest(raw_diff: str) -> str:
    return hashlib.sha256(raw_diff.encode('utf-8')).hexdigest()
