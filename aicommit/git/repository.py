"""Git Repository - thin subprocess wrapper around the git executable."""

import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from aicommit.util.logging import get_logger

logger = get_logger(__name__)


class RepositoryErrorKind(str, Enum):
    NOT_A_WORKING_TREE = "not_a_working_tree"
    NOTHING_STAGED = "nothing_staged"
    COMMIT_REJECTED = "commit_rejected"
    CONFLICTED = "conflicted"
    DETACHED_HEAD = "detached_head"
    GIT_FAILED = "git_failed"


class RepositoryError(Exception):
    """Raised when the working tree cannot be inspected or committed to."""

    def __init__(self, kind: RepositoryErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class StatusRecord:
    """One entry of `git status --porcelain=v1`: index code, worktree code, path."""
    index: str
    worktree: str
    path: str
    original_path: str | None = None

    @property
    def is_unmerged(self) -> bool:
        return self.index + self.worktree in UNMERGED_CODES or 'U' in (self.index, self.worktree)

    @property
    def is_untracked(self) -> bool:
        return self.index == '?' and self.worktree == '?'


UNMERGED_CODES = {'DD', 'AU', 'UD', 'UA', 'DU', 'AA', 'UU'}


class VersionControl(ABC):
    """Capabilities the session needs from a version-control backend."""

    @abstractmethod
    def status(self) -> list[StatusRecord]:
        pass

    @abstractmethod
    def is_detached(self) -> bool:
        pass

    @abstractmethod
    def stage(self, paths: list[str]) -> None:
        pass

    @abstractmethod
    def diff(self, paths: list[str], context_lines: int) -> str:
        pass

    @abstractmethod
    def commit(self, message: str) -> str:
        """Record the index as a new commit and return its id."""


def parse_porcelain(output: str) -> list[StatusRecord]:
    """Parse NUL-separated `git status --porcelain=v1 -z` output."""
    records = []
    fields = output.split('\0')
    i = 0
    while i < len(fields):
        entry = fields[i]
        i += 1
        if len(entry) < 4:
            continue
        index, worktree, path = entry[0], entry[1], entry[3:]
        original = None
        # Renames and copies carry the source path in the following field
        if index in 'RC' or worktree in 'RC':
            original = fields[i] if i < len(fields) else None
            i += 1
        records.append(StatusRecord(index=index, worktree=worktree, path=path, original_path=original))
    return records


class GitRepository(VersionControl):
    """Working tree operations backed by the `git` command line."""

    def __init__(self, path: str | Path = "."):
        self.path = Path(path)
        self._verify_git_available()
        self.root = Path(self._verify_in_work_tree())

    def _run_git(self, *args: str, stdin: str | None = None) -> str:
        """Run a git command in the repository and return stdout."""
        logger.debug("git %s", ' '.join(args))
        try:
            result = subprocess.run(
                ['git', *args],
                cwd=self.path,
                input=stdin,
                capture_output=True,
                text=True,
                check=True,
                encoding='utf-8',
                errors='replace'
            )
            return result.stdout
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or '').strip()
            raise RepositoryError(
                RepositoryErrorKind.GIT_FAILED,
                f"Git command failed: git {' '.join(args)}\n{detail}",
            )
        except FileNotFoundError:
            raise RepositoryError(RepositoryErrorKind.GIT_FAILED, "Git is not installed or not in PATH")

    def _verify_git_available(self) -> None:
        self._run_git('--version')

    def _verify_in_work_tree(self) -> str:
        """Fail fast unless the path is inside a non-bare working tree."""
        try:
            inside = self._run_git('rev-parse', '--is-inside-work-tree').strip()
        except RepositoryError:
            inside = 'false'
        if inside != 'true':
            raise RepositoryError(
                RepositoryErrorKind.NOT_A_WORKING_TREE,
                f"Not inside a git working tree: {self.path}",
            )
        return self._run_git('rev-parse', '--show-toplevel').strip()

    def status(self) -> list[StatusRecord]:
        output = self._run_git('status', '--porcelain=v1', '-z', '--untracked-files=all')
        return parse_porcelain(output)

    def is_detached(self) -> bool:
        try:
            self._run_git('symbolic-ref', '-q', 'HEAD')
        except RepositoryError:
            return True
        return False

    def stage(self, paths: list[str]) -> None:
        if not paths:
            return
        self._run_git('add', '-A', '--', *paths)

    def diff(self, paths: list[str], context_lines: int) -> str:
        return self._run_git(
            'diff', '--staged', '--no-color', '--no-ext-diff', '-M',
            f'--unified={context_lines}', '--', *paths,
        )

    def commit(self, message: str) -> str:
        try:
            self._run_git('commit', '--quiet', '-F', '-', stdin=message)
        except RepositoryError as e:
            raise RepositoryError(RepositoryErrorKind.COMMIT_REJECTED, str(e))
        return self._run_git('rev-parse', 'HEAD').strip()
