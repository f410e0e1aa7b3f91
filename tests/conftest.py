"""Shared test doubles: an in-memory repository, a scripted operator and a fake backend."""

import dataclasses
import re

import pytest

from aicommit.config import SessionConfig
from aicommit.git import RepositoryError, RepositoryErrorKind, StatusRecord, VersionControl
from aicommit.llm import PROVIDERS, Completion, GenerationBackend, GenerationInvoker
from aicommit.session import Operator, SessionError

ANSI_RE = re.compile(r'\033\[[0-9;]*m')

_STAGED_CODE = {'?': 'A', 'M': 'M', 'D': 'D', 'T': 'T'}


class FakeRepository(VersionControl):
    """Porcelain records held in memory. Staging moves worktree codes into the index."""

    def __init__(self, records=(), detached=False, reject_commit=False, contents=None):
        self.records = list(records)
        self.detached = detached
        self.reject_commit = reject_commit
        self.staged_calls: list[list[str]] = []
        self.diff_calls: list[tuple[list[str], int]] = []
        self.commits: list[str] = []
        self.committed_paths: list[list[str]] = []
        self.contents: dict[str, str] = dict(contents or {})

    def status(self):
        return list(self.records)

    def is_detached(self):
        return self.detached

    def stage(self, paths):
        self.staged_calls.append(list(paths))
        updated = []
        for record in self.records:
            if record.path in paths and record.worktree in _STAGED_CODE:
                record = StatusRecord(_STAGED_CODE[record.worktree], ' ', record.path)
            updated.append(record)
        self.records = updated

    def diff(self, paths, context_lines):
        self.diff_calls.append((list(paths), context_lines))
        hunks = []
        for p in paths:
            line = self.contents.get(p, f"hello from {p}")
            hunks.append(f"diff --git a/{p} b/{p}\n--- a/{p}\n+++ b/{p}\n@@ -0,0 +1 @@\n+{line}")
        return "\n".join(hunks)

    def commit(self, message):
        if self.reject_commit:
            raise RepositoryError(RepositoryErrorKind.COMMIT_REJECTED, "pre-commit hook failed")
        self.commits.append(message)
        self.committed_paths.append(sorted(r.path for r in self.records if r.index not in (' ', '?')))
        self.records = [r for r in self.records if r.index in (' ', '?')]
        return f"{len(self.commits):040x}"


class ScriptedOperator(Operator):
    """Answers from a fixed script; running out of answers aborts like Ctrl-C."""

    def __init__(self, stage_answer=False, decisions=(), on_review=None):
        self.stage_answer = stage_answer
        self.decisions = list(decisions)
        self.on_review = on_review
        self.stage_questions = 0
        self.reviewed: list[str] = []
        self.summaries = []

    def confirm_stage(self, changes):
        self.stage_questions += 1
        return self.stage_answer

    def review(self, candidate):
        self.reviewed.append(candidate)
        if self.on_review:
            self.on_review()
        if not self.decisions:
            raise SessionError()
        return self.decisions.pop(0)

    def show_changes(self, summary):
        self.summaries.append(summary)


class FakeBackend(GenerationBackend):
    """Replays scripted outputs: strings become completions, exceptions are raised."""

    def __init__(self, *outputs, provider="openai"):
        super().__init__(PROVIDERS[provider], api_key="test-key")
        self.outputs = list(outputs)
        self.requests = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def _complete(self, request, timeout):
        self.requests.append(request)
        output = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        if isinstance(output, BaseException):
            raise output
        if isinstance(output, Completion):
            return output
        return Completion(text=output, tokens_used=42)


@pytest.fixture
def config():
    return SessionConfig(provider="openai", model="gpt-4o-mini", api_key="test-key")


@pytest.fixture
def make_config(config):
    def _make(**changes):
        return dataclasses.replace(config, **changes)
    return _make


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def invoker(sleeps):
    return GenerationInvoker(timeout=5.0, sleep=sleeps.append)


@pytest.fixture
def strip_ansi():
    """Return a function that removes ANSI escape codes."""
    def _strip(text: str) -> str:
        return ANSI_RE.sub('', text)
    return _strip
