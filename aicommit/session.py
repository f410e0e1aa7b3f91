"""Interactive Session - the inspect / generate / review / commit state machine."""

import contextlib
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import ContextManager

from aicommit.config import ConfigError, SessionConfig
from aicommit.git import (
    ChangeSet,
    ChangeSetInspector,
    DiffSummary,
    RepositoryError,
    RepositoryErrorKind,
    VersionControl,
)
from aicommit.llm import (
    BackendError,
    Failure,
    GenerationBackend,
    GenerationInvoker,
    GenerationRequest,
    validate_commit_message,
)
from aicommit.util.logging import get_logger

logger = get_logger(__name__)


class SessionState(str, Enum):
    INSPECTING = "inspecting"
    AWAITING_STAGE_DECISION = "awaiting_stage_decision"
    GENERATING = "generating"
    PRESENTING_CANDIDATE = "presenting_candidate"
    COMMITTING = "committing"
    ABORTED = "aborted"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.ABORTED, SessionState.COMPLETED, SessionState.FAILED})


class SessionErrorKind(str, Enum):
    OPERATOR_ABORTED = "operator_aborted"


class SessionError(Exception):
    """Raised by an operator that can no longer answer (Ctrl-C, closed stdin)."""

    def __init__(self, kind: SessionErrorKind = SessionErrorKind.OPERATOR_ABORTED, message: str = "Aborted by operator"):
        super().__init__(message)
        self.kind = kind


class ExitCode(IntEnum):
    OK = 0
    ABORTED = 1
    CONFIG_ERROR = 3
    REPOSITORY_ERROR = 4
    GENERATION_FAILED = 5
    COMMIT_FAILED = 6


class ReviewAction(str, Enum):
    ACCEPT = "accept"
    EDIT = "edit"
    REGENERATE = "regenerate"
    ABORT = "abort"


@dataclass(frozen=True)
class ReviewDecision:
    """The operator's answer to a candidate message.

    For EDIT, `text` is the revised message. For REGENERATE, `text` is an
    optional replacement for the operator context.
    """
    action: ReviewAction
    text: str | None = None

    @classmethod
    def accept(cls) -> 'ReviewDecision':
        return cls(ReviewAction.ACCEPT)

    @classmethod
    def edit(cls, text: str) -> 'ReviewDecision':
        return cls(ReviewAction.EDIT, text)

    @classmethod
    def regenerate(cls, context: str | None = None) -> 'ReviewDecision':
        return cls(ReviewAction.REGENERATE, context)

    @classmethod
    def abort(cls) -> 'ReviewDecision':
        return cls(ReviewAction.ABORT)


class Operator(ABC):
    """The human side of the session."""

    @abstractmethod
    def confirm_stage(self, changes: ChangeSet) -> bool:
        """Nothing is staged: may everything modified or untracked be staged?"""

    @abstractmethod
    def review(self, candidate: str) -> ReviewDecision:
        """Accept, edit, regenerate or abort a candidate message."""

    def show_changes(self, summary: DiffSummary) -> None:
        """Called before each generation when show_diff is enabled."""


@dataclass
class SessionOutcome:
    """How a session ended."""
    state: SessionState
    message: str | None = None
    commit_id: str | None = None
    error: Exception | None = None
    generations: int = 0

    @property
    def exit_code(self) -> ExitCode:
        if self.state == SessionState.COMPLETED:
            return ExitCode.OK
        if self.state == SessionState.ABORTED:
            return ExitCode.ABORTED
        if isinstance(self.error, ConfigError):
            return ExitCode.CONFIG_ERROR
        if isinstance(self.error, BackendError):
            return ExitCode.GENERATION_FAILED
        if isinstance(self.error, RepositoryError) and self.error.kind == RepositoryErrorKind.COMMIT_REJECTED:
            return ExitCode.COMMIT_FAILED
        return ExitCode.REPOSITORY_ERROR


class InteractiveSession:
    """Drives one run from inspection to commit or abort.

    The session is an explicit state value plus one handler per state; each
    call to `step` runs the current state's handler and moves to the state it
    returns. All operator interaction goes through the injected `Operator`.
    """

    def __init__(
        self,
        config: SessionConfig,
        repo: VersionControl,
        backend: GenerationBackend,
        operator: Operator,
        context: str | None = None,
        invoker: GenerationInvoker | None = None,
        inspector: ChangeSetInspector | None = None,
        progress: Callable[[], ContextManager] | None = None,
    ):
        self.config = config
        self.repo = repo
        self.backend = backend
        self.operator = operator
        self.context = context
        self.invoker = invoker or GenerationInvoker(timeout=config.timeout)
        self.inspector = inspector or ChangeSetInspector(max_chars=config.diff_budget)
        self.progress = progress or contextlib.nullcontext

        self.state = SessionState.INSPECTING
        self.history: list[SessionState] = [self.state]
        self.changes: ChangeSet | None = None
        self.summary: DiffSummary | None = None
        self.candidate: str | None = None
        self.message: str | None = None
        self.commit_id: str | None = None
        self.error: Exception | None = None
        self.last_failure: Failure | None = None

        self._handlers: dict[SessionState, Callable[[], SessionState]] = {
            SessionState.INSPECTING: self._inspecting,
            SessionState.AWAITING_STAGE_DECISION: self._awaiting_stage_decision,
            SessionState.GENERATING: self._generating,
            SessionState.PRESENTING_CANDIDATE: self._presenting_candidate,
            SessionState.COMMITTING: self._committing,
        }

    @property
    def generations(self) -> int:
        return self.history.count(SessionState.GENERATING)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def step(self) -> SessionState:
        """Run the current state's handler and transition. Terminal states stay put."""
        if self.finished:
            return self.state
        try:
            next_state = self._handlers[self.state]()
        except SessionError as e:
            logger.info("Operator aborted: %s", e)
            next_state = SessionState.ABORTED
        except (ConfigError, RepositoryError, BackendError) as e:
            self.error = e
            next_state = SessionState.FAILED

        logger.debug("%s -> %s", self.state.value, next_state.value)
        self.state = next_state
        self.history.append(next_state)
        return next_state

    def run(self) -> SessionOutcome:
        while not self.finished:
            self.step()
        return SessionOutcome(
            state=self.state,
            message=self.message,
            commit_id=self.commit_id,
            error=self.error,
            generations=self.generations,
        )

    # State handlers

    def _inspecting(self) -> SessionState:
        self.changes = self.inspector.inspect(self.repo)
        if self.changes.staged:
            return SessionState.GENERATING
        if self.changes.is_clean:
            raise RepositoryError(RepositoryErrorKind.NOTHING_STAGED, "No changes to commit")
        if self.config.auto_stage:
            self._stage_unstaged()
            return SessionState.GENERATING
        return SessionState.AWAITING_STAGE_DECISION

    def _awaiting_stage_decision(self) -> SessionState:
        if not self.operator.confirm_stage(self.changes):
            return SessionState.ABORTED
        self._stage_unstaged()
        return SessionState.GENERATING

    def _generating(self) -> SessionState:
        # Recompute from the working tree on every attempt; it may have moved on
        self.changes = self.inspector.inspect(self.repo)
        self.summary = self.inspector.summarize(self.repo, self.changes.staged, self.config.diff_context)
        if self.config.show_diff:
            self.operator.show_changes(self.summary)

        request = GenerationRequest(
            diff=self.summary,
            system_prompt=self.config.system_prompt,
            provider=self.config.provider,
            model=self.config.model,
            temperature=self.config.temperature,
            max_output_tokens=self.config.max_tokens,
            operator_context=self.context,
            conventional_commits=self.config.conventional_commits,
        )
        with self.progress():
            result = self.invoker.invoke(self.backend, request)

        if isinstance(result, Failure):
            self.last_failure = result
            raise BackendError(result.kind, result.detail)

        logger.info("Candidate from %s (%d tokens, attempt %d)", result.model, result.tokens_used, result.attempts)
        self.candidate = result.message
        return SessionState.PRESENTING_CANDIDATE

    def _presenting_candidate(self) -> SessionState:
        if not self.config.interactive:
            self.message = self.candidate
            return SessionState.COMMITTING

        decision = self.operator.review(self.candidate)

        if decision.action == ReviewAction.ACCEPT:
            self.message = self.candidate
            return SessionState.COMMITTING

        if decision.action == ReviewAction.EDIT:
            edited = (decision.text or "").strip()
            if not edited:
                logger.warning("Edited message is empty; keeping the candidate")
                return SessionState.PRESENTING_CANDIDATE
            if self.config.conventional_commits:
                is_valid, reason = validate_commit_message(edited)
                if not is_valid:
                    logger.warning("Edited message is not a conventional commit: %s", reason)
            self.message = edited
            return SessionState.COMMITTING

        if decision.action == ReviewAction.REGENERATE:
            if decision.text:
                self.context = decision.text
            self.candidate = None
            return SessionState.GENERATING

        return SessionState.ABORTED

    def _committing(self) -> SessionState:
        # Never trust the snapshot the message was generated from
        current = self.inspector.inspect(self.repo)
        if current.staged != self.changes.staged:
            raise RepositoryError(
                RepositoryErrorKind.COMMIT_REJECTED,
                "Staged changes were modified after the message was generated; run again",
            )
        fingerprint = self.inspector.fingerprint(self.repo, current.staged, self.summary.context_lines)
        if fingerprint != self.summary.fingerprint:
            raise RepositoryError(
                RepositoryErrorKind.COMMIT_REJECTED,
                "Staged content changed after the message was generated; run again",
            )
        self.commit_id = self.repo.commit(self.message)
        logger.info("Committed %s", self.commit_id)
        return SessionState.COMPLETED

    def _stage_unstaged(self) -> None:
        paths = sorted(
            {e.path for e in self.changes.unstaged}
            | {e.original_path for e in self.changes.unstaged if e.original_path}
        )
        logger.info("Staging %d paths", len(paths))
        self.repo.stage(paths)
        self.changes = self.inspector.inspect(self.repo)
        if not self.changes.staged:
            raise RepositoryError(RepositoryErrorKind.NOTHING_STAGED, "Nothing was staged")
