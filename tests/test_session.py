"""
Tests for the InteractiveSession state machine.

Run with:
    pytest tests/test_session.py -v
"""

import pytest

from aicommit.config import ConfigError, ConfigErrorKind
from aicommit.git import RepositoryError, RepositoryErrorKind, StatusRecord
from aicommit.llm import BackendError, ErrorKind
from aicommit.session import (
    ExitCode,
    InteractiveSession,
    ReviewDecision,
    SessionOutcome,
    SessionState,
)

from conftest import FakeBackend, FakeRepository, ScriptedOperator

S = SessionState


def staged(path, code='A'):
    return StatusRecord(code, ' ', path)


@pytest.fixture
def make_session(config, invoker):
    def _make(repo, backend, operator, session_config=None, **kwargs):
        return InteractiveSession(session_config or config, repo, backend, operator, invoker=invoker, **kwargs)
    return _make


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestAcceptAndCommit:

    def test_staged_file_is_committed_with_generated_message(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        backend = FakeBackend("feat: add greeting line")
        operator = ScriptedOperator(decisions=[ReviewDecision.accept()])

        outcome = make_session(repo, backend, operator).run()

        assert outcome.state == S.COMPLETED
        assert outcome.exit_code == ExitCode.OK
        assert outcome.message == "feat: add greeting line"
        assert outcome.commit_id == f"{1:040x}"
        assert repo.commits == ["feat: add greeting line"]
        assert repo.committed_paths == [["a.txt"]]
        assert operator.reviewed == ["feat: add greeting line"]

    def test_state_path(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        session = make_session(repo, FakeBackend("feat: add greeting line"),
                               ScriptedOperator(decisions=[ReviewDecision.accept()]))
        session.run()

        assert session.history == [
            S.INSPECTING, S.GENERATING, S.PRESENTING_CANDIDATE, S.COMMITTING, S.COMPLETED,
        ]

    def test_request_built_from_config(self, make_session, make_config):
        repo = FakeRepository([staged('src/app.py', 'M')])
        backend = FakeBackend("fix(app): handle empty input")
        cfg = make_config(temperature=0.4, max_tokens=300, diff_context=5)
        make_session(repo, backend, ScriptedOperator(decisions=[ReviewDecision.accept()]),
                     session_config=cfg, context="users hit a crash").run()

        request = backend.requests[0]
        assert request.provider == "openai"
        assert request.model == "gpt-4o-mini"
        assert request.temperature == 0.4
        assert request.max_output_tokens == 300
        assert request.operator_context == "users hit a crash"
        assert request.diff.context_lines == 5
        assert [e.path for e in request.diff.entries] == ["src/app.py"]
        assert repo.diff_calls[0] == (["src/app.py"], 5)

    def test_summary_shown_before_generation(self, make_session):
        operator = ScriptedOperator(decisions=[ReviewDecision.accept()])
        make_session(FakeRepository([staged('a.txt')]), FakeBackend("feat: add greeting line"), operator).run()
        assert len(operator.summaries) == 1
        assert "+hello from a.txt" in operator.summaries[0].content

    def test_summary_hidden_when_show_diff_off(self, make_session, make_config):
        operator = ScriptedOperator(decisions=[ReviewDecision.accept()])
        make_session(FakeRepository([staged('a.txt')]), FakeBackend("feat: add greeting line"), operator,
                     session_config=make_config(show_diff=False)).run()
        assert operator.summaries == []


# ---------------------------------------------------------------------------
# Generation failures
# ---------------------------------------------------------------------------

class TestGenerationFailure:

    def test_unauthorized_is_tried_once(self, make_session, sleeps):
        repo = FakeRepository([staged('a.txt')])
        backend = FakeBackend(BackendError(ErrorKind.UNAUTHORIZED, "invalid api key"))

        outcome = make_session(repo, backend, ScriptedOperator()).run()

        assert outcome.state == S.FAILED
        assert outcome.exit_code == ExitCode.GENERATION_FAILED
        assert isinstance(outcome.error, BackendError)
        assert outcome.error.kind == ErrorKind.UNAUTHORIZED
        assert "invalid api key" in str(outcome.error)
        assert backend.calls == 1
        assert sleeps == []
        assert repo.commits == []

    def test_transient_failure_then_success(self, make_session, sleeps):
        repo = FakeRepository([staged('a.txt')])
        backend = FakeBackend(BackendError(ErrorKind.TIMEOUT, "slow"), "fix: handle empty input")

        outcome = make_session(repo, backend, ScriptedOperator(decisions=[ReviewDecision.accept()])).run()

        assert outcome.state == S.COMPLETED
        assert backend.calls == 2
        assert sleeps == [1.0]
        # Retries inside one generation are not extra GENERATING entries
        assert outcome.generations == 1

    def test_non_conventional_output_is_malformed(self, make_session):
        backend = FakeBackend("I could not work out what this diff does")
        outcome = make_session(FakeRepository([staged('a.txt')]), backend, ScriptedOperator()).run()

        assert outcome.state == S.FAILED
        assert outcome.error.kind == ErrorKind.MALFORMED_RESPONSE
        assert backend.calls == 1

    def test_plain_message_allowed_without_conventional_commits(self, make_session, make_config):
        repo = FakeRepository([staged('a.txt')])
        backend = FakeBackend("Add greeting line to a.txt")
        outcome = make_session(repo, backend, ScriptedOperator(decisions=[ReviewDecision.accept()]),
                               session_config=make_config(conventional_commits=False)).run()

        assert outcome.state == S.COMPLETED
        assert repo.commits == ["Add greeting line to a.txt"]


# ---------------------------------------------------------------------------
# Review decisions
# ---------------------------------------------------------------------------

class TestReview:

    def test_regenerate_twice_then_abort(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        backend = FakeBackend("feat: add greeting line")
        operator = ScriptedOperator(decisions=[
            ReviewDecision.regenerate(),
            ReviewDecision.regenerate(),
            ReviewDecision.abort(),
        ])
        session = make_session(repo, backend, operator)

        outcome = session.run()

        assert outcome.state == S.ABORTED
        assert outcome.exit_code == ExitCode.ABORTED
        assert session.history.count(S.GENERATING) == 3
        assert outcome.generations == 3
        assert backend.calls == 3
        assert repo.commits == []

    def test_diff_recomputed_for_each_generation(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        operator = ScriptedOperator(decisions=[ReviewDecision.regenerate(), ReviewDecision.accept()])
        make_session(repo, FakeBackend("feat: add greeting line"), operator).run()
        # Two generations, then the check before committing
        assert len(repo.diff_calls) == 3

    def test_regenerate_with_new_context(self, make_session):
        backend = FakeBackend("feat: add greeting line")
        operator = ScriptedOperator(decisions=[
            ReviewDecision.regenerate("greeting is shown on the login page"),
            ReviewDecision.accept(),
        ])
        make_session(FakeRepository([staged('a.txt')]), backend, operator).run()

        assert backend.requests[0].operator_context is None
        assert backend.requests[1].operator_context == "greeting is shown on the login page"

    def test_regenerate_without_text_keeps_context(self, make_session):
        backend = FakeBackend("feat: add greeting line")
        operator = ScriptedOperator(decisions=[ReviewDecision.regenerate(), ReviewDecision.accept()])
        make_session(FakeRepository([staged('a.txt')]), backend, operator, context="login page").run()

        assert [r.operator_context for r in backend.requests] == ["login page", "login page"]

    def test_edit_commits_edited_text(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        operator = ScriptedOperator(decisions=[ReviewDecision.edit("  fix: correct greeting typo\n")])
        outcome = make_session(repo, FakeBackend("feat: add greeting line"), operator).run()

        assert outcome.state == S.COMPLETED
        assert repo.commits == ["fix: correct greeting typo"]

    def test_empty_edit_presents_candidate_again(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        operator = ScriptedOperator(decisions=[ReviewDecision.edit(""), ReviewDecision.accept()])
        session = make_session(repo, FakeBackend("feat: add greeting line"), operator)

        outcome = session.run()

        assert outcome.state == S.COMPLETED
        assert repo.commits == ["feat: add greeting line"]
        assert session.history[2:4] == [S.PRESENTING_CANDIDATE, S.PRESENTING_CANDIDATE]
        assert operator.reviewed == ["feat: add greeting line", "feat: add greeting line"]

    def test_operator_interrupt_aborts(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        outcome = make_session(repo, FakeBackend("feat: add greeting line"), ScriptedOperator()).run()

        assert outcome.state == S.ABORTED
        assert outcome.error is None
        assert repo.commits == []

    def test_non_interactive_commits_first_candidate(self, make_session, make_config):
        repo = FakeRepository([staged('a.txt')])
        operator = ScriptedOperator()
        outcome = make_session(repo, FakeBackend("feat: add greeting line"), operator,
                               session_config=make_config(interactive=False)).run()

        assert outcome.state == S.COMPLETED
        assert operator.reviewed == []
        assert repo.commits == ["feat: add greeting line"]


# ---------------------------------------------------------------------------
# Staging
# ---------------------------------------------------------------------------

class TestStaging:

    @pytest.fixture
    def unstaged_repo(self):
        return FakeRepository([
            StatusRecord(' ', 'M', 'src/app.py'),
            StatusRecord('?', '?', 'src/new.py'),
        ])

    def test_auto_stage_skips_question(self, make_session, make_config, unstaged_repo):
        operator = ScriptedOperator(decisions=[ReviewDecision.accept()])
        session = make_session(unstaged_repo, FakeBackend("feat(app): add new module"), operator,
                               session_config=make_config(auto_stage=True))

        outcome = session.run()

        assert outcome.state == S.COMPLETED
        assert operator.stage_questions == 0
        assert unstaged_repo.staged_calls == [["src/app.py", "src/new.py"]]
        assert S.AWAITING_STAGE_DECISION not in session.history

    def test_operator_agrees_to_stage(self, make_session, unstaged_repo):
        operator = ScriptedOperator(stage_answer=True, decisions=[ReviewDecision.accept()])
        session = make_session(unstaged_repo, FakeBackend("feat(app): add new module"), operator)

        outcome = session.run()

        assert outcome.state == S.COMPLETED
        assert session.history[:3] == [S.INSPECTING, S.AWAITING_STAGE_DECISION, S.GENERATING]
        assert operator.stage_questions == 1

    def test_operator_declines_to_stage(self, make_session, unstaged_repo):
        backend = FakeBackend("feat(app): add new module")
        outcome = make_session(unstaged_repo, backend, ScriptedOperator(stage_answer=False)).run()

        assert outcome.state == S.ABORTED
        assert unstaged_repo.staged_calls == []
        assert backend.calls == 0

    def test_staged_changes_not_restaged(self, make_session, make_config):
        repo = FakeRepository([staged('a.txt'), StatusRecord(' ', 'M', 'b.txt')])
        make_session(repo, FakeBackend("feat: add greeting line"),
                     ScriptedOperator(decisions=[ReviewDecision.accept()]),
                     session_config=make_config(auto_stage=True)).run()

        assert repo.staged_calls == []
        assert repo.diff_calls[0][0] == ["a.txt"]


# ---------------------------------------------------------------------------
# Repository failures
# ---------------------------------------------------------------------------

class TestRepositoryFailures:

    def test_clean_tree(self, make_session):
        backend = FakeBackend("feat: add greeting line")
        outcome = make_session(FakeRepository([]), backend, ScriptedOperator()).run()

        assert outcome.state == S.FAILED
        assert outcome.error.kind == RepositoryErrorKind.NOTHING_STAGED
        assert outcome.exit_code == ExitCode.REPOSITORY_ERROR
        assert backend.calls == 0

    def test_conflicted_paths(self, make_session):
        repo = FakeRepository([staged('a.txt'), StatusRecord('U', 'U', 'b.txt')])
        outcome = make_session(repo, FakeBackend("feat: x"), ScriptedOperator()).run()

        assert outcome.error.kind == RepositoryErrorKind.CONFLICTED
        assert "b.txt" in str(outcome.error)

    def test_detached_head(self, make_session):
        repo = FakeRepository([staged('a.txt')], detached=True)
        outcome = make_session(repo, FakeBackend("feat: x"), ScriptedOperator()).run()
        assert outcome.error.kind == RepositoryErrorKind.DETACHED_HEAD

    def test_staged_set_changed_before_commit(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        operator = ScriptedOperator(
            decisions=[ReviewDecision.accept()],
            on_review=lambda: repo.records.append(staged('b.txt')),
        )
        outcome = make_session(repo, FakeBackend("feat: add greeting line"), operator).run()

        assert outcome.state == S.FAILED
        assert outcome.error.kind == RepositoryErrorKind.COMMIT_REJECTED
        assert outcome.exit_code == ExitCode.COMMIT_FAILED
        assert repo.commits == []

    def test_staged_content_changed_before_commit(self, make_session):
        repo = FakeRepository([staged('a.txt')])
        operator = ScriptedOperator(
            decisions=[ReviewDecision.accept()],
            on_review=lambda: repo.contents.update({'a.txt': 'hello again, restaged'}),
        )
        outcome = make_session(repo, FakeBackend("feat: add greeting line"), operator).run()

        assert outcome.state == S.FAILED
        assert outcome.error.kind == RepositoryErrorKind.COMMIT_REJECTED
        assert "content changed" in str(outcome.error)
        assert repo.commits == []

    def test_commit_rejected_by_hook(self, make_session):
        repo = FakeRepository([staged('a.txt')], reject_commit=True)
        outcome = make_session(repo, FakeBackend("feat: add greeting line"),
                               ScriptedOperator(decisions=[ReviewDecision.accept()])).run()

        assert outcome.state == S.FAILED
        assert outcome.exit_code == ExitCode.COMMIT_FAILED
        assert "pre-commit hook failed" in str(outcome.error)


# ---------------------------------------------------------------------------
# Stepping and outcomes
# ---------------------------------------------------------------------------

class TestStepping:

    def test_step_advances_one_state(self, make_session):
        session = make_session(FakeRepository([staged('a.txt')]), FakeBackend("feat: add greeting line"),
                               ScriptedOperator(decisions=[ReviewDecision.accept()]))
        assert session.state == S.INSPECTING
        assert session.step() == S.GENERATING
        assert session.step() == S.PRESENTING_CANDIDATE
        assert session.candidate == "feat: add greeting line"

    def test_terminal_state_is_final(self, make_session):
        session = make_session(FakeRepository([]), FakeBackend("feat: x"), ScriptedOperator())
        session.run()
        history = list(session.history)

        assert session.step() == S.FAILED
        assert session.history == history


class TestExitCodes:

    @pytest.mark.parametrize("outcome, expected", [
        (SessionOutcome(S.COMPLETED), ExitCode.OK),
        (SessionOutcome(S.ABORTED), ExitCode.ABORTED),
        (SessionOutcome(S.FAILED, error=ConfigError(ConfigErrorKind.UNKNOWN_PROVIDER, "x")), ExitCode.CONFIG_ERROR),
        (SessionOutcome(S.FAILED, error=RepositoryError(RepositoryErrorKind.NOT_A_WORKING_TREE, "x")),
         ExitCode.REPOSITORY_ERROR),
        (SessionOutcome(S.FAILED, error=RepositoryError(RepositoryErrorKind.COMMIT_REJECTED, "x")),
         ExitCode.COMMIT_FAILED),
        (SessionOutcome(S.FAILED, error=BackendError(ErrorKind.TIMEOUT, "x")), ExitCode.GENERATION_FAILED),
    ])
    def test_exit_code(self, outcome, expected):
        assert outcome.exit_code == expected
