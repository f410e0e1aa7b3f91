"""Terminal Operator - answers the session's questions at an interactive prompt."""

from collections.abc import Callable

from aicommit.cli.utils import edit_message
from aicommit.git import ChangeSet, DiffSummary
from aicommit.output import dim, info, print_box, print_changes, warning
from aicommit.prompts.builder import CHANGE_CODES
from aicommit.session import Operator, ReviewDecision, SessionError


class TerminalOperator(Operator):
    """Reads answers from stdin; Ctrl-C or a closed stdin aborts the session."""

    REVIEW_PROMPT = "(a)ccept, (e)dit, (r)egenerate, (q)uit: "

    def __init__(
        self,
        editor: str | None = None,
        max_file_display: int = 10,
        input_fn: Callable[[str], str] = input,
        edit_fn: Callable[[str, str | None], str | None] = edit_message,
    ):
        self.editor = editor
        self.max_file_display = max_file_display
        self._input = input_fn
        self._edit = edit_fn

    def _ask(self, prompt: str) -> str:
        try:
            return self._input(prompt).strip()
        except (KeyboardInterrupt, EOFError):
            print()
            raise SessionError()

    def confirm_stage(self, changes: ChangeSet) -> bool:
        entries = sorted(changes.unstaged, key=lambda e: e.path)
        print_changes("Nothing is staged. Unstaged changes:", entries, CHANGE_CODES, self.max_file_display)
        answer = self._ask(f"\nStage all {len(entries)} files? [y/N]: ").lower()
        return answer in ('y', 'yes')

    def show_changes(self, summary: DiffSummary) -> None:
        notes = []
        if summary.filtered_files:
            notes.append(f"{summary.filtered_files} noise files filtered")
        if summary.truncated:
            notes.append("diff truncated to fit the size budget")
        print_changes("Staged changes:", summary.entries, CHANGE_CODES, self.max_file_display, notes)

    def review(self, candidate: str) -> ReviewDecision:
        print()
        print_box(candidate, title="commit message")
        while True:
            action = self._ask(f"\n{dim(self.REVIEW_PROMPT)}").lower()
            if action in ('', 'a', 'accept'):
                return ReviewDecision.accept()
            if action in ('e', 'edit'):
                return ReviewDecision.edit(self._edit(candidate, self.editor) or "")
            if action in ('r', 'regenerate'):
                hint = self._ask(dim("  Context hint (Enter to keep the current one): "))
                print(f"\n{info('Regenerating...')}")
                return ReviewDecision.regenerate(hint or None)
            if action in ('q', 'quit'):
                return ReviewDecision.abort()
            print(warning("Enter a, e, r or q"))
