"""Diff Processor - Turn a raw staged diff into bounded, prioritized text."""

from dataclasses import dataclass
from enum import IntEnum
import re

TRUNCATION_MARKER = "\n... [diff truncated: {omitted} more characters]"
MIN_BUDGET = 128

_DIFF_HEADER_RE = re.compile(r'^diff --git "?a/.+? "?b/(.+?)"?$')


class Priority(IntEnum):
    """Inclusion order for per-file diffs; lower goes first."""
    SOURCE = 1
    TEST = 2
    CONFIG = 3
    DOCS = 4
    NOISE = 99


def _rule(priority: Priority, *patterns: str) -> tuple[Priority, re.Pattern]:
    return priority, re.compile('|'.join(f'(?:{p})' for p in patterns), re.IGNORECASE)


# First match wins, so lock files under docs/ are still noise and
# tests/fixtures.json is still a test.
PRIORITY_RULES: tuple[tuple[Priority, re.Pattern], ...] = (
    _rule(
        Priority.NOISE,
        r'(package-lock\.json|yarn\.lock|pnpm-lock\.yaml|poetry\.lock|uv\.lock)$',
        r'(Cargo|Gemfile|composer)\.lock$',
        r'\.min\.(js|css)$', r'\.(map|pyc|class)$', r'\.DS_Store$',
        r'(^|/)(__pycache__|dist|build|node_modules|vendor|\.?venv|\.idea|\.vscode)/',
        r'\.egg-info/',
    ),
    _rule(
        Priority.TEST,
        r'(^|/)(tests?|specs?|__tests__)/', r'(^|/)test_',
        r'[._](test|spec)\.', r'Tests?\.java$',
    ),
    _rule(
        Priority.DOCS,
        r'\.(md|rst|txt)$', r'(^|/)docs/', r'README', r'CHANGELOG', r'LICENSE',
    ),
    _rule(
        Priority.CONFIG,
        r'\.(json|ya?ml|toml|ini|cfg)$', r'\.env', r'\.config\.',
        r'(^|/)(config|settings)/', r'(Makefile|Dockerfile)$', r'docker-compose',
    ),
)


@dataclass
class ProcessedDiff:
    """Budgeted diff text plus bookkeeping about what was left out."""
    content: str
    truncated: bool = False
    included_files: int = 0
    filtered_files: int = 0


@dataclass
class ProcessorConfig:
    max_chars: int = 16000
    max_lines_per_file: int = 200

    def __post_init__(self):
        if self.max_chars < MIN_BUDGET:
            raise ValueError(f"max_chars must be at least {MIN_BUDGET}, got {self.max_chars}")


class DiffProcessor:
    """Orders per-file diffs by relevance, drops noise and caps the total size.

    Within a priority, larger diffs go first; ties break on path so the
    output is stable for the same input.
    """

    def __init__(self, config: ProcessorConfig | None = None, rules=PRIORITY_RULES):
        self.config = config or ProcessorConfig()
        self.rules = rules

    def get_priority(self, path: str) -> Priority:
        for priority, pattern in self.rules:
            if pattern.search(path):
                return priority
        return Priority.SOURCE

    def process(self, raw_diff: str) -> ProcessedDiff:
        per_file = self.split_diff_by_file(raw_diff)
        kept = []
        filtered = 0
        for path, text in per_file.items():
            priority = self.get_priority(path)
            if priority == Priority.NOISE:
                filtered += 1
            else:
                kept.append((priority, -len(text), path, text))
        kept.sort()

        parts = []
        lines_cut = False
        for _, _, path, text in kept:
            capped = self._cap_lines(text, path)
            lines_cut = lines_cut or capped is not text
            parts.append(capped)
        if filtered:
            parts.append(f"[Filtered: {filtered} files (lock files, generated code)]")

        content, over_budget = self._fit_budget('\n'.join(parts))
        return ProcessedDiff(
            content=content,
            truncated=over_budget or lines_cut,
            included_files=len(kept),
            filtered_files=filtered,
        )

    @staticmethod
    def split_diff_by_file(diff: str) -> dict[str, str]:
        """Split a multi-file diff into {path: diff text}, keyed by the new path."""
        files = {}
        path, lines = None, []

        def flush():
            if path:
                files[path] = '\n'.join(lines).rstrip('\n')

        for line in diff.split('\n'):
            if line.startswith('diff --git'):
                flush()
                match = _DIFF_HEADER_RE.match(line)
                path, lines = (match.group(1) if match else None), [line]
            elif path:
                lines.append(line)
        flush()
        return files

    def _cap_lines(self, text: str, path: str) -> str:
        limit = self.config.max_lines_per_file
        lines = text.split('\n')
        if len(lines) <= limit:
            return text
        return '\n'.join(lines[:limit] + [f"... [{len(lines) - limit} more lines truncated from {path}]"])

    def _fit_budget(self, text: str) -> tuple[str, bool]:
        budget = self.config.max_chars
        if len(text) <= budget:
            return text, False
        # Sized for the worst-case marker so the result never exceeds the budget
        keep = budget - len(TRUNCATION_MARKER.format(omitted=len(text)))
        return text[:keep] + TRUNCATION_MARKER.format(omitted=len(text) - keep), True
