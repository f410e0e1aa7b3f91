"""Terminal Output - colors, the commit message box, change lists and the progress spinner."""

import os
import re
import shutil
import sys
import textwrap
import threading
import time
from collections.abc import Iterable

from aicommit import COMMIT_TYPE_NAMES


class Style:
    """ANSI escape codes."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    MAGENTA = '\033[35m'
    CYAN = '\033[36m'


def stream_supports_color(stream) -> bool:
    """NO_COLOR wins over FORCE_COLOR; otherwise color only goes to a terminal."""
    if os.environ.get('NO_COLOR'):
        return False
    if os.environ.get('FORCE_COLOR'):
        return True
    if not hasattr(stream, 'isatty') or not stream.isatty():
        return False
    if sys.platform == 'win32':
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
        except (AttributeError, OSError):
            return False
    return True


def stream_supports_unicode(stream) -> bool:
    try:
        '✓─⠋'.encode(getattr(stream, 'encoding', None) or 'utf-8')
    except (UnicodeEncodeError, LookupError):
        return False
    return True


COLORS_ENABLED = stream_supports_color(sys.stdout)
ERROR_COLORS_ENABLED = stream_supports_color(sys.stderr)
UNICODE_ENABLED = stream_supports_unicode(sys.stdout)

CHECK = '✓' if UNICODE_ENABLED else '[OK]'
CROSS = '✗' if UNICODE_ENABLED else '[X]'
DOT_ON = '●' if UNICODE_ENABLED else '*'
DOT_OFF = '○' if UNICODE_ENABLED else '-'


def _colorize(text: str, *codes: str, enabled: bool | None = None) -> str:
    if not (COLORS_ENABLED if enabled is None else enabled):
        return text
    return f"{''.join(codes)}{text}{Style.RESET}"


def success(text: str) -> str:
    return _colorize(text, Style.GREEN)


def warning(text: str) -> str:
    return _colorize(text, Style.YELLOW)


def info(text: str) -> str:
    return _colorize(text, Style.CYAN)


def dim(text: str) -> str:
    return _colorize(text, Style.DIM)


def bold(text: str) -> str:
    return _colorize(text, Style.BOLD)


def print_success(message: str) -> None:
    print(f"{success(CHECK)} {message}")


def print_error(message: str) -> None:
    marker = _colorize(CROSS, Style.RED, enabled=ERROR_COLORS_ENABLED)
    print(f"{marker} {_colorize(message, Style.RED, enabled=ERROR_COLORS_ENABLED)}", file=sys.stderr)


def print_warning(message: str) -> None:
    print(_colorize(f"! {message}", Style.YELLOW, enabled=ERROR_COLORS_ENABLED), file=sys.stderr)


# ---------------------------------------------------------------------------
# Commit message box
# ---------------------------------------------------------------------------

COMMIT_TYPE_COLORS = {
    'feat': Style.GREEN,
    'fix': Style.RED,
    'refactor': Style.YELLOW,
    'docs': Style.CYAN,
    'test': Style.MAGENTA,
    'perf': Style.GREEN,
    'chore': Style.DIM,
    'style': Style.DIM,
    'ci': Style.CYAN,
    'build': Style.CYAN,
    'revert': Style.RED,
}

_TYPE_PREFIX_RE = re.compile(rf'^({"|".join(COMMIT_TYPE_NAMES)})(\([^)]*\))?(!?:)')


def colorize_commit_type(message: str) -> str:
    """Highlight the `type(scope)!:` prefix of the subject line."""
    if not COLORS_ENABLED:
        return message
    subject, sep, rest = message.partition('\n')
    match = _TYPE_PREFIX_RE.match(subject)
    if not match:
        return message
    prefix = match.group(0)
    subject = _colorize(prefix, Style.BOLD, COMMIT_TYPE_COLORS[match.group(1)]) + subject[len(prefix):]
    return subject + sep + rest


def _wrap_for_box(text: str, width: int) -> list[str]:
    lines = []
    for line in text.split('\n'):
        if len(line) <= width:
            lines.append(line)
            continue
        # Bullet continuations line up under the bullet text
        indent = '  ' if line.startswith(('- ', '* ')) else ''
        lines.extend(textwrap.wrap(line, width=width, subsequent_indent=indent))
    return lines


def print_box(text: str, title: str | None = None) -> None:
    """Print a commit message framed in a box, wrapping lines wider than the terminal.

    The subject line gets its type prefix colored. A title, when given, is
    set into the top border.
    """
    term_width = shutil.get_terminal_size((80, 24)).columns
    # "│ " and " │" take 4 columns
    max_width = max(int(term_width * 0.8), 60) - 4
    lines = _wrap_for_box(text, max_width)

    label = f' {title} ' if title else ''
    width = max(max((len(line) for line in lines), default=0), len(label))

    if UNICODE_ENABLED:
        horizontal, side, corners = '─', '│', '┌┐└┘'
    else:
        horizontal, side, corners = '-', '|', '++++'

    print(dim(f'{corners[0]}{horizontal}{label}{horizontal * (width - len(label))}{horizontal}{corners[1]}'))
    for i, line in enumerate(lines):
        shown = colorize_commit_type(line) if i == 0 else line
        print(f"{dim(side)} {shown}{' ' * (width - len(line))} {dim(side)}")
    print(dim(f'{corners[2]}{horizontal * (width + 2)}{corners[3]}'))


# ---------------------------------------------------------------------------
# Change lists
# ---------------------------------------------------------------------------

CHANGE_COLORS = {
    'added': Style.GREEN,
    'modified': Style.YELLOW,
    'deleted': Style.RED,
    'renamed': Style.CYAN,
}


def format_change(entry, codes: dict[str, str]) -> str:
    """One `X path` line for a change entry, X being the one-letter change code."""
    kind = entry.change_kind.value
    return f"  {_colorize(codes.get(kind, '?'), CHANGE_COLORS.get(kind, Style.DIM))} {entry.label}"


def print_changes(title: str, entries: Iterable, codes: dict[str, str], limit: int = 10,
                  notes: Iterable[str] = ()) -> None:
    """Print a titled change list, collapsing everything after `limit` entries."""
    entries = list(entries)
    print(bold(title))
    for entry in entries[:limit]:
        print(format_change(entry, codes))
    if len(entries) > limit:
        print(dim(f"  ... and {len(entries) - limit} more files"))
    for note in notes:
        print(dim(f"  {note}"))


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

class Spinner:
    """Animated spinner with an elapsed-seconds counter, drawn on stderr.

    Use as a context manager around a blocking call. Nothing is drawn when
    stderr is not a terminal.
    """
    FRAMES_UNICODE = '⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏'
    FRAMES_ASCII = '-\\|/'
    INTERVAL = 0.08

    def __init__(self, label: str = "", stream=None):
        self.label = label
        self.stream = stream or sys.stderr
        self._thread = None
        self._stop_event = threading.Event()
        self._started = 0.0
        self._frames = self.FRAMES_UNICODE if stream_supports_unicode(self.stream) else self.FRAMES_ASCII

    @property
    def active(self) -> bool:
        return hasattr(self.stream, 'isatty') and self.stream.isatty()

    def _spin(self):
        idx = 0
        while not self._stop_event.is_set():
            elapsed = time.monotonic() - self._started
            frame = self._frames[idx % len(self._frames)]
            self.stream.write(f'\r\033[K{frame} {self.label} {elapsed:.0f}s')
            self.stream.flush()
            idx += 1
            self._stop_event.wait(self.INTERVAL)

    def __enter__(self):
        self._started = time.monotonic()
        if self.active:
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._spin, daemon=True)
            self._thread.start()
        return self

    def __exit__(self, *exc_info):
        self._stop_event.set()
        if self._thread:
            self._thread.join()
            self._thread = None
        if self.active:
            self.stream.write('\r\033[K')
            self.stream.flush()


__all__ = [
    "Style", "COLORS_ENABLED", "ERROR_COLORS_ENABLED", "UNICODE_ENABLED",
    "CHECK", "CROSS", "DOT_ON", "DOT_OFF",
    "stream_supports_color", "stream_supports_unicode",
    "success", "warning", "info", "dim", "bold",
    "print_success", "print_error", "print_warning", "print_box",
    "colorize_commit_type", "COMMIT_TYPE_COLORS",
    "CHANGE_COLORS", "format_change", "print_changes", "Spinner",
]
