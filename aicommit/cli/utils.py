"""CLI Utility Functions"""

import os
import shlex
import subprocess
import sys
import tempfile

from aicommit.util.logging import get_logger

logger = get_logger(__name__)


def resolve_editor(configured: str | None = None) -> list[str]:
    """Editor command: configured value, then $VISUAL, then $EDITOR, then a platform default."""
    editor = configured or os.environ.get('VISUAL') or os.environ.get('EDITOR')
    if not editor:
        editor = 'notepad' if sys.platform == 'win32' else 'vi'
    return shlex.split(editor, posix=sys.platform != 'win32')


def edit_message(message: str, editor: str | None = None) -> str | None:
    """Open message in the user's editor. Returns edited text or None on failure."""
    tmp = tempfile.NamedTemporaryFile(mode='w', suffix='.gitcommit', delete=False, encoding='utf-8')
    try:
        tmp.write(message)
        tmp.close()
        subprocess.run([*resolve_editor(editor), tmp.name], check=True)
        with open(tmp.name, 'r', encoding='utf-8') as f:
            lines = [line for line in f.read().split('\n') if not line.startswith('#')]
        edited = '\n'.join(lines).strip()
        return edited if edited else None
    except (subprocess.CalledProcessError, OSError) as e:
        logger.warning("Editor failed: %s", e)
        return None
    finally:
        try:
            os.unlink(tmp.name)
        except OSError as e:
            logger.warning("Could not delete temp file %s: %s", tmp.name, e)
