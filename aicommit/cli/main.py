"""CLI Main Entry Point"""

import argparse
import os
import sys
from collections.abc import Mapping
from typing import Any

from aicommit.cli.args import parse_args
from aicommit.cli.commands import display_config, list_models, run_install_completion, set_config
from aicommit.cli.operator import TerminalOperator
from aicommit.config import ConfigError, ConfigManager, SessionConfig
from aicommit.git import GitRepository, RepositoryError
from aicommit.llm import create_backend
from aicommit.output import bold, dim, print_error, print_success, print_warning, Spinner
from aicommit.session import ExitCode, InteractiveSession, SessionOutcome, SessionState
from aicommit.util.logging import configure_logging, get_logger

logger = get_logger(__name__)

_ERROR_LABELS = {
    ConfigError: "Configuration error",
    RepositoryError: "Repository error",
}


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Command-line layer: only flags the user actually passed."""
    overrides: dict[str, Any] = {}
    if args.provider:
        overrides['provider'] = args.provider
    if args.model:
        overrides['model'] = args.model
    if args.all:
        overrides['auto_stage'] = True
    if args.yes:
        overrides['interactive'] = False
    return overrides


def _log_level(args: argparse.Namespace, environ: Mapping[str, str]) -> str:
    if args.verbose:
        return 'DEBUG'
    return environ.get('AI_COMMIT_LOG_LEVEL', 'WARNING')


def _report(outcome: SessionOutcome, config: SessionConfig) -> int:
    """Print how the session ended and return its exit code."""
    if outcome.state == SessionState.COMPLETED:
        if not config.interactive:
            print(outcome.message)
        print_success(f"Committed {bold(outcome.commit_id[:7])}")
        return outcome.exit_code

    if outcome.state == SessionState.ABORTED:
        print_warning("Aborted; nothing was committed")
        return outcome.exit_code

    error = outcome.error
    label = _ERROR_LABELS.get(type(error), "Generation failed")
    kind = getattr(error, 'kind', None)
    print_error(f"{label} ({kind.value}): {error}" if kind else f"{label}: {error}")
    return outcome.exit_code


def run_session(args: argparse.Namespace, config: SessionConfig) -> int:
    try:
        repo = GitRepository()
    except RepositoryError as e:
        print_error(f"Repository error ({e.kind.value}): {e}")
        return ExitCode.REPOSITORY_ERROR

    backend = create_backend(config)
    logger.debug("Using %s with model %s (credential from %s)", backend.name, config.model, config.credential_source)

    session = InteractiveSession(
        config,
        repo,
        backend,
        TerminalOperator(editor=config.editor),
        context=args.context,
        progress=lambda: Spinner(dim(f"Generating with {backend.name} ({config.model})...")),
    )
    try:
        outcome = session.run()
    except KeyboardInterrupt:
        print()
        print_warning("Aborted; nothing was committed")
        return ExitCode.ABORTED

    logger.debug("Session path: %s", " -> ".join(s.value for s in session.history))
    return _report(outcome, config)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = parse_args(argv)
    environ = dict(os.environ)
    configure_logging(_log_level(args, environ))

    if args.install_completion:
        return run_install_completion()

    manager = ConfigManager()
    try:
        if args.command == 'config':
            if args.config_command == 'set':
                return set_config(manager, args.key, args.value, environ, global_config=not args.local)
            return display_config(manager, environ)

        if args.command == 'models':
            config = manager.load(environ, _overrides(args), require_credentials=False)
            return list_models(config)

        config = manager.load(environ, _overrides(args))
    except ConfigError as e:
        print_error(f"Configuration error ({e.kind.value}): {e}")
        return ExitCode.CONFIG_ERROR

    return run_session(args, config)


def run() -> None:
    sys.exit(int(main()))
