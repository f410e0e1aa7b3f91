"""CLI Argument Parsing"""

import argparse

import argcomplete

from aicommit import __version__
from aicommit.config import FIELD_TYPES
from aicommit.llm import PROVIDER_ALIASES, PROVIDERS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ai-commit',
        description='Generate a commit message for your staged changes and commit it',
        epilog='Example: ai-commit -a -c "fixing the login bug"',
    )

    parser.add_argument('-v', '--version', action='version', version=f'%(prog)s {__version__}')

    # Session options
    parser.add_argument('-a', '--all', action='store_true', help='Stage all modified and untracked files without asking')
    parser.add_argument('-y', '--yes', action='store_true', help='Commit the first generated message without review')
    parser.add_argument('-c', '--context', type=str, metavar='TEXT', help='Add context: -c "fixing the login bug"')

    # LLM options
    parser.add_argument(
        '-p', '--provider', type=str,
        choices=sorted([*PROVIDERS, *PROVIDER_ALIASES]),
        help='Text-generation provider',
    )
    parser.add_argument('-m', '--model', type=str, metavar='MODEL', help='Model name')

    # Output options
    parser.add_argument('--verbose', action='store_true', help='Show debug logging on stderr')
    parser.add_argument('--install-completion', action='store_true', help='Install shell tab completion')

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')

    config_parser = subparsers.add_parser('config', help='Show or change configuration')
    config_sub = config_parser.add_subparsers(dest='config_command', metavar='ACTION')
    config_sub.add_parser('show', help='Show the resolved configuration')
    set_parser = config_sub.add_parser('set', help='Save one setting to ~/.aicommitrc')
    set_parser.add_argument('key', choices=sorted(FIELD_TYPES), help='Setting name')
    set_parser.add_argument('value', help='New value; ${NAME} references are kept as written')
    set_parser.add_argument('--local', action='store_true', help='Write ./.aicommitrc instead of the global file')

    subparsers.add_parser('models', help="List the active provider's models")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    argcomplete.autocomplete(parser)
    return parser.parse_args(argv)
