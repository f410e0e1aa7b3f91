"""Git Operations Package"""

from aicommit.git.repository import (
    GitRepository,
    RepositoryError,
    RepositoryErrorKind,
    StatusRecord,
    VersionControl,
    parse_porcelain,
)
from aicommit.git.inspector import ChangeKind, ChangeSet, ChangeSetInspector, DiffSummary, PathEntry, classify
from aicommit.git.diff_processor import DiffProcessor, ProcessedDiff, ProcessorConfig, Priority

__all__ = [
    "GitRepository",
    "RepositoryError",
    "RepositoryErrorKind",
    "StatusRecord",
    "VersionControl",
    "parse_porcelain",
    "ChangeKind",
    "ChangeSet",
    "ChangeSetInspector",
    "DiffSummary",
    "PathEntry",
    "classify",
    "DiffProcessor",
    "ProcessedDiff",
    "ProcessorConfig",
    "Priority",
]
