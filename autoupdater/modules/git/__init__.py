"""Git gateway module: clone, fetch, compare revisions and pull."""

from autoupdater.modules.git.models import LocalTreeOutcome, RevisionPair
from autoupdater.modules.git.service import (
    GitCommandError,
    GitGateway,
    MissingRepositoryError,
    PathStateError,
    RepositoryAccessError,
    SetupError,
)

__all__ = [
    "GitGateway",
    "GitCommandError",
    "LocalTreeOutcome",
    "MissingRepositoryError",
    "PathStateError",
    "RepositoryAccessError",
    "RevisionPair",
    "SetupError",
]
