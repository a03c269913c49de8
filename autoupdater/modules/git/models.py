"""Value types produced by the git gateway."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class LocalTreeOutcome(StrEnum):
    """What ``ensure_local_tree`` had to do."""
    CLONED = "cloned"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class RevisionPair:
    """Local HEAD and upstream revision, read fresh on every check."""

    current_revision: str
    latest_revision: str

    @property
    def up_to_date(self) -> bool:
        return self.current_revision == self.latest_revision
