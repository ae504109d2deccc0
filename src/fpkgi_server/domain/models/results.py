from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path


@dataclass(frozen=True, slots=True)
class BuildResult:
    indexed: int
    failed: int
    categories: tuple[str, ...]
    written_files: tuple[Path, ...]


class EventKind(StrEnum):
    CREATE = "create"
    MODIFY = "modify"
    REMOVE = "remove"
    ACCESS = "access"
    OTHER = "other"

    @property
    def triggers_rebuild(self) -> bool:
        return self in {EventKind.CREATE, EventKind.MODIFY, EventKind.REMOVE}


@dataclass(frozen=True, slots=True)
class WatchEvent:
    kind: EventKind
    path: Path
    raw: str = ""


@dataclass(frozen=True, slots=True)
class ScanDelta:
    added: tuple[str, ...]
    updated: tuple[str, ...]
    removed: tuple[str, ...]

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.updated or self.removed)
