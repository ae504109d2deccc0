from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from fpkgi_server.domain.models.results import ScanDelta

Snapshot = dict[str, tuple[int, int]]


def take_snapshot(roots: Iterable[Path]) -> Snapshot:
    """Map every regular file under ``roots`` to ``(size, mtime_ns)``.

    Files that vanish between listing and ``stat`` are left out.
    """
    snapshot: Snapshot = {}
    for root in roots:
        for path in sorted(root.rglob("*")):
            try:
                if not path.is_file():
                    continue
                stat = path.stat()
            except OSError:
                continue
            snapshot[str(path)] = (int(stat.st_size), int(stat.st_mtime_ns))
    return snapshot


def build_delta(previous: Snapshot, current: Snapshot) -> ScanDelta:
    previous_keys = set(previous)
    current_keys = set(current)

    added = sorted(current_keys - previous_keys)
    removed = sorted(previous_keys - current_keys)
    updated = sorted(
        key for key in previous_keys & current_keys if previous[key] != current[key]
    )

    return ScanDelta(added=tuple(added), updated=tuple(updated), removed=tuple(removed))
