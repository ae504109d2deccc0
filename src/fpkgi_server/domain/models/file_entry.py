from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FileEntry:
    entry_id: int
    name_pos: int
    flag1: int
    flag2: int
    offset: int
    size: int
    name: str | None = None

    @property
    def key_index(self) -> int:
        return (self.flag2 & 0xF00) >> 12

    @property
    def encrypted(self) -> bool:
        return bool(self.flag1 & 0x8000_0000)

    @property
    def end(self) -> int:
        return self.offset + self.size
