from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, ClassVar

from fpkgi_server.application.codecs.binary_reader import BinaryReader, extract_string
from fpkgi_server.domain.errors import (
    PackageEntryNotFoundError,
    PackageParseError,
    ShortReadError,
)
from fpkgi_server.domain.models.file_entry import FileEntry
from fpkgi_server.domain.models.pkg_categories import (
    ContentCategory,
    DrmCategory,
    IroCategory,
)

_log = logging.getLogger("fpkgi_server.package")


@dataclass(frozen=True, slots=True)
class Ps4Package:
    """Read-only view of a PS4 PKG container.

    Only the plaintext header, the entry table and the file-name table are
    decoded. Entry payloads are returned as raw bytes; encrypted entries are
    not decrypted.
    """

    VALID_MAGIC: ClassVar[int] = 0x7F434E54
    HEADER_SIZE: ClassVar[int] = 416
    HASH_POS: ClassVar[int] = 0x0100
    HASH_SIZE: ClassVar[int] = 128
    HASH_COUNT: ClassVar[int] = 4
    DIGEST_SIZE: ClassVar[int] = 16
    ENTRY_SIZE: ClassVar[int] = 32
    FILE_NAMES_ID: ClassVar[int] = 0x0200

    path: Path
    size: int
    content_id: str
    content_category: ContentCategory
    iro_category: IroCategory
    drm_category: DrmCategory
    hashes: tuple[str, ...]
    file_entries: Mapping[int, FileEntry] = field(default_factory=dict)

    @classmethod
    def open(cls, path: Path) -> "Ps4Package":
        try:
            with path.open("rb") as stream:
                return cls._parse(path, stream)
        except ShortReadError as exc:
            raise PackageParseError(f"Truncated PKG {path.name}: {exc}") from exc

    @classmethod
    def _parse(cls, path: Path, stream: BinaryIO) -> "Ps4Package":
        file_size = os.fstat(stream.fileno()).st_size
        _log.debug("PKG file size: %d bytes", file_size)
        if file_size < cls.HEADER_SIZE:
            raise PackageParseError(
                f"PKG file too small for header: {file_size} bytes < {cls.HEADER_SIZE} bytes"
            )

        header = BinaryReader(BinaryReader(stream).read_exact(cls.HEADER_SIZE))
        magic = header.read_u32_be()
        if magic != cls.VALID_MAGIC:
            raise PackageParseError(f"Invalid PKG magic value: {magic:08x}")

        pkg_type = header.read_u32_be()
        _ = header.read_u32_be()
        file_count = header.read_u32_be()
        entry_count = header.read_u32_be()
        sc_entry_count = header.read_u16_be()
        _ = header.read_u16_be()
        table_pos = header.read_u32_be()
        entry_data_size = header.read_u32_be()
        body_pos = header.read_u64_be()
        body_size = header.read_u64_be()
        content_pos = header.read_u64_be()
        content_size = header.read_u64_be()
        content_id = header.read_exact(36).decode("utf-8", errors="replace").rstrip("\x00")
        _ = header.skip(12)
        drm_type = header.read_u32_be()
        content_type = header.read_u32_be()
        _ = header.skip(4 * 4 + 32)
        iro_type = header.read_u32_be()
        _drm_version = header.read_u32_be()

        _log.debug(
            "PKG type: %08x, file count: %d, entry count: %d, sc entry count: %d",
            pkg_type,
            file_count,
            entry_count,
            sc_entry_count,
        )
        _log.debug(
            "Table pos: %d, entry data size: %d, body: %d+%d, content: %d+%d",
            table_pos,
            entry_data_size,
            body_pos,
            body_size,
            content_pos,
            content_size,
        )
        _log.debug("Content ID: %s, DRM type: %08x, content type: %08x", content_id, drm_type, content_type)

        hashes = cls._read_hashes(stream, file_size)
        entries = cls._read_entries(stream, file_size, table_pos, entry_count)
        named = cls._resolve_names(stream, file_size, entries, entry_data_size)

        return cls(
            path=path,
            size=file_size,
            content_id=content_id,
            content_category=ContentCategory.from_raw(content_type),
            iro_category=IroCategory.from_raw(iro_type),
            drm_category=DrmCategory.from_raw(drm_type),
            hashes=hashes,
            file_entries=named,
        )

    @classmethod
    def _read_hashes(cls, stream: BinaryIO, file_size: int) -> tuple[str, ...]:
        if file_size < cls.HASH_POS + cls.HASH_SIZE:
            raise PackageParseError(
                f"PKG file too small for hash data: {file_size} bytes < "
                f"{cls.HASH_POS + cls.HASH_SIZE} bytes"
            )
        reader = BinaryReader(stream)
        _ = reader.seek(cls.HASH_POS)
        block = reader.read_exact(cls.HASH_SIZE)
        hashes = tuple(
            block[index : index + cls.DIGEST_SIZE].hex()
            for index in range(0, cls.HASH_COUNT * cls.DIGEST_SIZE, cls.DIGEST_SIZE)
        )
        for number, digest in enumerate(hashes, start=1):
            _log.debug("Hash %d: %s", number, digest)
        return hashes

    @classmethod
    def _read_entries(
        cls, stream: BinaryIO, file_size: int, table_pos: int, entry_count: int
    ) -> dict[int, FileEntry]:
        expected_end = table_pos + entry_count * cls.ENTRY_SIZE
        if file_size < expected_end:
            raise PackageParseError(
                f"PKG file too small for {entry_count} entries: "
                f"{file_size} bytes < {expected_end} bytes"
            )

        reader = BinaryReader(stream)
        _ = reader.seek(table_pos)
        entries: dict[int, FileEntry] = {}
        for index in range(entry_count):
            raw = reader.read(cls.ENTRY_SIZE)
            if len(raw) < cls.ENTRY_SIZE:
                _log.error(
                    "Short read for entry %d at offset %d: read %d bytes, expected %d",
                    index,
                    table_pos + index * cls.ENTRY_SIZE,
                    len(raw),
                    cls.ENTRY_SIZE,
                )
                continue

            row = BinaryReader(raw)
            entry = FileEntry(
                entry_id=row.read_u32_be(),
                name_pos=row.read_u32_be(),
                flag1=row.read_u32_be(),
                flag2=row.read_u32_be(),
                offset=row.read_u32_be(),
                size=row.read_u32_be(),
            )
            _log.debug(
                "Entry %d - id: %08x, name pos: %d, offset: %d, size: %d",
                index,
                entry.entry_id,
                entry.name_pos,
                entry.offset,
                entry.size,
            )
            entries[entry.entry_id] = entry

        if not entries:
            raise PackageParseError("No valid entries parsed from entry table")
        return entries

    @classmethod
    def _resolve_names(
        cls,
        stream: BinaryIO,
        file_size: int,
        entries: dict[int, FileEntry],
        entry_data_size: int,
    ) -> dict[int, FileEntry]:
        names_entry = entries.get(cls.FILE_NAMES_ID)
        if names_entry is None:
            raise PackageParseError(f"Missing file table entry at id {cls.FILE_NAMES_ID:08x}")

        names_end = names_entry.offset + entry_data_size
        if file_size < names_end:
            raise PackageParseError(
                f"PKG file too small for name buffer: {file_size} bytes < {names_end} bytes"
            )

        reader = BinaryReader(stream)
        _ = reader.seek(names_entry.offset)
        name_buffer = reader.read_exact(entry_data_size)

        resolved: dict[int, FileEntry] = {}
        for entry_id, entry in entries.items():
            if entry.name_pos >= len(name_buffer):
                _log.debug(
                    "Name offset out of bounds for entry %08x: %d >= %d",
                    entry_id,
                    entry.name_pos,
                    len(name_buffer),
                )
                resolved[entry_id] = entry
                continue
            name = extract_string(name_buffer, entry.name_pos)
            if not name:
                resolved[entry_id] = entry
                continue
            resolved[entry_id] = dataclasses.replace(entry, name=name)
            _log.debug(
                "Entry %08x: %s (%d bytes, offset %08x, %s)",
                entry_id,
                name,
                entry.size,
                entry.offset,
                "ENCRYPTED" if entry.encrypted else "UNENCRYPTED",
            )
        return resolved

    def locate_file(self, identifier: str) -> FileEntry:
        text = str(identifier or "").strip()
        if text.lower().startswith("0x"):
            try:
                entry_id = int(text[2:], 16)
            except ValueError as exc:
                raise PackageEntryNotFoundError(f"File not found: {identifier}") from exc
            entry = self.file_entries.get(entry_id)
            if entry is None:
                raise PackageEntryNotFoundError(f"File not found: {identifier}")
            return entry

        for entry in self.file_entries.values():
            if entry.name == text:
                return entry
        raise PackageEntryNotFoundError(f"File not found: {identifier}")

    def get_file(self, identifier: str) -> bytes:
        entry = self.locate_file(identifier)
        with self.path.open("rb") as stream:
            file_size = os.fstat(stream.fileno()).st_size
            if entry.end > file_size:
                raise PackageParseError(
                    f"File data out of bounds: offset {entry.offset} + size {entry.size} "
                    f"> file size {file_size}"
                )
            _log.debug(
                "Reading file data for '%s': offset %d, size %d",
                identifier,
                entry.offset,
                entry.size,
            )
            reader = BinaryReader(stream)
            _ = reader.seek(entry.offset)
            try:
                return reader.read_exact(entry.size)
            except ShortReadError as exc:
                raise PackageParseError(f"Truncated entry '{identifier}': {exc}") from exc

    def save_file(self, identifier: str, destination: Path) -> Path:
        data = self.get_file(identifier)
        tmp = destination.with_name(destination.name + ".tmp")
        _ = tmp.write_bytes(data)
        _ = tmp.replace(destination)
        _log.debug("Saved file '%s' to '%s'", identifier, destination)
        return destination
