from __future__ import annotations

import logging
from typing import ClassVar, final

from fpkgi_server.application.codecs.binary_reader import BinaryReader, extract_string
from fpkgi_server.domain.errors import SfoParseError

_log = logging.getLogger("fpkgi_server.sfo")


@final
class SfoProcessor:
    MAGIC: ClassVar[bytes] = b"\x00PSF"
    HEADER_SIZE: ClassVar[int] = 20
    ENTRY_SIZE: ClassVar[int] = 16

    TYPE_UTF8: ClassVar[int] = 0x0204
    TYPE_INT32: ClassVar[int] = 0x0404

    @classmethod
    def _decode_value(cls, index: int, key: str, data_type: int, raw: bytes) -> str:
        if data_type == cls.TYPE_UTF8:
            return raw.decode("utf-8", errors="replace").rstrip("\x00")
        if data_type == cls.TYPE_INT32:
            if len(raw) < 4:
                _log.error("Entry %d integer data too short: %d bytes", index, len(raw))
                return raw.hex()
            return str(int.from_bytes(raw[:4], "little"))
        _log.info("Entry %d unknown format %04x for key '%s', using hex", index, data_type, key)
        return raw.hex()

    def process(self, buffer: bytes) -> dict[str, str]:
        _log.debug("SFO buffer size: %d bytes", len(buffer))

        if not buffer.startswith(self.MAGIC):
            raise SfoParseError("Invalid SFO file: magic bytes missing")
        if len(buffer) < self.HEADER_SIZE:
            raise SfoParseError(
                f"SFO buffer too small for header: {len(buffer)} bytes < {self.HEADER_SIZE} bytes"
            )

        reader = BinaryReader(buffer)
        _ = reader.seek(len(self.MAGIC))
        version = reader.read_u32_le()
        key_table_start = reader.read_u32_le()
        data_table_start = reader.read_u32_le()
        entry_count = reader.read_u32_le()

        _log.debug(
            "SFO header - version: %08x, key table: %d, data table: %d, entries: %d",
            version,
            key_table_start,
            data_table_start,
            entry_count,
        )

        required = self.HEADER_SIZE + entry_count * self.ENTRY_SIZE
        if len(buffer) < required:
            raise SfoParseError(
                f"SFO buffer too small for {entry_count} entries: "
                f"{len(buffer)} bytes < {required} bytes"
            )

        rows: list[tuple[int, int, int, int]] = []
        for index in range(entry_count):
            _ = reader.seek(self.HEADER_SIZE + index * self.ENTRY_SIZE)
            key_pos = reader.read_u16_le()
            data_type = reader.read_u16_le()
            data_size = reader.read_u32_le()
            _max_size = reader.read_u32_le()
            data_pos = reader.read_u32_le()
            rows.append((key_pos, data_type, data_size, data_pos))

        output: dict[str, str] = {}
        for index, (key_pos, data_type, data_size, data_pos) in enumerate(rows):
            key_offset = key_table_start + key_pos
            if key_offset >= len(buffer):
                _log.error(
                    "Entry %d key offset out of bounds: %d >= %d", index, key_offset, len(buffer)
                )
                continue
            key = extract_string(buffer, key_offset)

            data_start = data_table_start + data_pos
            data_end = data_start + data_size
            if data_end > len(buffer):
                _log.error(
                    "Entry %d data offset out of bounds: %d + %d > %d",
                    index,
                    data_start,
                    data_size,
                    len(buffer),
                )
                continue

            _log.debug(
                "Entry %d - key: %s, type: %04x, size: %d, data offset: %d",
                index,
                key,
                data_type,
                data_size,
                data_start,
            )
            output[key] = self._decode_value(index, key, data_type, buffer[data_start:data_end])
        return output
