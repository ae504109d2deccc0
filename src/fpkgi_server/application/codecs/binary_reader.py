from __future__ import annotations

import io
import os
import struct
from typing import BinaryIO, ClassVar, final

from fpkgi_server.domain.errors import ShortReadError


def extract_string(buffer: bytes, start: int) -> str:
    if start < 0 or start >= len(buffer):
        return ""
    end = buffer.find(b"\x00", start)
    if end < 0:
        end = len(buffer)
    return buffer[start:end].decode("utf-8", errors="replace")


@final
class BinaryReader:
    """Endian-aware reads over an in-memory buffer or a seekable binary stream."""

    _U16_LE: ClassVar[struct.Struct] = struct.Struct("<H")
    _U32_LE: ClassVar[struct.Struct] = struct.Struct("<I")
    _U16_BE: ClassVar[struct.Struct] = struct.Struct(">H")
    _U32_BE: ClassVar[struct.Struct] = struct.Struct(">I")
    _U64_BE: ClassVar[struct.Struct] = struct.Struct(">Q")

    def __init__(self, source: bytes | bytearray | memoryview | BinaryIO) -> None:
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._stream: BinaryIO = io.BytesIO(bytes(source))
        else:
            self._stream = source

    extract_string = staticmethod(extract_string)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._stream.seek(offset, whence)

    def skip(self, count: int) -> int:
        return self._stream.seek(count, os.SEEK_CUR)

    def tell(self) -> int:
        return self._stream.tell()

    def read(self, count: int) -> bytes:
        return self._stream.read(count)

    def read_exact(self, count: int) -> bytes:
        data = self._stream.read(count)
        if len(data) != count:
            raise ShortReadError(count, len(data))
        return data

    def _unpack(self, layout: struct.Struct) -> int:
        value = layout.unpack(self.read_exact(layout.size))[0]
        return int(value)

    def read_u16_le(self) -> int:
        return self._unpack(self._U16_LE)

    def read_u32_le(self) -> int:
        return self._unpack(self._U32_LE)

    def read_u16_be(self) -> int:
        return self._unpack(self._U16_BE)

    def read_u32_be(self) -> int:
        return self._unpack(self._U32_BE)

    def read_u64_be(self) -> int:
        return self._unpack(self._U64_BE)
