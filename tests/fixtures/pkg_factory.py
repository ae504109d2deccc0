from __future__ import annotations

import struct
from collections.abc import Mapping
from pathlib import Path

PKG_MAGIC = 0x7F434E54
TABLE_POS = 0x200
NAMES_ENTRY_ID = 0x0200
ENTRY_IDS = {
    "param.sfo": 0x1000,
    "icon0.png": 0x1200,
    "pic0.png": 0x1220,
}

SFO_GAME: dict[str, str | int] = {
    "APP_VER": "01.00",
    "CATEGORY": "gd",
    "SYSTEM_VER": 0x05050000,
    "TITLE": "Demo",
    "TITLE_ID": "CUSA12345",
}

CONTENT_ID_USA = "UP0000-CUSA12345_00-DEMOGAME00000001"
ICON_BYTES = b"\x89PNG\r\n\x1a\n" + b"icon" * 8

SfoValue = str | int | tuple[int, bytes]


def build_sfo(values: Mapping[str, SfoValue]) -> bytes:
    """Serialize ``values`` as a PSF table.

    ``str`` values become 0x0204 strings, ``int`` values 0x0404 integers and
    ``(type, raw)`` tuples are written verbatim.
    """
    key_table = b""
    data_table = b""
    rows: list[bytes] = []
    for key, value in values.items():
        key_pos = len(key_table)
        key_table += key.encode("utf-8") + b"\x00"
        if isinstance(value, tuple):
            data_type, raw = value
        elif isinstance(value, int):
            data_type, raw = 0x0404, struct.pack("<I", value)
        else:
            data_type, raw = 0x0204, value.encode("utf-8") + b"\x00"
        data_pos = len(data_table)
        data_table += raw
        rows.append(struct.pack("<HHIII", key_pos, data_type, len(raw), len(raw), data_pos))

    key_table_start = 20 + 16 * len(rows)
    data_table_start = key_table_start + len(key_table)
    header = b"\x00PSF" + struct.pack(
        "<IIII", 0x0101, key_table_start, data_table_start, len(rows)
    )
    return header + b"".join(rows) + key_table + data_table


def build_pkg(
    files: Mapping[str, bytes],
    content_id: str = CONTENT_ID_USA,
    content_type: int = 0x1A,
    drm_type: int = 0xF,
    iro_type: int = 0,
    magic: int = PKG_MAGIC,
    encrypted: frozenset[str] = frozenset(),
    padding: int = 0,
) -> bytes:
    name_positions: dict[str, int] = {}
    name_buffer = b"\x00"
    for name in files:
        name_positions[name] = len(name_buffer)
        name_buffer += name.encode("utf-8") + b"\x00"

    entry_count = len(files) + 1
    data_start = TABLE_POS + entry_count * 32
    rows = [
        struct.pack(">IIIIIIQ", NAMES_ENTRY_ID, 0, 0, 0, data_start, len(name_buffer), 0)
    ]
    body = name_buffer
    for index, (name, data) in enumerate(files.items()):
        entry_id = ENTRY_IDS.get(name, 0x2000 + index)
        flag1 = 0x8000_0000 if name in encrypted else 0
        rows.append(
            struct.pack(
                ">IIIIIIQ",
                entry_id,
                name_positions[name],
                flag1,
                0,
                data_start + len(body),
                len(data),
                0,
            )
        )
        body += data

    header = bytearray(TABLE_POS)
    struct.pack_into(
        ">IIIIIHHII",
        header,
        0,
        magic,
        0x8000_0001,
        0,
        len(files),
        entry_count,
        0,
        0,
        TABLE_POS,
        len(name_buffer),
    )
    struct.pack_into(">QQQQ", header, 0x20, data_start, len(body), 0, 0)
    header[0x40 : 0x40 + 36] = content_id.encode("ascii").ljust(36, b"\x00")[:36]
    struct.pack_into(">II", header, 0x70, drm_type, content_type)
    struct.pack_into(">I", header, 0xA8, iro_type)
    header[0x100:0x180] = bytes(range(128))

    return bytes(header) + b"".join(rows) + body + b"\x00" * padding


def write_pkg(
    path: Path,
    sfo: Mapping[str, SfoValue] | None = None,
    icon: bytes | None = ICON_BYTES,
    content_id: str = CONTENT_ID_USA,
    magic: int = PKG_MAGIC,
    padding: int = 0,
) -> Path:
    files: dict[str, bytes] = {"param.sfo": build_sfo(SFO_GAME if sfo is None else sfo)}
    if icon is not None:
        files["icon0.png"] = icon
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_bytes(build_pkg(files, content_id=content_id, magic=magic, padding=padding))
    return path
