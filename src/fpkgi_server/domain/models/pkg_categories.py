from __future__ import annotations

from enum import StrEnum


class ContentCategory(StrEnum):
    GAME = "Game"
    DLC = "DLC"
    APP = "App"
    DEMO = "Demo"

    @classmethod
    def from_raw(cls, value: int) -> "ContentCategory":
        mapping = {
            0x1A: cls.GAME,
            0x1B: cls.DLC,
            0x1C: cls.APP,
            0x1E: cls.DEMO,
        }
        return mapping.get(value, cls.GAME)


class DrmCategory(StrEnum):
    NONE = "None"
    PS4 = "PS4"

    @classmethod
    def from_raw(cls, value: int) -> "DrmCategory":
        return cls.PS4 if value == 0xF else cls.NONE


class IroCategory(StrEnum):
    NONE = "None"
    SF_THEME = "SFTheme"
    SYS_THEME = "SysTheme"

    @classmethod
    def from_raw(cls, value: int) -> "IroCategory":
        mapping = {
            0x1: cls.SF_THEME,
            0x2: cls.SYS_THEME,
        }
        return mapping.get(value, cls.NONE)
