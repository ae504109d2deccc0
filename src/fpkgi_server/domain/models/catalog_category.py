from __future__ import annotations

from enum import StrEnum


class CatalogCategory(StrEnum):
    GAMES = "games"
    UPDATES = "updates"
    DLC = "DLC"
    HOMEBREW = "homebrew"

    @classmethod
    def from_sfo_category(cls, category: str | None) -> "CatalogCategory":
        value = str(category or "").strip().lower()
        mapping = {
            "gd": cls.GAMES,
            "gp": cls.UPDATES,
            "ac": cls.DLC,
            "gde": cls.HOMEBREW,
        }
        return mapping.get(value, cls.GAMES)


class Region(StrEnum):
    JAP = "JAP"
    USA = "USA"
    EUR = "EUR"
    UNK = "UNK"

    @classmethod
    def from_content_id(cls, content_id: str | None) -> "Region":
        prefix = str(content_id or "")[:2].upper()
        mapping = {
            "JP": cls.JAP,
            "UP": cls.USA,
            "EP": cls.EUR,
        }
        return mapping.get(prefix, cls.UNK)
