from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class MappedPath:
    """A filesystem directory paired with the URL prefix it is published under."""

    fs_path: Path
    url_path: str

    @staticmethod
    def _canonicalize(raw: str) -> Path:
        path = Path(raw)
        try:
            return path.resolve(strict=True)
        except (OSError, RuntimeError):
            return path

    @classmethod
    def parse(cls, raw: str) -> "MappedPath":
        value = str(raw or "").strip()
        if not value:
            raise ValueError("Expected 'fs_path:url_path', got an empty value")
        if ":" in value:
            fs_part, url_part = value.split(":", 1)
        else:
            fs_part, url_part = value, value
        if not fs_part:
            raise ValueError(f"Missing filesystem path in {raw!r}")
        return cls(fs_path=cls._canonicalize(fs_part), url_path=url_part)

    @property
    def url_prefix(self) -> str:
        return self.url_path.strip("/")
