from __future__ import annotations

from pathlib import Path
from typing import Protocol


class PackageProtocol(Protocol):
    @property
    def content_id(self) -> str: ...

    def get_file(self, identifier: str) -> bytes: ...

    def save_file(self, identifier: str, destination: Path) -> Path: ...


class PackageOpenerProtocol(Protocol):
    def __call__(self, path: Path) -> PackageProtocol: ...
