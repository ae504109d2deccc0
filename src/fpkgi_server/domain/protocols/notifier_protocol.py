from __future__ import annotations

from typing import Protocol

from fpkgi_server.domain.models.results import WatchEvent


class NotifierProtocol(Protocol):
    name: str

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def get(self, timeout: float | None = None) -> WatchEvent | None:
        """Return the next event, or ``None`` when ``timeout`` expires."""
        ...

    def drain(self) -> list[WatchEvent]: ...

    @property
    def running(self) -> bool: ...
