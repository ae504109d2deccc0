from __future__ import annotations

import logging
import queue
import subprocess
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import IO, Callable, ClassVar, Protocol, final

from fpkgi_server.domain.models.results import EventKind, WatchEvent


class _Process(Protocol):
    @property
    def stdout(self) -> IO[str] | None: ...

    def poll(self) -> int | None: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...

    def wait(self, timeout: float | None = None) -> int: ...


ProcessFactory = Callable[[list[str]], _Process]


def _spawn(command: list[str]) -> _Process:
    return subprocess.Popen(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
    )


@final
class InotifyWaitNotifier:
    """Recursive watch backed by an ``inotifywait -m`` subprocess."""

    name: str = "inotifywait"

    EVENTS: ClassVar[tuple[str, ...]] = (
        "create",
        "modify",
        "close_write",
        "delete",
        "moved_from",
        "moved_to",
    )
    _KIND_BY_EVENT: ClassVar[tuple[tuple[frozenset[str], EventKind], ...]] = (
        (frozenset({"CREATE", "MOVED_TO"}), EventKind.CREATE),
        (frozenset({"DELETE", "DELETE_SELF", "MOVED_FROM"}), EventKind.REMOVE),
        (frozenset({"MODIFY", "CLOSE_WRITE"}), EventKind.MODIFY),
        (frozenset({"ACCESS"}), EventKind.ACCESS),
    )

    def __init__(
        self,
        directories: Sequence[Path],
        logger: logging.Logger,
        process_factory: ProcessFactory = _spawn,
    ) -> None:
        self._directories = tuple(directories)
        self._logger = logger
        self._process_factory = process_factory
        self._process: _Process | None = None
        self._reader: threading.Thread | None = None
        self._events: queue.Queue[WatchEvent] = queue.Queue()
        self._exited = threading.Event()

    def command(self) -> list[str]:
        command = ["inotifywait", "-q", "-m", "-r"]
        for event in self.EVENTS:
            command.extend(["-e", event])
        command.extend(["--format", "%w%f|%e"])
        command.extend(str(path) for path in self._directories)
        return command

    @classmethod
    def classify(cls, events: str) -> EventKind:
        names = {item.strip().upper() for item in events.split(",") if item.strip()}
        for triggers, kind in cls._KIND_BY_EVENT:
            if names & triggers:
                return kind
        return EventKind.OTHER

    @classmethod
    def parse_line(cls, line: str) -> WatchEvent | None:
        line = line.strip()
        if not line or "|" not in line:
            return None
        path, events = line.rsplit("|", 1)
        return WatchEvent(kind=cls.classify(events), path=Path(path), raw=events)

    def _read_output(self, stream: IO[str]) -> None:
        try:
            for line in stream:
                event = self.parse_line(line)
                if event is None:
                    if line.strip():
                        self._logger.debug("inotifywait: %s", line.strip())
                    continue
                self._events.put(event)
        finally:
            self._exited.set()

    def start(self) -> None:
        process = self._process_factory(self.command())
        if process.stdout is None:
            raise OSError("inotifywait started without a stdout pipe")
        self._process = process
        self._exited.clear()
        self._reader = threading.Thread(
            target=self._read_output,
            args=(process.stdout,),
            name="fpkgi-inotifywait",
            daemon=True,
        )
        self._reader.start()

    def stop(self) -> None:
        process = self._process
        self._process = None
        if process is not None and process.poll() is None:
            process.terminate()
            try:
                _ = process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
        if self._reader is not None:
            self._reader.join(timeout=5)
            self._reader = None

    @property
    def running(self) -> bool:
        return self._reader is not None and not self._exited.is_set()

    def get(self, timeout: float | None = None) -> WatchEvent | None:
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[WatchEvent]:
        drained: list[WatchEvent] = []
        while True:
            try:
                drained.append(self._events.get_nowait())
            except queue.Empty:
                return drained
