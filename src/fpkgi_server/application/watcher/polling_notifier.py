from __future__ import annotations

import logging
import queue
from collections.abc import Sequence
from pathlib import Path
from typing import ClassVar, final

from fpkgi_server.application.scheduler.apscheduler_runner import APSchedulerRunner
from fpkgi_server.domain.models.results import EventKind, WatchEvent
from fpkgi_server.domain.protocols.scheduler_protocol import SchedulerProtocol
from fpkgi_server.domain.workflows.snapshot_delta import Snapshot, build_delta, take_snapshot


@final
class PollingNotifier:
    name: str = "polling"

    INTERVAL_SECONDS: ClassVar[float] = 2.0
    JOB_ID: ClassVar[str] = "fpkgi-watch-poll"

    def __init__(
        self,
        directories: Sequence[Path],
        logger: logging.Logger,
        scheduler: SchedulerProtocol | None = None,
        interval_seconds: float = INTERVAL_SECONDS,
    ) -> None:
        self._directories = tuple(directories)
        self._logger = logger
        self._scheduler = scheduler
        self._interval_seconds = interval_seconds
        self._previous: Snapshot = {}
        self._events: queue.Queue[WatchEvent] = queue.Queue()
        self._running = False

    def poll(self) -> list[WatchEvent]:
        current = take_snapshot(self._directories)
        delta = build_delta(self._previous, current)
        self._previous = current
        if not delta.has_changes:
            return []

        events = [
            *(WatchEvent(EventKind.CREATE, Path(path), "added") for path in delta.added),
            *(WatchEvent(EventKind.MODIFY, Path(path), "updated") for path in delta.updated),
            *(WatchEvent(EventKind.REMOVE, Path(path), "removed") for path in delta.removed),
        ]
        for event in events:
            self._events.put(event)
        return events

    def start(self) -> None:
        self._previous = take_snapshot(self._directories)
        if self._scheduler is None:
            self._scheduler = APSchedulerRunner()
        self._scheduler.schedule_interval(self.JOB_ID, self._interval_seconds, self.poll)
        self._scheduler.start()
        self._running = True
        self._logger.debug(
            "Polling %d file(s) every %.1f seconds", len(self._previous), self._interval_seconds
        )

    def stop(self) -> None:
        if self._scheduler is not None and self._running:
            self._scheduler.shutdown()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

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
