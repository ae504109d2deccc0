from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Callable, ClassVar, final

from fpkgi_server.application.watcher.inotify_notifier import InotifyWaitNotifier
from fpkgi_server.application.watcher.polling_notifier import PollingNotifier
from fpkgi_server.domain.errors import WatcherError
from fpkgi_server.domain.models.results import WatchEvent
from fpkgi_server.domain.protocols.notifier_protocol import NotifierProtocol

NotifierFactory = Callable[[tuple[Path, ...], logging.Logger], NotifierProtocol]


def select_notifier(directories: tuple[Path, ...], logger: logging.Logger) -> NotifierProtocol:
    if shutil.which("inotifywait") is not None:
        return InotifyWaitNotifier(directories, logger)
    logger.info(
        "inotifywait not found; polling for changes every %.0f seconds",
        PollingNotifier.INTERVAL_SECONDS,
    )
    return PollingNotifier(directories, logger)


@final
class Watcher:
    GET_TIMEOUT_SECONDS: ClassVar[float] = 0.5

    def __init__(
        self,
        directories: Sequence[Path],
        logger: logging.Logger,
        notifier_factory: NotifierFactory = select_notifier,
    ) -> None:
        self._directories = tuple(directories)
        self._logger = logger
        self._notifier_factory = notifier_factory
        self._stop = threading.Event()

    def watchable_directories(self) -> tuple[Path, ...]:
        watchable: list[Path] = []
        for path in self._directories:
            if not path.exists():
                self._logger.warning("Path %s does not exist, skipping", path)
                continue
            if not path.is_dir():
                self._logger.warning("Path %s is not a directory, skipping", path)
                continue
            watchable.append(path)
        if not watchable:
            raise WatcherError("No valid directories to watch")
        return tuple(watchable)

    def stop(self) -> None:
        self._stop.set()

    def run(self) -> None:
        """Log every filesystem event until stopped."""

        def log_events(events: list[WatchEvent]) -> None:
            for event in events:
                self._logger.info("%s %s (%s)", event.kind.value, event.path, event.raw)

        self._loop(log_events)

    def run_with_rebuild(self, rebuild: Callable[[], object]) -> None:
        """Rebuild on create/modify/remove; one rebuild per drained batch."""

        def rebuild_on_change(events: list[WatchEvent]) -> None:
            relevant = [event for event in events if event.kind.triggers_rebuild]
            for event in events:
                if not event.kind.triggers_rebuild:
                    self._logger.debug("Ignoring %s event on %s", event.kind.value, event.path)
            if not relevant:
                return

            self._logger.info(
                "Detected %d change(s), first %s %s; rebuilding catalog",
                len(relevant),
                relevant[0].kind.value,
                relevant[0].path,
            )
            try:
                _ = rebuild()
            except Exception:
                self._logger.exception("Catalog rebuild failed")

        self._loop(rebuild_on_change)

    def _loop(self, handle: Callable[[list[WatchEvent]], None]) -> None:
        directories = self.watchable_directories()
        notifier = self._notifier_factory(directories, self._logger)
        notifier.start()
        self._logger.info(
            "Watching %s with %s", ", ".join(str(path) for path in directories), notifier.name
        )
        try:
            while not self._stop.is_set():
                event = notifier.get(timeout=self.GET_TIMEOUT_SECONDS)
                if event is None:
                    if not notifier.running:
                        raise WatcherError(f"{notifier.name} notifier stopped unexpectedly")
                    continue
                handle([event, *notifier.drain()])
        finally:
            notifier.stop()
