from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from types import FrameType
from typing import Any, ClassVar, final

from tabulate import tabulate

from fpkgi_server.application.cli import build_parser
from fpkgi_server.application.codecs.ps4_package import Ps4Package
from fpkgi_server.application.codecs.sfo_processor import SfoProcessor
from fpkgi_server.application.file_server import FileServer, FileServerResolver
from fpkgi_server.application.watcher.watcher import NotifierFactory, Watcher, select_notifier
from fpkgi_server.config.logging_setup import configure_logging
from fpkgi_server.config.settings_loader import SettingsLoader
from fpkgi_server.config.settings_models import (
    GenerateSettings,
    HostSettings,
    ServeSettings,
    WatchSettings,
)
from fpkgi_server.domain.errors import ConfigInvalidError, FormatError, FpkgiServerError
from fpkgi_server.domain.workflows.build_catalog import CatalogBuilder


@final
class FpkgiServerApp:
    POLL_SECONDS: ClassVar[float] = 0.5

    def __init__(self, notifier_factory: NotifierFactory = select_notifier) -> None:
        self._notifier_factory = notifier_factory
        self._should_stop = threading.Event()
        self._log = logging.getLogger("fpkgi_server.app")
        self._catalog_log = logging.getLogger("fpkgi_server.catalog")
        self._http_log = logging.getLogger("fpkgi_server.http")
        self._watcher_log = logging.getLogger("fpkgi_server.watcher")

    def request_stop(self) -> None:
        self._should_stop.set()

    def install_signal_handlers(self) -> Callable[[], None]:
        """Route SIGINT/SIGTERM to ``request_stop``; returns a restore callback."""

        def _stop_handler(_signum: int, _frame: FrameType | None) -> None:
            self.request_stop()

        previous_term = signal.signal(signal.SIGTERM, _stop_handler)
        previous_int = signal.signal(signal.SIGINT, _stop_handler)

        def _restore() -> None:
            _ = signal.signal(signal.SIGTERM, previous_term)
            _ = signal.signal(signal.SIGINT, previous_int)

        return _restore

    def dispatch(self, args: argparse.Namespace) -> int:
        command = str(args.command)
        if command == "generate":
            return self.generate(SettingsLoader.generate(args))
        if command == "serve":
            return self.serve(SettingsLoader.serve(args))
        if command == "watch":
            return self.watch(SettingsLoader.watch(args))
        if command == "host":
            return self.host(SettingsLoader.host(args))
        if command == "inspect":
            return self.inspect(Path(args.pkg))
        if command == "extract":
            return self.extract(Path(args.pkg), str(args.identifier), Path(args.dest))
        raise ConfigInvalidError(f"Unknown command: {command}")

    def _builder(self, settings: GenerateSettings) -> CatalogBuilder:
        return CatalogBuilder(settings, self._catalog_log)

    def generate(self, settings: GenerateSettings) -> int:
        try:
            result = self._builder(settings)()
        except (FpkgiServerError, OSError) as exc:
            self._log.error("Catalog generation failed: %s", exc)
            return 1
        self._log.debug("Wrote %s", ", ".join(str(path) for path in result.written_files))
        return 0

    def _warn_missing(self, settings: ServeSettings) -> None:
        for name, path in settings.missing_directories():
            self._log.warning("Directory '%s' for '%s' does not exist", path, name)

    def _start_server(self, settings: ServeSettings) -> FileServer | None:
        self._warn_missing(settings)
        server = FileServer(
            FileServerResolver(settings.directories),
            self._http_log,
            host=settings.host,
            port=settings.port,
        )
        try:
            server.start()
        except OSError as exc:
            self._log.error("Could not listen on %s:%d: %s", settings.host, settings.port, exc)
            return None
        return server

    def _wait(self, healthy: Callable[[], str | None]) -> int:
        while not self._should_stop.is_set():
            failure = healthy()
            if failure is not None:
                self._log.error("%s", failure)
                return 1
            time.sleep(self.POLL_SECONDS)
        return 0

    def serve(self, settings: ServeSettings) -> int:
        server = self._start_server(settings)
        if server is None:
            return 1
        try:
            return self._wait(lambda: None if server.running else "HTTP server stopped")
        finally:
            server.stop()

    def _start_watcher(
        self, directories: Sequence[Path], target: Callable[[Watcher], None]
    ) -> tuple[Watcher, threading.Thread, list[BaseException]]:
        watcher = Watcher(directories, self._watcher_log, self._notifier_factory)
        errors: list[BaseException] = []

        def _run() -> None:
            try:
                target(watcher)
            except Exception as exc:
                errors.append(exc)

        thread = threading.Thread(target=_run, name="fpkgi-watcher", daemon=True)
        thread.start()
        return watcher, thread, errors

    @staticmethod
    def _watcher_health(
        thread: threading.Thread, errors: list[BaseException]
    ) -> str | None:
        if thread.is_alive():
            return None
        if errors:
            return f"Watcher failed: {errors[0]}"
        return "Watcher stopped"

    def watch(self, settings: WatchSettings) -> int:
        watcher, thread, errors = self._start_watcher(
            settings.directories, lambda current: current.run()
        )
        try:
            return self._wait(lambda: self._watcher_health(thread, errors))
        finally:
            watcher.stop()
            thread.join(timeout=5.0)

    def host(self, settings: HostSettings) -> int:
        builder = self._builder(settings.generate)
        try:
            _ = builder()
        except (FpkgiServerError, OSError) as exc:
            self._log.error("Initial catalog generation failed: %s", exc)
            return 1

        server = self._start_server(settings.serve_settings())
        if server is None:
            return 1

        watch_settings = settings.watch_settings()
        watcher, thread, errors = self._start_watcher(
            watch_settings.directories, lambda current: current.run_with_rebuild(builder)
        )

        def _healthy() -> str | None:
            if not server.running:
                return "HTTP server stopped"
            return self._watcher_health(thread, errors)

        try:
            return self._wait(_healthy)
        finally:
            watcher.stop()
            thread.join(timeout=5.0)
            server.stop()

    def inspect(self, path: Path) -> int:
        try:
            package = Ps4Package.open(path)
        except (FormatError, OSError) as exc:
            self._log.error("Failed to parse PKG %s: %s", path, exc)
            return 1

        header: list[tuple[str, Any]] = [
            ("Path", str(package.path)),
            ("Size", package.size),
            ("Content ID", package.content_id),
            ("Content category", package.content_category.value),
            ("IRO category", package.iro_category.value),
            ("DRM category", package.drm_category.value),
        ]
        header.extend((f"Hash {number}", digest) for number, digest in enumerate(package.hashes, 1))
        print(tabulate(header, tablefmt="fancy_outline"))

        entries = [
            (
                f"{entry.entry_id:08x}",
                entry.name or "",
                entry.size,
                f"{entry.offset:08x}",
                "yes" if entry.encrypted else "no",
                entry.key_index,
            )
            for entry in sorted(package.file_entries.values(), key=lambda item: item.entry_id)
        ]
        print(
            tabulate(
                entries,
                headers=["ID", "Name", "Size", "Offset", "Encrypted", "Key"],
                tablefmt="fancy_outline",
            )
        )

        try:
            sfo = SfoProcessor().process(package.get_file(CatalogBuilder.SFO_NAME))
        except (FormatError, OSError) as exc:
            self._log.warning("No readable %s in %s: %s", CatalogBuilder.SFO_NAME, path, exc)
            return 0
        print(tabulate(sorted(sfo.items()), headers=["Key", "Value"], tablefmt="fancy_outline"))
        return 0

    def extract(self, path: Path, identifier: str, destination: Path) -> int:
        try:
            package = Ps4Package.open(path)
            saved = package.save_file(identifier, destination)
        except (FormatError, OSError) as exc:
            self._log.error("Failed to extract %s from %s: %s", identifier, path, exc)
            return 1
        self._log.info("Extracted %s to %s", identifier, saved)
        return 0


def main(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
    app_factory: Callable[[], FpkgiServerApp] = FpkgiServerApp,
) -> int:
    args = build_parser().parse_args(argv)
    env = os.environ if environ is None else environ
    try:
        runtime = SettingsLoader.runtime(args, env)
    except ConfigInvalidError as exc:
        print(f"fpkgi-server: {exc}", file=sys.stderr)
        return 2

    configure_logging(runtime.log_level, runtime.error_log)
    log = logging.getLogger("fpkgi_server.app")

    app = app_factory()
    restore: Callable[[], None] | None = None
    if threading.current_thread() is threading.main_thread():
        restore = app.install_signal_handlers()
    try:
        return app.dispatch(args)
    except ConfigInvalidError as exc:
        log.error("Invalid configuration: %s", exc)
        return 2
    finally:
        if restore is not None:
            restore()
