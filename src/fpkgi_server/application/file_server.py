from __future__ import annotations

import html
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from email.utils import formatdate
from enum import StrEnum
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from threading import Thread
from typing import BinaryIO, ClassVar, final, override
from urllib.parse import unquote, urlsplit

from tabulate import tabulate


class ResolutionKind(StrEnum):
    ROOT = "root"
    FILE = "file"
    DIRECTORY = "directory"
    REDIRECT = "redirect"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class Resolution:
    kind: ResolutionKind
    request_path: str = "/"
    path: Path | None = None
    location: str | None = None


@final
class FileServerResolver:
    _RANGE_REGEX: ClassVar[re.Pattern[str]] = re.compile(r"^bytes=(\d+)-(\d*)$")

    def __init__(self, directories: Mapping[str, Path]) -> None:
        self._directories = dict(directories)

    @property
    def directories(self) -> dict[str, Path]:
        return dict(self._directories)

    @staticmethod
    def _sorted_names(names: list[str]) -> list[str]:
        return sorted(names, key=lambda name: (name.lower(), name))

    def resolve(self, raw_path: str) -> Resolution:
        """Map a request target onto a served file or directory.

        The path is percent-decoded exactly once; bytes that are not UTF-8
        map to the same surrogates the filesystem uses for such names.
        Anything that is not an existing entry below its mapped root
        resolves to ``NOT_FOUND``.
        """
        encoded_path = urlsplit(raw_path).path or "/"
        if encoded_path == "/":
            return Resolution(ResolutionKind.ROOT, encoded_path)

        decoded = unquote(encoded_path, errors="surrogateescape").lstrip("/")
        base, _, subpath = decoded.partition("/")
        root = self._directories.get(base)
        if root is None:
            return Resolution(ResolutionKind.NOT_FOUND, encoded_path)

        root_path = Path(os.path.normpath(root))
        full_path = Path(os.path.normpath(root_path / subpath)) if subpath else root_path
        if full_path != root_path and not full_path.is_relative_to(root_path):
            return Resolution(ResolutionKind.NOT_FOUND, encoded_path)

        if full_path.is_dir():
            if not encoded_path.endswith("/"):
                return Resolution(
                    ResolutionKind.REDIRECT,
                    encoded_path,
                    path=full_path,
                    location=encoded_path + "/",
                )
            return Resolution(ResolutionKind.DIRECTORY, encoded_path, path=full_path)
        if full_path.is_file():
            return Resolution(ResolutionKind.FILE, encoded_path, path=full_path)
        return Resolution(ResolutionKind.NOT_FOUND, encoded_path)

    def render_root(self) -> str:
        lines = [
            "<!DOCTYPE html>",
            "<html>",
            "<head><title>FPKGi Server Index</title></head>",
            "<body>",
            "<h1>Available Directories</h1>",
            "<ul>",
        ]
        for name in self._sorted_names(list(self._directories)):
            escaped = html.escape(name, quote=True)
            lines.append(f'<li><a href="/{escaped}/">/{escaped}</a></li>')
        lines.extend(["</ul>", "</body>", "</html>"])
        return "\n".join(lines) + "\n"

    def render_listing(self, resolution: Resolution) -> str:
        if resolution.path is None:
            raise ValueError("Directory listing needs a resolved path")

        names = self._sorted_names([entry.name for entry in resolution.path.iterdir()])
        prefix = resolution.request_path.rstrip("/")
        lines = [
            "<!DOCTYPE html>",
            "<html>",
            "<head><title>Directory Listing</title></head>",
            "<body>",
            "<h1>Directory Contents</h1>",
            "<ul>",
        ]
        for name in names:
            link = html.escape(f"{prefix}/{name}", quote=True)
            lines.append(f'<li><a href="{link}">{html.escape(name)}</a></li>')
        lines.extend(["</ul>", "</body>", "</html>"])
        return "\n".join(lines) + "\n"

    @classmethod
    def parse_range(cls, header: str | None, size: int) -> tuple[int, int] | None:
        """Return the inclusive ``(start, end)`` of a satisfiable single range.

        Suffix ranges, multiple ranges and out-of-bounds values yield ``None``
        so the caller serves the whole file.
        """
        if not header:
            return None
        match = cls._RANGE_REGEX.match(header.strip())
        if match is None:
            return None
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else size - 1
        if start > end or end >= size:
            return None
        return start, end


@final
class FileServer:
    CHUNK_SIZE: ClassVar[int] = 1024 * 1024

    def __init__(
        self,
        resolver: FileServerResolver,
        logger: logging.Logger,
        host: str = "0.0.0.0",
        port: int = 8000,
    ) -> None:
        self._resolver = resolver
        self._logger = logger
        self._host = host
        self._port = int(port)
        self._server: ThreadingHTTPServer | None = None
        self._thread: Thread | None = None

    @property
    def port(self) -> int:
        server = self._server
        if server is None:
            return self._port
        return int(server.server_address[1])

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def directory_table(self) -> str:
        rows = [
            (f"/{name}", str(path), "yes" if path.is_dir() else "missing")
            for name, path in sorted(self._resolver.directories.items())
        ]
        return tabulate(rows, headers=["URL", "Directory", "Present"], tablefmt="fancy_outline")

    def start(self) -> None:
        if self._server is not None:
            return

        handler_cls = self._build_handler()
        server = ThreadingHTTPServer((self._host, self._port), handler_cls)
        server.daemon_threads = True
        thread = Thread(target=server.serve_forever, name="fpkgi-http", daemon=True)
        thread.start()

        self._server = server
        self._thread = thread
        self._logger.info(
            "Listening on http://%s:%d", self._host, int(server.server_address[1])
        )
        self._logger.info("Serving directories:\n%s", self.directory_table())

    def stop(self) -> None:
        server = self._server
        if server is None:
            return

        self._server = None
        thread = self._thread
        self._thread = None

        server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join(timeout=2.0)
        self._logger.debug("File server stopped")

    def _build_handler(self) -> type[BaseHTTPRequestHandler]:
        resolver = self._resolver
        logger = self._logger
        chunk_size = self.CHUNK_SIZE

        class _Handler(BaseHTTPRequestHandler):
            server_version: str = "FpkgiServer/1.0"
            sys_version: str = ""
            protocol_version: str = "HTTP/1.1"

            _status: int = 0
            _bytes_sent: int = 0

            def do_HEAD(self) -> None:
                self._dispatch(send_body=False)

            def do_GET(self) -> None:
                self._dispatch(send_body=True)

            def _dispatch(self, send_body: bool) -> None:
                self._status = 0
                self._bytes_sent = 0
                try:
                    self._route(send_body)
                except (BrokenPipeError, ConnectionResetError) as exc:
                    logger.debug("Client %s disconnected: %s", self.client_address[0], exc)
                    self.close_connection = True
                finally:
                    logger.info(
                        '%s "%s %s" %d %d',
                        self.client_address[0],
                        self.command,
                        self.path,
                        self._status,
                        self._bytes_sent,
                    )

            def _route(self, send_body: bool) -> None:
                try:
                    resolution = resolver.resolve(self.path)
                    if resolution.kind is ResolutionKind.ROOT:
                        self._write_html(resolver.render_root(), send_body)
                        return
                    if resolution.kind is ResolutionKind.DIRECTORY:
                        self._write_html(resolver.render_listing(resolution), send_body)
                        return
                except OSError as exc:
                    logger.warning("Error resolving %s: %s", self.path, exc)
                    self._write_text(500, "Error reading directory", send_body)
                    return

                if resolution.kind is ResolutionKind.REDIRECT and resolution.location:
                    self.send_response(308)
                    self.send_header("Location", resolution.location)
                    self.send_header("Content-Length", "0")
                    self.end_headers()
                    return
                if resolution.kind is ResolutionKind.FILE and resolution.path is not None:
                    self._send_file(resolution.path, send_body)
                    return
                self._write_text(404, "404 - Not Found", send_body)

            def _send_file(self, path: Path, send_body: bool) -> None:
                try:
                    stream = path.open("rb")
                except OSError as exc:
                    logger.warning("Error opening %s: %s", path, exc)
                    self._write_text(500, "Error reading file", send_body)
                    return

                with stream:
                    stat = os.fstat(stream.fileno())
                    size = int(stat.st_size)
                    byte_range = resolver.parse_range(self.headers.get("Range"), size)
                    if byte_range is None:
                        start, end = 0, size - 1
                        self.send_response(200)
                    else:
                        start, end = byte_range
                        self.send_response(206)
                        self.send_header("Content-Range", f"bytes {start}-{end}/{size}")
                    length = end - start + 1
                    self.send_header("Accept-Ranges", "bytes")
                    self.send_header("Content-Type", "application/octet-stream")
                    self.send_header("Content-Length", str(length))
                    self.send_header("Last-Modified", formatdate(stat.st_mtime, usegmt=True))
                    self.end_headers()
                    if send_body:
                        self._copy(stream, start, length)

            def _copy(self, stream: BinaryIO, start: int, length: int) -> None:
                _ = stream.seek(start)
                remaining = length
                while remaining > 0:
                    chunk = stream.read(min(chunk_size, remaining))
                    if not chunk:
                        break
                    _ = self.wfile.write(chunk)
                    self._bytes_sent += len(chunk)
                    remaining -= len(chunk)

            def _write_html(self, body_text: str, send_body: bool) -> None:
                self._write(
                    200,
                    "text/html; charset=utf-8",
                    body_text.encode("utf-8", errors="surrogateescape"),
                    send_body,
                )

            def _write_text(self, status: int, message: str, send_body: bool) -> None:
                self._write(status, "text/plain; charset=utf-8", message.encode("utf-8"), send_body)

            def _write(self, status: int, content_type: str, body: bytes, send_body: bool) -> None:
                self.send_response(status)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                if send_body:
                    _ = self.wfile.write(body)
                    self._bytes_sent += len(body)

            @override
            def log_request(self, code: int | str = "-", size: int | str = "-") -> None:
                if isinstance(code, int):
                    self._status = int(code)

            @override
            def log_message(self, format: str, *args: object) -> None:
                logger.debug("HTTP: " + format, *args)

        return _Handler
