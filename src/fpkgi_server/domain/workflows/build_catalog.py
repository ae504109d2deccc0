from __future__ import annotations

import logging
import traceback
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, ClassVar, final
from urllib.parse import quote

from filelock import FileLock, Timeout
from pydantic import ValidationError

from fpkgi_server.application.codecs.ps4_package import Ps4Package
from fpkgi_server.application.codecs.sfo_processor import SfoProcessor
from fpkgi_server.application.exporters.fpkgi_contract import FpkgiItem, FpkgiOverlayDocument
from fpkgi_server.application.exporters.fpkgi_json_exporter import Catalog, FpkgiJsonExporter
from fpkgi_server.config.settings_models import GenerateSettings
from fpkgi_server.domain.errors import FormatError, RebuildInProgressError
from fpkgi_server.domain.models.catalog_category import CatalogCategory, Region
from fpkgi_server.domain.models.results import BuildResult
from fpkgi_server.domain.protocols.package_opener_protocol import (
    PackageOpenerProtocol,
    PackageProtocol,
)
from fpkgi_server.domain.workflows.merge_overrides import merge_category

# Printable ASCII passes through; controls, space and non-ASCII bytes are encoded.
# Undecodable file name bytes come back from the filesystem as surrogates and are
# percent-encoded as the original bytes.
_URL_SAFE = "".join(chr(code) for code in range(0x21, 0x7F))


def encode_url_path(relative: str) -> str:
    return quote(relative, safe=_URL_SAFE, errors="surrogateescape")


def join_url(*parts: str) -> str:
    return "/".join(part for part in parts if part)


@dataclass(frozen=True, slots=True)
class IndexedPackage:
    category: CatalogCategory
    url: str
    entry: dict[str, Any]


@final
class CatalogBuilder:
    PACKAGE_SUFFIX: ClassVar[str] = ".pkg"
    OVERLAY_SUFFIX: ClassVar[str] = ".json"
    SFO_NAME: ClassVar[str] = "param.sfo"
    ICON_NAME: ClassVar[str] = "icon0.png"

    def __init__(
        self,
        settings: GenerateSettings,
        logger: logging.Logger,
        exporter: FpkgiJsonExporter | None = None,
        package_opener: PackageOpenerProtocol = Ps4Package.open,
        sfo_processor: SfoProcessor | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._exporter = exporter or FpkgiJsonExporter(settings.out.fs_path, logger)
        self._package_opener = package_opener
        self._sfo_processor = sfo_processor or SfoProcessor()
        self._lock = FileLock(str(settings.lock_path))

    def scan_packages(self) -> list[Path]:
        root = self._settings.packages.fs_path
        if not root.is_dir():
            self._logger.warning("Packages directory %s does not exist", root)
            return []
        return sorted(
            path
            for path in root.rglob(f"*{self.PACKAGE_SUFFIX}")
            if path.suffix == self.PACKAGE_SUFFIX and path.is_file()
        )

    def _save_icon(
        self, package_path: Path, relative: Path, package: PackageProtocol
    ) -> str | None:
        icons = self._settings.icons
        if icons is None:
            return None

        icon_relative = relative.parent / f"{relative.name}.png"
        destination = icons.fs_path / icon_relative
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            _ = package.save_file(self.ICON_NAME, destination)
            self._logger.debug("Extracted icon to %s", destination)
        except (FormatError, OSError) as exc:
            self._logger.info("No icon extracted for %s: %s", package_path, exc)

        return join_url(
            self._settings.base_url,
            icons.url_prefix,
            encode_url_path(icon_relative.as_posix()),
        )

    def index_package(self, path: Path) -> IndexedPackage | None:
        root = self._settings.packages.fs_path
        relative = path.relative_to(root)
        try:
            size = path.stat().st_size
        except OSError as exc:
            self._logger.error("Could not stat %s: %s", path, exc)
            return None

        pkg_url = join_url(
            self._settings.packages.url_prefix, encode_url_path(relative.as_posix())
        )

        try:
            package = self._package_opener(path)
        except (FormatError, OSError) as exc:
            self._logger.error("Failed to parse PKG %s: %s", path, exc)
            return None

        try:
            sfo = self._sfo_processor.process(package.get_file(self.SFO_NAME))
        except (FormatError, OSError) as exc:
            self._logger.error("Failed to read %s from %s: %s", self.SFO_NAME, path, exc)
            return None

        cover_url = self._save_icon(path, relative, package)
        item = FpkgiItem(
            title_id=sfo.get("TITLE_ID"),
            region=Region.from_content_id(package.content_id).value,
            name=sfo.get("TITLE"),
            version=sfo.get("APP_VER"),
            release=None,
            size=size,
            min_fw=None,
            cover_url=cover_url,
        )
        category = CatalogCategory.from_sfo_category(sfo.get("CATEGORY"))
        self._logger.debug("Indexed %s as %s", relative.as_posix(), category.value)
        return IndexedPackage(
            category=category,
            url=join_url(self._settings.base_url, pkg_url),
            entry=item.model_dump(mode="json"),
        )

    def _index_all(self, candidates: list[Path]) -> list[IndexedPackage | None]:
        workers = max(1, self._settings.workers)
        if workers == 1 or len(candidates) <= 1:
            return [self._guarded(path, partial(self.index_package, path)) for path in candidates]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fpkgi-index") as executor:
            futures = [executor.submit(self.index_package, path) for path in candidates]
            return [self._guarded(path, future.result) for path, future in zip(candidates, futures)]

    def _guarded(
        self, path: Path, index: Callable[[], IndexedPackage | None]
    ) -> IndexedPackage | None:
        try:
            return index()
        except Exception:
            self._logger.error(
                "Unexpected failure indexing %r\n%s", str(path), traceback.format_exc()
            )
            return None

    def _apply_overlays(self, catalog: Catalog) -> None:
        external = self._settings.external
        if external is None:
            return
        if not external.is_dir():
            self._logger.warning("External overrides directory %s does not exist", external)
            return

        for path in sorted(external.iterdir()):
            if path.suffix != self.OVERLAY_SUFFIX or not path.is_file():
                continue
            try:
                overlay = FpkgiOverlayDocument.model_validate_json(path.read_bytes())
            except (OSError, ValidationError) as exc:
                self._logger.warning("Skipping external file %s: %s", path, exc)
                continue

            category = path.stem
            merged = merge_category(catalog, category, overlay.DATA)
            self._logger.info(
                "%s %s with %d external entries from %s",
                "Merged" if merged else "Created",
                category,
                len(overlay.DATA),
                path,
            )

    def build(self) -> tuple[Catalog, int, int]:
        """Index every package and apply external overrides.

        Returns the catalog together with the indexed and failed counts.
        """
        catalog: Catalog = {category.value: {} for category in CatalogCategory}
        candidates = self.scan_packages()
        self._logger.info(
            "Indexing %d package(s) under %s", len(candidates), self._settings.packages.fs_path
        )

        indexed = 0
        failed = 0
        for result in self._index_all(candidates):
            if result is None:
                failed += 1
                continue
            catalog[result.category.value][result.url] = result.entry
            indexed += 1

        self._apply_overlays(catalog)
        return catalog, indexed, failed

    def __call__(self) -> BuildResult:
        self._settings.out.fs_path.mkdir(parents=True, exist_ok=True)
        try:
            _ = self._lock.acquire(timeout=self._settings.lock_timeout_seconds)
        except Timeout as exc:
            raise RebuildInProgressError(
                f"Another catalog build holds {self._settings.lock_path}"
            ) from exc

        try:
            catalog, indexed, failed = self.build()
            written = self._exporter.export(catalog)
            log_fn = self._logger.warning if failed else self._logger.info
            log_fn(
                "Catalog build completed: indexed: %d, failed: %d, categories: %d",
                indexed,
                failed,
                len(catalog),
            )
            return BuildResult(
                indexed=indexed,
                failed=failed,
                categories=tuple(sorted(catalog)),
                written_files=tuple(written),
            )
        finally:
            self._lock.release()
