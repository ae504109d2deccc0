from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, final

Catalog = dict[str, dict[str, dict[str, Any]]]


@final
class FpkgiJsonExporter:
    def __init__(self, output_dir: Path, logger: logging.Logger) -> None:
        self._output_dir = output_dir
        self._logger = logger

    def destination(self, category: str) -> Path:
        return self._output_dir / f"{category}.json"

    @staticmethod
    def render(entries: Mapping[str, Mapping[str, Any]]) -> str:
        return (
            json.dumps({"DATA": entries}, ensure_ascii=True, indent=2, sort_keys=True) + "\n"
        )

    def export(self, catalog: Catalog) -> list[Path]:
        self._output_dir.mkdir(parents=True, exist_ok=True)

        exported: list[Path] = []
        for category, entries in sorted(catalog.items()):
            destination = self.destination(category)
            tmp = destination.with_suffix(destination.suffix + ".tmp")
            _ = tmp.write_text(self.render(entries), encoding="utf-8")
            _ = tmp.replace(destination)
            exported.append(destination)
            self._logger.info("Wrote %s data to %s (%d entries)", category, destination, len(entries))
        return exported
