from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    for name in ("pkgs", "out", "icons", "external"):
        (tmp_path / name).mkdir(parents=True, exist_ok=True)
    return tmp_path
