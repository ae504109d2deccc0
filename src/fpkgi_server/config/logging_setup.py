from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import override


class _DemoteApschedulerSchedulerInfoFilter(logging.Filter):
    @override
    def filter(self, record: logging.LogRecord) -> bool:
        if (
            record.name in {"apscheduler.scheduler", "apscheduler.executors.default"}
            and record.levelno == logging.INFO
        ):
            record.levelno = logging.DEBUG
            record.levelname = logging.getLevelName(logging.DEBUG)
        return True


def configure_logging(level: str, error_log_path: Path | None = None) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(numeric_level)
    root.addHandler(console)

    if error_log_path is not None:
        error_log_path.parent.mkdir(parents=True, exist_ok=True)
        error_file = RotatingFileHandler(
            error_log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        error_file.setFormatter(formatter)
        error_file.setLevel(logging.WARNING)
        root.addHandler(error_file)

    # The polling notifier ticks every two seconds; keep the scheduler's
    # per-run INFO lines out of the console unless LOG_LEVEL=debug.
    for logger_name in ("apscheduler.scheduler", "apscheduler.executors.default"):
        logger = logging.getLogger(logger_name)
        logger.filters.clear()
        logger.addFilter(_DemoteApschedulerSchedulerInfoFilter())
