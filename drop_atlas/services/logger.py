from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(slots=True)
class AppLoggerBundle:
    app: logging.Logger
    latest_log_path: Path | None


def _rotate_latest_log(logs_dir: Path, keep_archives: int = 5) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)
    latest = logs_dir / "latest.log"
    if latest.exists():
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        archived = logs_dir / f"latest_{stamp}.log"
        latest.replace(archived)

    archives = sorted(
        [path for path in logs_dir.glob("latest_*.log") if path.is_file()],
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for stale in archives[keep_archives:]:
        stale.unlink(missing_ok=True)
    return latest


def configure_logging(logs_dir: Path | None = None, level: int = logging.WARNING) -> AppLoggerBundle:
    """Attach handlers to the ``drop_atlas`` logger; module loggers inherit them.

    Without a directory only the stream handler is installed.
    """
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    app_logger = logging.getLogger("drop_atlas")
    app_logger.setLevel(level)
    app_logger.handlers.clear()
    app_logger.propagate = False

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    app_logger.addHandler(stream_handler)

    latest: Path | None = None
    if logs_dir is not None:
        latest = _rotate_latest_log(logs_dir)
        file_handler = logging.FileHandler(latest, mode="w", encoding="utf-8")
        file_handler.setFormatter(formatter)
        # The log file always gets the build summaries.
        file_handler.setLevel(logging.INFO)
        app_logger.addHandler(file_handler)
        app_logger.setLevel(min(level, logging.INFO))
        stream_handler.setLevel(level)

    return AppLoggerBundle(app=app_logger, latest_log_path=latest)
