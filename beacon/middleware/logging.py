"""
Logging setup and the notification event journal.

Two outputs:
    beacon_YYYYMMDD.log    everything the "beacon" logger records
    events_YYYYMMDD.jsonl  one line per bus event, for replaying what the
                           tray was asked to do and what taps did
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path

from beacon.core.bus import MiddlewareNext
from beacon.core.config import LoggingConfig
from beacon.core.events import Event

CONSOLE_FORMAT = "[%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    config: LoggingConfig | None = None,
    verbose: bool = False,
    file_level: int = logging.DEBUG,
) -> logging.Logger:
    """
    Configure the "beacon" logger from the logging config section.

    Replaces (and closes) handlers from an earlier call, so the CLI can
    call this once per command without stacking output.

    Args:
        config: Log directory and console level (default: LoggingConfig())
        verbose: Force DEBUG on the console
        file_level: Minimum level written to the dated log file
    """
    config = config or LoggingConfig()
    log_dir = Path(config.dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("beacon")
    logger.setLevel(logging.DEBUG)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else config.console_level.upper())
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    log_file = log_dir / f"beacon_{date.today():%Y%m%d}.log"
    to_file = logging.FileHandler(log_file, encoding="utf-8")
    to_file.setLevel(file_level)
    to_file.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(to_file)

    logger.debug(f"Logging to {log_file}")
    return logger


class EventJournal:
    """
    Bus middleware appending each event to a dated JSON lines file.

    Usage:
        journal = EventJournal(Path("~/.beacon/logs"))
        service.use(journal.middleware)

    A record is the event's own data flattened next to its envelope:
        {"at": "...", "event": "notification:scheduled", "id": "...",
         "parent": null, "source": "service", "entity_id": "task_1", ...}
    Values JSON cannot hold (datetimes, enums) are written as strings.
    """

    def __init__(self, log_dir: Path, enabled: bool = True) -> None:
        self._log_dir = Path(log_dir).expanduser()
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._enabled = enabled
        self._logger = logging.getLogger("beacon.events")

    def path_for(self, day: date) -> Path:
        return self._log_dir / f"events_{day:%Y%m%d}.jsonl"

    def middleware(self, event: Event, next_handler: MiddlewareNext) -> Event:
        self._logger.debug(f"{event.type} {sorted(event.data)}")
        if self._enabled:
            self._append(event)
        return next_handler(event)

    def _append(self, event: Event) -> None:
        at = datetime.fromtimestamp(event.timestamp)
        record = {
            **event.data,
            "at": at.isoformat(),
            "event": event.type,
            "id": event.id,
            "parent": event.parent_id,
            "source": event.source,
        }
        line = json.dumps(record, default=str, ensure_ascii=False)
        try:
            with self.path_for(at.date()).open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            self._logger.warning(f"Event journal write failed: {e}")
