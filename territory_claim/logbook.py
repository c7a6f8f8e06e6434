"""Bounded in-memory log of claim activity, for on-device debugging and export."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime

from territory_claim.models import DEFAULT_TZ
from territory_claim.timeutils import tzinfo_from_name

PACKAGE_LOGGER = "territory_claim"


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp_ms: int
    level: str
    message: str


class SessionLogbook(logging.Handler):
    """Logging handler that keeps the most recent ``max_entries`` records.

    Attach it to the ``territory_claim`` logger to capture everything the
    engine logs (points recorded, drift, closure, verdicts).
    """

    def __init__(self, max_entries: int = 200, level: int = logging.INFO, tz_name: str = DEFAULT_TZ) -> None:
        super().__init__(level=level)
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._entries_lock = threading.Lock()
        self._tz = tzinfo_from_name(tz_name)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            self.handleError(record)
            return
        entry = LogEntry(timestamp_ms=int(record.created * 1000), level=record.levelname, message=message)
        with self._entries_lock:
            self._entries.append(entry)

    @property
    def entries(self) -> list[LogEntry]:
        with self._entries_lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()

    def _fmt_time(self, timestamp_ms: int, pattern: str) -> str:
        return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=self._tz).strftime(pattern)

    def text(self) -> str:
        """Compact display form, one ``[HH:MM:SS] [LEVEL] message`` line per entry."""

        return "".join(f"[{self._fmt_time(e.timestamp_ms, '%H:%M:%S')}] [{e.level}] {e.message}\n" for e in self.entries)

    def export(self) -> str:
        """Full export with a header, suitable for sharing a field-test log."""

        entries = self.entries
        now = datetime.now(self._tz).strftime("%Y-%m-%d %H:%M:%S")
        lines = ["=== 圈地功能测试日志 ===", f"导出时间: {now}", f"日志条数: {len(entries)}", ""]
        for e in entries:
            lines.append(f"[{self._fmt_time(e.timestamp_ms, '%Y-%m-%d %H:%M:%S')}] [{e.level}] {e.message}")
        return "\n".join(lines) + "\n"

    def attach(self, logger_name: str = PACKAGE_LOGGER) -> SessionLogbook:
        target = logging.getLogger(logger_name)
        if target.getEffectiveLevel() > self.level:
            target.setLevel(self.level)
        target.addHandler(self)
        return self

    def detach(self, logger_name: str = PACKAGE_LOGGER) -> None:
        logging.getLogger(logger_name).removeHandler(self)
