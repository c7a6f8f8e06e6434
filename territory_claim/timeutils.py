"""Time parsing and formatting for fix logs and session read-outs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from typing import Iterable

from zoneinfo import ZoneInfo


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Resolve an IANA zone name for fix-log display.

    Args:
        tz_name: Zone name such as "Asia/Shanghai".

    Returns:
        The matching tzinfo.

    Raises:
        ValueError: If the zone is unknown to this system's tz database.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：Asia/Shanghai") from exc


def dt_from_epoch_ms(epoch_ms: int, tz_name: str) -> datetime:
    """Turn a fix timestamp into a local datetime.

    Args:
        epoch_ms: Fix timestamp in Unix milliseconds.
        tz_name: Zone to express the result in.

    Returns:
        Aware datetime in ``tz_name``.
    """

    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=tzinfo_from_name(tz_name))


def epoch_ms_from_dt(dt: datetime) -> int:
    """Turn a datetime back into fix-timestamp milliseconds.

    Args:
        dt: Any datetime; a naive one is read as UTC.

    Returns:
        Unix milliseconds.
    """

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp() * 1000)


def parse_dt(text: str, tz_name: str) -> datetime:
    """Parse a ``--since``/``--until`` bound such as ``2025-12-18 09:30:00``.

    ``T`` separators and explicit offsets are accepted.

    Args:
        text: User-supplied time text.
        tz_name: Zone applied to naive text, and the zone of the result.

    Returns:
        Aware datetime in ``tz_name``.

    Raises:
        ValueError: If the text is not an ISO-like datetime.
    """

    s = text.strip().replace("T", " ")
    tz = tzinfo_from_name(tz_name)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2025-12-18 09:30:00") from exc
    return dt.replace(tzinfo=tz) if dt.tzinfo is None else dt.astimezone(tz)


@dataclass(frozen=True, slots=True)
class DeltaStats:
    """Fix arrival interval stats (seconds)."""

    count: int
    min_s: float
    median_s: float
    p95_s: float
    max_s: float


def delta_stats(epoch_ms_sorted: Iterable[int]) -> DeltaStats | None:
    """Summarise the gaps between consecutive fix timestamps.

    Args:
        epoch_ms_sorted: Fix timestamps in ascending order.

    Returns:
        Interval stats, or None when there is no non-negative gap to measure.
    """

    ms = list(epoch_ms_sorted)
    deltas = sorted((ms[i] - ms[i - 1]) / 1000.0 for i in range(1, len(ms)) if ms[i] >= ms[i - 1])
    if not deltas:
        return None
    n = len(deltas)
    median = deltas[n // 2] if n % 2 == 1 else 0.5 * (deltas[n // 2 - 1] + deltas[n // 2])
    return DeltaStats(
        count=n,
        min_s=deltas[0],
        median_s=median,
        p95_s=deltas[int(0.95 * (n - 1))],
        max_s=deltas[-1],
    )


def format_duration(seconds: float) -> str:
    """Format a tracking duration as ``mm:ss`` (minutes may exceed 59)."""

    s = int(max(0.0, seconds))
    return f"{s // 60:02d}:{s % 60:02d}"


def format_distance(meters: float) -> str:
    """Human-readable distance: ``850 m`` below a kilometer, ``1.2 km`` above."""

    if meters >= 1000.0:
        return f"{meters / 1000.0:.1f} km"
    return f"{meters:.0f} m"
