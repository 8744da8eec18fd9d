"""Closed archive timetable.

The archive is "closed" while the wall-clock hour in the configured zone
falls inside the daily window [start_hour, end_hour). The window may wrap
past midnight (start_hour > end_hour), and start_hour == end_hour means
closed all day.

The zone conversion is an injected callable (see WallClock) so the
evaluator and the countdown stay pure functions of (config, now).
"""

import logging
from datetime import datetime, time, timezone
from functools import lru_cache
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from archive_gate.models.entities import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    ClosedHoursConfig,
    CountdownValue,
    GateSnapshot,
    GateState,
    LaunchCountdownValue,
)

logger = logging.getLogger(__name__)

# (now, zone name or None) -> wall-clock time in that zone
WallClock = Callable[[datetime, Optional[str]], time]


def utc_now() -> datetime:
    """Current instant as an aware datetime."""
    return datetime.now(timezone.utc)


@lru_cache(maxsize=64)
def resolve_zone(name: Optional[str]) -> Optional[ZoneInfo]:
    """Look up an IANA zone, or None for local time.

    Unknown names fall back to local time; the warning is logged once per name.
    """
    if not name or not name.strip():
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        logger.warning(f"Unknown time zone '{name}', falling back to local time: {e}")
        return None


def zone_wall_clock(now: datetime, time_zone: Optional[str]) -> time:
    """Wall-clock time of `now` in `time_zone` (local zone when None or unknown).

    Naive datetimes are taken as local time.
    """
    zone = resolve_zone(time_zone)
    local = now.astimezone(zone) if zone is not None else now.astimezone()
    return local.time().replace(microsecond=0)


def _is_closed_at_hour(config: ClosedHoursConfig, hour: int) -> bool:
    if not config.enabled:
        return False
    start, end = config.start_hour, config.end_hour
    if config.wraps_midnight:
        return hour >= start or hour < end
    if start < end:
        return start <= hour < end
    # start == end: closed all day
    return True


def _seconds_until_hour(wall: time, target_hour: int) -> int:
    delta = (target_hour - wall.hour) * SECONDS_PER_HOUR - wall.minute * SECONDS_PER_MINUTE - wall.second
    if delta <= 0:
        delta += SECONDS_PER_DAY
    return delta


def is_in_closed_hours(
    config: ClosedHoursConfig,
    now: Optional[datetime] = None,
    wall_clock: WallClock = zone_wall_clock,
) -> bool:
    """True when `now` falls inside the closed window."""
    if not config.enabled:
        return False
    wall = wall_clock(now or utc_now(), config.effective_time_zone)
    return _is_closed_at_hour(config, wall.hour)


def time_until_transition(
    config: ClosedHoursConfig,
    now: Optional[datetime] = None,
    wall_clock: WallClock = zone_wall_clock,
) -> Optional[CountdownValue]:
    """Time remaining until the closed/open state next flips.

    While closed this counts to end_hour, while open to start_hour. Exactly on
    a boundary the value is the full length of the period just entered.
    Returns None when the gate is disabled.
    """
    if not config.enabled:
        return None
    wall = wall_clock(now or utc_now(), config.effective_time_zone)
    target = config.end_hour if _is_closed_at_hour(config, wall.hour) else config.start_hour
    return CountdownValue.from_seconds(_seconds_until_hour(wall, target))


def evaluate_gate(
    config: ClosedHoursConfig,
    now: Optional[datetime] = None,
    wall_clock: WallClock = zone_wall_clock,
) -> GateSnapshot:
    """Evaluate closed state and countdown from a single wall-clock reading."""
    now = now or utc_now()
    wall = wall_clock(now, config.effective_time_zone)

    # Both values come from the same reading so they agree at a boundary
    fixed: WallClock = lambda _now, _zone: wall
    closed = is_in_closed_hours(config, now, fixed)

    return GateSnapshot(
        is_closed=closed,
        state=GateState.CLOSED if closed else GateState.OPEN,
        remaining=time_until_transition(config, now, fixed),
        evaluated_at=now,
        time_zone=config.effective_time_zone,
        closed_hours_label=closed_hours_label(config),
    )


def format_hour_12(hour: int) -> str:
    """Format 0-23 as e.g. '3:00AM', '12:00PM'."""
    h = hour % 12 or 12
    suffix = "AM" if hour < 12 else "PM"
    return f"{h}:00{suffix}"


def closed_hours_label(config: ClosedHoursConfig) -> Optional[str]:
    """Human-readable closed window, e.g. '3:00AM – 6:00AM UTC'."""
    if not config.enabled:
        return None
    label = f"{format_hour_12(config.start_hour)} – {format_hour_12(config.end_hour)}"
    if config.effective_time_zone:
        label += f" {config.effective_time_zone}"
    return label


def time_until_launch(launch_at: datetime, now: Optional[datetime] = None) -> LaunchCountdownValue:
    """Days/hours/minutes/seconds until `launch_at`, zero once it has passed.

    Naive datetimes on either side are taken as local time.
    """
    now = now or utc_now()
    difference = launch_at.astimezone() - now.astimezone()
    return LaunchCountdownValue.from_seconds(int(difference.total_seconds()))
