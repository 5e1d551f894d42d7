"""Timezone normalisation for day bucketing and session checks.

Turns a trade's timestamp into a ``(day_key, weekday, minutes_of_day)``
triple under one of three timezone specs:

* ``int``: a fixed UTC offset in minutes.  The offset is added to the
  instant and the calendar fields are read as if in UTC.
* ``str``: an IANA zone name (``"America/New_York"``), resolved with
  :mod:`zoneinfo` so daylight-saving transitions are honoured.
* ``None``: the evaluating environment's local zone.

Stored timestamps without an explicit offset are UTC wall-clock
instants.  The conversion is applied exactly once; with
``apply_in=ApplyIn.LOCAL`` the configured zone is ignored entirely.

Malformed timestamps never raise.  They resolve against the current
time and set ``fallback_used`` on the result so callers and tests can
tell a real day key from a substituted one.

Usage::

    fields = resolve_time_fields("2024-03-10T09:30", -300)
    fields.day_key         # "2024-03-10"
    fields.weekday         # 0 (Sunday)
    fields.minutes_of_day  # 270
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from journal_analytics.core.enums import ApplyIn

from .record import Trade, parse_date

logger = logging.getLogger(__name__)

TimezoneSpec = Union[int, str, None]

MINUTES_PER_DAY = 1440

_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.(\d{1,6}))?)?$")
_OFFSET_SUFFIX = re.compile(r"(Z|[+-]\d{2}:?\d{2})$")


@dataclass(frozen=True)
class TimeFields:
    """Calendar fields of one instant in the evaluation zone."""

    day_key: str          # YYYY-MM-DD
    weekday: int          # 0 = Sunday ... 6 = Saturday
    minutes_of_day: int   # 0 ... 1439
    fallback_used: bool = False


# ------------------------------------------------------------------ #
# Parsing                                                              #
# ------------------------------------------------------------------ #

def parse_clock(text: str | None) -> tuple[int, int, int] | None:
    """Parse ``HH:MM`` / ``HH:MM:SS`` into ``(hour, minute, second)``."""
    if not text:
        return None
    match = _CLOCK.match(text.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return hour, minute, second


def clock_to_minutes(text: str | None) -> int | None:
    """Minutes since midnight for an ``HH:MM`` clock string."""
    parsed = parse_clock(text)
    if parsed is None:
        return None
    return parsed[0] * 60 + parsed[1]


def parse_timestamp(text: str | None) -> datetime | None:
    """Parse a stored date / datetime string.

    Accepts ``YYYY-MM-DD``, ``MM/DD/YYYY``, either followed by ``T`` or a
    space and a clock time, and an optional ``Z`` / ``±HH:MM`` suffix.
    Returns a naive datetime for offset-less input, ``None`` when the
    text cannot be parsed.
    """
    if not text:
        return None
    raw = text.strip()

    tzinfo = None
    suffix = _OFFSET_SUFFIX.search(raw)
    if suffix and ("T" in raw or " " in raw):
        token = suffix.group(1)
        raw = raw[: suffix.start()].strip()
        if token == "Z":
            tzinfo = timezone.utc
        else:
            sign = -1 if token[0] == "-" else 1
            digits = token[1:].replace(":", "")
            tzinfo = timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))

    if "T" in raw:
        date_part, _, clock_part = raw.partition("T")
    elif " " in raw:
        date_part, _, clock_part = raw.partition(" ")
    else:
        date_part, clock_part = raw, ""

    day = parse_date(date_part)
    if day is None:
        return None

    hour = minute = second = micro = 0
    clock_part = clock_part.strip()
    if clock_part:
        match = _CLOCK.match(clock_part)
        if not match:
            return None
        hour, minute = int(match.group(1)), int(match.group(2))
        second = int(match.group(3) or 0)
        micro = int((match.group(4) or "0").ljust(6, "0"))

    try:
        return datetime(day.year, day.month, day.day, hour, minute, second, micro, tzinfo=tzinfo)
    except ValueError:
        return None


def trade_timestamp(trade: Trade) -> str | None:
    """The instant a trade is attributed to, as a timestamp string.

    Prefers the open date combined with the entry clock time, then the
    close date.  Returns ``None`` when the trade carries neither.
    """
    open_date = (trade.open_date or "").strip()
    if open_date:
        if trade.entry_time and parse_clock(trade.entry_time) is not None:
            date_part = open_date.split("T")[0].split(" ")[0]
            return f"{date_part}T{trade.entry_time.strip()}"
        return open_date
    close_date = (trade.close_date or "").strip()
    return close_date or None


# ------------------------------------------------------------------ #
# Resolution                                                           #
# ------------------------------------------------------------------ #

def _as_offset(spec: TimezoneSpec) -> int | None:
    if isinstance(spec, bool):
        return None
    if isinstance(spec, int):
        return spec
    if isinstance(spec, float) and spec.is_integer():
        return int(spec)
    if isinstance(spec, str) and re.fullmatch(r"[+-]?\d+", spec.strip()):
        return int(spec.strip())
    return None


def _localise(instant: datetime, spec: TimezoneSpec, apply_in: ApplyIn) -> datetime:
    """Express an aware UTC instant in the evaluation zone, once."""
    if apply_in == ApplyIn.LOCAL or spec is None or spec == "":
        return instant.astimezone()

    offset = _as_offset(spec)
    if offset is not None:
        return (instant + timedelta(minutes=offset)).replace(tzinfo=None)

    try:
        return instant.astimezone(ZoneInfo(str(spec)))
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # Region names such as "America" resolve to directories
        logger.warning("Unknown timezone %r, evaluating in UTC", spec)
        return instant


def resolve_time_fields(
    timestamp: datetime | str | None,
    tz_spec: TimezoneSpec = None,
    *,
    apply_in: ApplyIn = ApplyIn.CONFIGURED,
    now: datetime | None = None,
) -> TimeFields:
    """Resolve an instant to ``(day_key, weekday, minutes_of_day)``.

    Parameters
    ----------
    timestamp : datetime | str | None
        Aware or naive datetime, or a stored timestamp string.  Naive
        values are UTC.
    tz_spec : int | str | None
        Fixed UTC offset in minutes, IANA zone name, or ``None`` for the
        local zone.
    apply_in : ApplyIn
        ``ApplyIn.LOCAL`` ignores ``tz_spec`` and uses the local zone.
    now : datetime | None
        Substitute for an unparsable timestamp.  Defaults to the
        current UTC time.
    """
    fallback = False
    if isinstance(timestamp, datetime):
        parsed = timestamp
    else:
        parsed = parse_timestamp(timestamp)
    if parsed is None:
        logger.warning("Unparsable timestamp %r, falling back to current time", timestamp)
        parsed = now or datetime.now(timezone.utc)
        fallback = True

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    instant = parsed.astimezone(timezone.utc)

    local = _localise(instant, tz_spec, apply_in)
    minutes = min(max(local.hour * 60 + local.minute, 0), MINUTES_PER_DAY - 1)
    return TimeFields(
        day_key=f"{local.year:04d}-{local.month:02d}-{local.day:02d}",
        weekday=(local.weekday() + 1) % 7,
        minutes_of_day=minutes,
        fallback_used=fallback,
    )


def resolve_trade_time(
    trade: Trade,
    tz_spec: TimezoneSpec = None,
    *,
    apply_in: ApplyIn = ApplyIn.CONFIGURED,
    now: datetime | None = None,
) -> TimeFields:
    """Resolve the time fields of a trade's attributed instant."""
    return resolve_time_fields(trade_timestamp(trade), tz_spec, apply_in=apply_in, now=now)


# ------------------------------------------------------------------ #
# Fixed-offset helpers for broker exports                             #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class TimezoneOption:
    label: str
    offset_minutes: int
    region: str


TIMEZONE_OPTIONS: tuple[TimezoneOption, ...] = (
    TimezoneOption("Eastern Time (ET)", -300, "North America"),
    TimezoneOption("Central Time (CT)", -360, "North America"),
    TimezoneOption("Mountain Time (MT)", -420, "North America"),
    TimezoneOption("Pacific Time (PT)", -480, "North America"),
    TimezoneOption("Alaska Time (AKST)", -540, "North America"),
    TimezoneOption("Hawaii Time (HST)", -600, "North America"),
    TimezoneOption("Atlantic Time (AST)", -240, "North America"),
    TimezoneOption("Newfoundland Time (NST)", -210, "North America"),
    TimezoneOption("Greenwich Mean Time (GMT)", 0, "Europe"),
    TimezoneOption("Central European Time (CET)", 60, "Europe"),
    TimezoneOption("Eastern European Time (EET)", 120, "Europe"),
    TimezoneOption("Moscow Time (MSK)", 180, "Europe"),
    TimezoneOption("India Standard Time (IST)", 330, "Asia"),
    TimezoneOption("Nepal Time (NPT)", 345, "Asia"),
    TimezoneOption("China Standard Time (CST)", 480, "Asia"),
    TimezoneOption("Japan Standard Time (JST)", 540, "Asia"),
    TimezoneOption("Arabian Standard Time (AST)", 240, "Asia"),
    TimezoneOption("Australian Eastern Time (AEST)", 600, "Australia & Pacific"),
    TimezoneOption("Australian Central Time (ACST)", 570, "Australia & Pacific"),
    TimezoneOption("New Zealand Time (NZST)", 720, "Australia & Pacific"),
    TimezoneOption("Brazil Time (BRT)", -180, "South America"),
    TimezoneOption("Colombia Time (COT)", -300, "South America"),
)

_BROKER_DEFAULTS: dict[str, int] = {
    "tradovate": 330,
    "ninjatrader": -360,
    "interactivebrokers": 0,
    "thinkorswim": -300,
    "webull": -300,
    "charles_schwab": -300,
    "fidelity": -300,
}


def local_offset_minutes() -> int:
    """Current UTC offset of the evaluating environment, in minutes."""
    offset = datetime.now(timezone.utc).astimezone().utcoffset() or timedelta(0)
    return int(offset.total_seconds() // 60)


def broker_timezone_default(broker_id: str) -> int:
    """Default export offset for a broker; the local offset if unknown."""
    return _BROKER_DEFAULTS.get(broker_id, local_offset_minutes())


def format_timezone_offset(offset_minutes: int) -> str:
    """Render an offset as ``(UTC+05:30)``."""
    hours, minutes = divmod(abs(offset_minutes), 60)
    sign = "+" if offset_minutes >= 0 else "-"
    return f"(UTC{sign}{hours:02d}:{minutes:02d})"


def _iso_utc(instant: datetime) -> str:
    return instant.strftime("%Y-%m-%dT%H:%M:%S.") + f"{instant.microsecond // 1000:03d}Z"


def convert_to_utc(text: str | None, source_offset_minutes: int) -> str:
    """Convert a wall-clock string in a fixed-offset zone to a UTC ISO string.

    Date-only input is midnight in the source zone.  Unparsable input
    yields the current time, as broker imports expect a value.
    """
    parsed = parse_timestamp(text)
    if parsed is None:
        logger.warning("Unparsable datetime %r, substituting current time", text)
        return _iso_utc(datetime.now(timezone.utc))
    wall = parsed.replace(tzinfo=None)
    return _iso_utc(wall - timedelta(minutes=source_offset_minutes))


def convert_from_utc(text: str | None, target_offset_minutes: int) -> str:
    """Render a UTC instant as ``YYYY-MM-DD HH:MM:SS`` in a fixed-offset zone."""
    if not text:
        return ""
    parsed = parse_timestamp(text)
    if parsed is None:
        return text
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    shifted = parsed + timedelta(minutes=target_offset_minutes)
    return shifted.strftime("%Y-%m-%d %H:%M:%S")
