"""Time-series bucketing for the dashboard charts.

Every function returns a new list of :class:`SeriesPoint` sorted
ascending by date key and leaves its input untouched, so re-running on
the same input always gives the same series.

Trades are attributed to their realised date (close date, falling back
to the open date).  Trades with no parsable date are skipped.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable

from journal_analytics.core.enums import Period

from .record import Trade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesPoint:
    """One chart point.  ``label`` names the value in serialised output."""

    date: str
    value: float
    label: str = "pnl"

    def to_dict(self) -> dict[str, float | str]:
        return {"date": self.date, self.label: self.value}


def _trade_date(trade: Trade) -> date | None:
    key = trade.realized_date
    if not key:
        return None
    try:
        return date.fromisoformat(key)
    except ValueError:
        logger.warning("Skipping trade %s with unparsable date %r", trade.trade_id, key)
        return None


def _week_key(day: date) -> str:
    return (day - timedelta(days=day.weekday())).isoformat()


def _month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


_PERIOD_KEYS: dict[Period, Callable[[date], str]] = {
    Period.DAILY: date.isoformat,
    Period.WEEKLY: _week_key,
    Period.MONTHLY: _month_key,
}


def bucket_pnl(trades: Iterable[Trade], period: Period = Period.DAILY) -> list[SeriesPoint]:
    """Summed net P&L per period, ascending by period key."""
    key_of = _PERIOD_KEYS[period]
    sums: dict[str, float] = defaultdict(float)
    for trade in trades:
        day = _trade_date(trade)
        if day is None:
            continue
        sums[key_of(day)] += trade.net_pnl
    return [SeriesPoint(k, sums[k]) for k in sorted(sums)]


def bucket_daily(trades: Iterable[Trade]) -> list[SeriesPoint]:
    """Net P&L per calendar day (``YYYY-MM-DD``)."""
    return bucket_pnl(trades, Period.DAILY)


def bucket_weekly(trades: Iterable[Trade]) -> list[SeriesPoint]:
    """Net P&L per ISO week, keyed by the week's Monday."""
    return bucket_pnl(trades, Period.WEEKLY)


def bucket_monthly(trades: Iterable[Trade]) -> list[SeriesPoint]:
    """Net P&L per month (``YYYY-MM``)."""
    return bucket_pnl(trades, Period.MONTHLY)


def daily_trade_counts(trades: Iterable[Trade]) -> list[SeriesPoint]:
    counts: dict[str, int] = defaultdict(int)
    for trade in trades:
        day = _trade_date(trade)
        if day is not None:
            counts[day.isoformat()] += 1
    return [SeriesPoint(k, float(counts[k]), "trades") for k in sorted(counts)]


def cumulative(series: Iterable[SeriesPoint]) -> list[SeriesPoint]:
    """Prefix sum: each point becomes the running total up to itself."""
    running = 0.0
    out = []
    for point in series:
        running += point.value
        out.append(SeriesPoint(point.date, running, point.label))
    return out


def equity_curve(trades: Iterable[Trade], *, starting_balance: float = 0.0) -> list[SeriesPoint]:
    """Running P&L with one point per trade, in realised-date order."""
    dated = []
    for trade in trades:
        day = _trade_date(trade)
        if day is not None:
            dated.append((day, trade))
    dated.sort(key=lambda pair: pair[0])
    running = starting_balance
    out = []
    for day, trade in dated:
        running += trade.net_pnl
        out.append(SeriesPoint(day.isoformat(), running, "equity"))
    return out


def drawdown_series(equity: Iterable[SeriesPoint]) -> list[SeriesPoint]:
    """Distance below the running peak (zero or negative).  Peak starts at 0."""
    peak = 0.0
    out = []
    for point in equity:
        peak = max(peak, point.value)
        out.append(SeriesPoint(point.date, point.value - peak, "drawdown"))
    return out


def _day_streaks(daily: Iterable[SeriesPoint], sign: int) -> list[SeriesPoint]:
    current = best = 0
    out = []
    for point in daily:
        if point.value * sign > 0:
            current += 1
        elif point.value * sign < 0:
            current = 0
        # breakeven days leave the streak unchanged
        best = max(best, current)
        out.append(SeriesPoint(point.date, float(best), "streak"))
    return out


def winning_day_streaks(daily: Iterable[SeriesPoint]) -> list[SeriesPoint]:
    """Longest run of green days so far, per day."""
    return _day_streaks(daily, 1)


def losing_day_streaks(daily: Iterable[SeriesPoint]) -> list[SeriesPoint]:
    """Longest run of red days so far, per day."""
    return _day_streaks(daily, -1)
