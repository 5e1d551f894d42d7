"""Aggregate performance metrics over a list of trades.

Reduces trades to the headline numbers of the journal dashboard: win
rate, net P&L, average winner / loser, profit factor, expectancy, hold
time, streaks and closed-trade drawdown.

Conventions for degenerate input (never an exception, never NaN):

* empty input: every rate and ratio is 0
* no losing trades: profit factor is ``inf`` when there are winners,
  0 otherwise
* trades without usable entry / exit times are left out of hold-time
  statistics entirely (they do not count as zero-minute trades)

Usage::

    metrics = compute_metrics(trades)
    print(metrics.win_rate, format_profit_factor(metrics.profit_factor))
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .record import Trade, TradeMetadata, parse_date
from .timezones import MINUTES_PER_DAY, parse_clock, parse_timestamp

logger = logging.getLogger(__name__)

INFINITY_SYMBOL = "∞"


@dataclass(frozen=True)
class DerivedMetrics:
    """Computed statistics for one trade list.  Never persisted."""

    total: int = 0
    wins: int = 0
    losses: int = 0
    breakevens: int = 0
    win_rate: float = 0.0          # percent, 0-100
    net_pnl: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0        # magnitude, >= 0
    avg_winner: float = 0.0
    avg_loser: float = 0.0         # <= 0
    profit_factor: float = 0.0     # >= 0 or inf
    expectancy: float = 0.0
    max_win: float = 0.0
    max_loss: float = 0.0          # <= 0
    risk_reward_ratio: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    max_drawdown: float = 0.0      # magnitude, >= 0
    trades_with_hold_time: int = 0
    avg_hold_minutes: float = 0.0
    max_hold_minutes: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def profit_factor(gross_profit: float, gross_loss: float) -> float:
    """Gross profit over gross loss magnitude.

    ``inf`` when nothing was lost but something was won, 0 when neither.
    """
    if gross_loss > 0:
        return gross_profit / gross_loss
    return math.inf if gross_profit > 0 else 0.0


def format_profit_factor(value: float, *, decimals: int = 2) -> str:
    """Render a profit factor for display, ``inf`` as ``"∞"``."""
    if math.isinf(value):
        return INFINITY_SYMBOL
    return f"{value:.{decimals}f}"


def chronological(trades: Iterable[Trade]) -> list[Trade]:
    """Stable sort by realised date; same-day trades keep input order."""
    return sorted(trades, key=lambda t: t.realized_date)


# ------------------------------------------------------------------ #
# Hold time                                                            #
# ------------------------------------------------------------------ #

def _instant(date_text: str, clock_text: str | None) -> datetime | None:
    """Date combined with a clock time, naive UTC.

    The separate clock field wins; without one, a time carried inside
    ``date_text`` (``"2024-03-11 09:30:00"``) is used instead.
    """
    clock = parse_clock(clock_text)
    if clock is not None:
        day = parse_date(date_text)
        if day is None:
            return None
        return datetime(day.year, day.month, day.day, *clock)

    raw = (date_text or "").strip()
    if "T" not in raw and " " not in raw:
        return None
    stamp = parse_timestamp(raw)
    if stamp is not None and stamp.tzinfo is not None:
        stamp = stamp.astimezone(timezone.utc).replace(tzinfo=None)
    return stamp


def trade_hold_minutes(trade: Trade) -> float | None:
    """Minutes between entry and exit, floored at 0.

    Entry and exit come from ``entry_time`` / ``exit_time`` on the open /
    close dates, or from clock times embedded in the dates themselves.
    Returns ``None`` when either end has no usable time.  A negative span
    (exit before entry) is a data-quality fault and is clamped to 0.
    """
    entry = _instant(trade.open_date or trade.close_date, trade.entry_time)
    exit_ = _instant(trade.close_date or trade.open_date, trade.exit_time)
    if entry is None or exit_ is None:
        return None

    minutes = (exit_ - entry).total_seconds() / 60
    if minutes < 0:
        logger.warning(
            "Trade %s exits before it enters (%.1f min), clamping to 0",
            trade.trade_id, minutes,
        )
        return 0.0
    return minutes


def format_duration(minutes: float) -> str:
    """Render a hold time as ``"<1m"``, ``"45m"``, ``"2h 5m"`` or ``"1d 3h"``.

    Fractional minutes are dropped.  From one day up, leftover minutes
    are not shown.
    """
    if minutes < 1:
        return "<1m"
    total = int(minutes)
    days, rest = divmod(total, MINUTES_PER_DAY)
    hours, mins = divmod(rest, 60)
    if days:
        return f"{days}d {hours}h" if hours else f"{days}d"
    if hours:
        return f"{hours}h {mins}m" if mins else f"{hours}h"
    return f"{mins}m"


# ------------------------------------------------------------------ #
# Aggregation                                                          #
# ------------------------------------------------------------------ #

def compute_metrics(trades: Iterable[Trade]) -> DerivedMetrics:
    """Reduce a trade list to :class:`DerivedMetrics`.

    Pure and deterministic: the same input always yields an identical
    result, so callers may memoize on their side.
    """
    trades = list(trades)
    total = len(trades)
    if total == 0:
        return DerivedMetrics()

    wins = losses = 0
    gross_profit = gross_loss = net_pnl = 0.0
    max_win = max_loss = 0.0
    for trade in trades:
        pnl = trade.net_pnl
        net_pnl += pnl
        if pnl > 0:
            wins += 1
            gross_profit += pnl
            max_win = max(max_win, pnl)
        elif pnl < 0:
            losses += 1
            gross_loss += abs(pnl)
            max_loss = min(max_loss, pnl)

    win_rate = wins / total * 100
    avg_winner = gross_profit / wins if wins else 0.0
    avg_loser = -(gross_loss / losses) if losses else 0.0
    expectancy = (wins / total) * avg_winner + (losses / total) * avg_loser

    ordered = chronological(trades)
    best_wins, best_losses = _streaks(ordered)

    holds = [h for h in (trade_hold_minutes(t) for t in trades) if h is not None]

    return DerivedMetrics(
        total=total,
        wins=wins,
        losses=losses,
        breakevens=total - wins - losses,
        win_rate=win_rate,
        net_pnl=net_pnl,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        avg_winner=avg_winner,
        avg_loser=avg_loser,
        profit_factor=profit_factor(gross_profit, gross_loss),
        expectancy=expectancy,
        max_win=max_win,
        max_loss=max_loss,
        risk_reward_ratio=avg_winner / abs(avg_loser) if avg_loser else 0.0,
        max_consecutive_wins=best_wins,
        max_consecutive_losses=best_losses,
        max_drawdown=_max_drawdown(ordered),
        trades_with_hold_time=len(holds),
        avg_hold_minutes=sum(holds) / len(holds) if holds else 0.0,
        max_hold_minutes=max(holds) if holds else 0.0,
    )


def _streaks(trades: list[Trade]) -> tuple[int, int]:
    """Longest run of winners and of losers.  Breakevens extend neither."""
    current_w = current_l = best_w = best_l = 0
    for trade in trades:
        if trade.net_pnl > 0:
            current_w += 1
            current_l = 0
        elif trade.net_pnl < 0:
            current_l += 1
            current_w = 0
        best_w = max(best_w, current_w)
        best_l = max(best_l, current_l)
    return best_w, best_l


def _max_drawdown(trades: list[Trade]) -> float:
    """Largest peak-to-trough drop of running P&L (peak starts at 0)."""
    running = peak = worst = 0.0
    for trade in trades:
        running += trade.net_pnl
        peak = max(peak, running)
        worst = max(worst, peak - running)
    return worst


# ------------------------------------------------------------------ #
# Strategy models                                                      #
# ------------------------------------------------------------------ #

def trade_model(trade: Trade, metadata: Mapping[str, TradeMetadata] | None = None) -> str | None:
    """Model a trade is assigned to; metadata assignment wins."""
    meta = (metadata or {}).get(trade.trade_id)
    if meta is not None and meta.model:
        return meta.model
    return trade.model


def model_stats(
    model_id: str,
    trades: Iterable[Trade],
    metadata: Mapping[str, TradeMetadata] | None = None,
) -> DerivedMetrics:
    """Metrics restricted to trades assigned to ``model_id``."""
    assigned = [t for t in trades if trade_model(t, metadata) == model_id]
    return compute_metrics(assigned)


def model_summary(
    model_ids: Iterable[str],
    trades: Iterable[Trade],
    metadata: Mapping[str, TradeMetadata] | None = None,
) -> dict[str, str | None]:
    """Pick the best / least performing, most active and best win-rate models.

    Ties keep the first model in ``model_ids`` order.  Best win rate only
    considers models with at least one trade.
    """
    trades = list(trades)
    best = least = most_active = best_win_rate = None
    best_m = least_m = active_m = win_m = None
    for model_id in model_ids:
        stats = model_stats(model_id, trades, metadata)
        if best_m is None or stats.net_pnl > best_m.net_pnl:
            best, best_m = model_id, stats
        if least_m is None or stats.net_pnl < least_m.net_pnl:
            least, least_m = model_id, stats
        if active_m is None or stats.total > active_m.total:
            most_active, active_m = model_id, stats
        if stats.total > 0 and (win_m is None or stats.win_rate > win_m.win_rate):
            best_win_rate, win_m = model_id, stats
    return {
        "best_performing": best,
        "least_performing": least,
        "most_active": most_active,
        "best_win_rate": best_win_rate,
    }
