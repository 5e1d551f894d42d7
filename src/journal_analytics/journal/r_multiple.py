"""R-multiple calculations.

Expresses a trade's planned reward and realised P&L in units of the
risk taken at entry (1R = distance from entry to stop, times position
size).  A trade without a defined stop has an *undefined* R-multiple:
the per-trade result is ``None``, never 0.

Explicit R values recorded on the trade metadata (first) or the trade
itself are used verbatim and skip recomputation.

Usage::

    r = trade_r_multiple(trade, metadata.get(trade.trade_id))
    agg = r_multiple_metrics(trades, metadata)
    print(format_r_multiple(agg.avg_realized))   # "+1.25R"
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Mapping

from .record import Trade, TradeMetadata

# Histogram buckets, lower bound inclusive
R_BUCKETS: tuple[tuple[str, float, float], ...] = (
    ("< -2R", float("-inf"), -2.0),
    ("-2R to -1R", -2.0, -1.0),
    ("-1R to 0R", -1.0, 0.0),
    ("0R to 1R", 0.0, 1.0),
    ("1R to 2R", 1.0, 2.0),
    ("2R to 3R", 2.0, 3.0),
    ("> 3R", 3.0, float("inf")),
)


@dataclass(frozen=True)
class RMultiple:
    """Planned and realised R for one trade.  ``None`` = undefined."""

    planned: float | None = None
    realized: float | None = None
    risk: float | None = None            # currency amount of 1R
    initial_target: float | None = None  # reward per unit, side-adjusted


@dataclass
class RMultipleMetrics:
    avg_planned: float = 0.0
    avg_realized: float = 0.0
    total_planned: float = 0.0
    total_realized: float = 0.0
    trades_with_valid_sltp: int = 0
    total_trades: int = 0
    distribution: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _position_size(trade: Trade) -> float:
    size = trade.contracts_traded
    if size is None or size <= 0:
        return 1.0
    return size


def trade_r_multiple(trade: Trade, metadata: TradeMetadata | None = None) -> RMultiple:
    """Planned and realised R-multiple of one trade.

    Planned R = side-adjusted (target - entry) / (entry - stop).
    Realised R = net P&L / (|entry - stop| * position size).
    Both are ``None`` unless the stop (and, for planned, the target) is
    known and the risk is non-zero.
    """
    explicit_planned = metadata.planned_r_multiple if metadata else None
    if explicit_planned is None:
        explicit_planned = trade.planned_r_multiple
    explicit_realized = metadata.realized_r_multiple if metadata else None
    if explicit_realized is None:
        explicit_realized = trade.realized_r_multiple
    if explicit_planned is not None and explicit_realized is not None:
        return RMultiple(planned=explicit_planned, realized=explicit_realized)

    stop = metadata.stop_loss if metadata and metadata.stop_loss is not None else trade.planned_stop
    target = (
        metadata.profit_target
        if metadata and metadata.profit_target is not None
        else trade.planned_target
    )
    entry = trade.entry_price

    if stop is None or not entry:
        return RMultiple(planned=explicit_planned, realized=explicit_realized)

    per_unit_risk = abs(entry - stop if trade.is_long else stop - entry)
    risk = per_unit_risk * _position_size(trade)

    planned = explicit_planned
    initial_target = None
    if target is not None:
        initial_target = target - entry if trade.is_long else entry - target
        if planned is None and per_unit_risk > 0:
            planned = initial_target / per_unit_risk

    realized = explicit_realized
    if realized is None and risk > 0:
        realized = trade.net_pnl / risk

    return RMultiple(
        planned=planned,
        realized=realized,
        risk=risk or None,
        initial_target=initial_target,
    )


def _bucket_label(value: float) -> str:
    for label, low, high in R_BUCKETS:
        if low <= value < high:
            return label
    return R_BUCKETS[-1][0]


def r_multiple_metrics(
    trades: Iterable[Trade],
    metadata: Mapping[str, TradeMetadata] | None = None,
) -> RMultipleMetrics:
    """Average planned / realised R over trades where each is defined.

    A list in which no trade has a stop yields averages of 0.
    """
    metadata = metadata or {}
    planned: list[float] = []
    realized: list[float] = []
    total = 0
    for trade in trades:
        total += 1
        r = trade_r_multiple(trade, metadata.get(trade.trade_id))
        if r.planned is not None:
            planned.append(r.planned)
        if r.realized is not None:
            realized.append(r.realized)

    distribution = []
    for label, _, _ in R_BUCKETS:
        distribution.append({
            "range": label,
            "planned": sum(1 for v in planned if _bucket_label(v) == label),
            "realized": sum(1 for v in realized if _bucket_label(v) == label),
        })

    return RMultipleMetrics(
        avg_planned=sum(planned) / len(planned) if planned else 0.0,
        avg_realized=sum(realized) / len(realized) if realized else 0.0,
        total_planned=sum(planned),
        total_realized=sum(realized),
        trades_with_valid_sltp=len(planned),
        total_trades=total,
        distribution=distribution,
    )


def r_multiple_expectancy(
    trades: Iterable[Trade],
    metadata: Mapping[str, TradeMetadata] | None = None,
) -> dict[str, float]:
    """Expectancy in R: win_rate * avg_win_R - loss_rate * avg_loss_R.

    ``win_rate`` here is a fraction of trades with a defined realised R.
    """
    metadata = metadata or {}
    values = [
        r.realized
        for r in (trade_r_multiple(t, metadata.get(t.trade_id)) for t in trades)
        if r.realized is not None
    ]
    if not values:
        return {"expectancy": 0.0, "win_rate": 0.0, "avg_win_r": 0.0, "avg_loss_r": 0.0}

    winners = [v for v in values if v > 0]
    losers = [v for v in values if v < 0]
    win_rate = len(winners) / len(values)
    avg_win_r = sum(winners) / len(winners) if winners else 0.0
    avg_loss_r = abs(sum(losers) / len(losers)) if losers else 0.0
    return {
        "expectancy": win_rate * avg_win_r - (1 - win_rate) * avg_loss_r,
        "win_rate": win_rate,
        "avg_win_r": avg_win_r,
        "avg_loss_r": avg_loss_r,
    }


def format_r_multiple(value: float | None) -> str:
    if value is None or value != value:
        return "--"
    return f"{'+' if value >= 0 else ''}{value:.2f}R"
