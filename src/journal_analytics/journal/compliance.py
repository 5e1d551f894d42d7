"""Per-rule compliance scoring for manually checked playbook rules.

For each free-text playbook rule the trader ticks, per trade, whether
the rule was followed.  The scorer answers "how often do I follow this
rule, and how do I perform when I do?"

A trade with no metadata entry has no rules checked.  The P&L figures
use the same formulas as :func:`~journal_analytics.journal.metrics.compute_metrics`,
restricted to the followed subset.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from .metrics import compute_metrics
from .record import RuleGroup, Trade, TradeMetadata


@dataclass(frozen=True)
class RuleMetrics:
    rule_id: str
    followed: int = 0
    follow_rate: float = 0.0    # percent of all trades
    net_pnl: float = 0.0
    profit_factor: float = 0.0
    win_rate: float = 0.0       # percent of followed trades

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def followed_trades(
    rule_id: str,
    trades: Iterable[Trade],
    trade_metadata: Mapping[str, TradeMetadata] | None,
) -> list[Trade]:
    trade_metadata = trade_metadata or {}
    result = []
    for trade in trades:
        meta = trade_metadata.get(trade.trade_id)
        if meta is not None and meta.followed(rule_id):
            result.append(trade)
    return result


def rule_metrics(
    rule_id: str,
    trades: Iterable[Trade],
    trade_metadata: Mapping[str, TradeMetadata] | None,
) -> RuleMetrics:
    """Follow rate and performance of the trades that followed ``rule_id``."""
    trades = list(trades)
    followed = followed_trades(rule_id, trades, trade_metadata)
    if not trades or not followed:
        return RuleMetrics(rule_id=rule_id)

    stats = compute_metrics(followed)
    return RuleMetrics(
        rule_id=rule_id,
        followed=len(followed),
        follow_rate=len(followed) / len(trades) * 100,
        net_pnl=stats.net_pnl,
        profit_factor=stats.profit_factor,
        win_rate=stats.win_rate,
    )


def playbook_compliance(
    rule_groups: Iterable[RuleGroup],
    trades: Iterable[Trade],
    trade_metadata: Mapping[str, TradeMetadata] | None,
) -> list[dict[str, Any]]:
    """Score every rule of every group, keeping display order."""
    trades = list(trades)
    report = []
    for group in rule_groups:
        report.append({
            "group_id": group.group_id,
            "title": group.title,
            "rules": [
                {
                    "text": rule.text,
                    "frequency": rule.frequency.value,
                    **rule_metrics(rule.rule_id, trades, trade_metadata).to_dict(),
                }
                for rule in group.rules
            ],
        })
    return report
