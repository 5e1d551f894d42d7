"""Analytics engine facade.

Wires the store boundaries to the pure calculators.  The engine keeps
no state between calls: every method re-reads the stores and
recomputes, so the caller decides when (and whether) to memoize.

Usage::

    store = LocalJournalStore(JsonKeyValueStore("data/journal.json"))
    engine = AnalyticsEngine(store, store, store)
    report = engine.report(model_id="orb")
"""

from __future__ import annotations

import logging
from typing import Any

from .auto_rules import AutoRuleSummary, evaluate_auto_rules
from .compliance import playbook_compliance
from .metrics import DerivedMetrics, compute_metrics, model_summary, trade_model
from .r_multiple import r_multiple_expectancy, r_multiple_metrics
from .record import Trade, TradeMetadata
from .stores import IConfigStore, IMetadataStore, ITradeStore, StrategyModel
from .timeseries import (
    bucket_daily,
    bucket_monthly,
    bucket_weekly,
    cumulative,
    daily_trade_counts,
    drawdown_series,
    equity_curve,
    losing_day_streaks,
    winning_day_streaks,
)

logger = logging.getLogger(__name__)


class AnalyticsEngine:
    """Computes journal analytics from injected stores.

    Parameters
    ----------
    trades : ITradeStore
    metadata : IMetadataStore
    config : IConfigStore
    starting_balance : float
        Offset for the account balance curve.  Default 10 000.
    default_timezone : int | str | None
        Zone for session rules that name none.  ``None`` keeps the
        local zone.
    """

    def __init__(
        self,
        trades: ITradeStore,
        metadata: IMetadataStore,
        config: IConfigStore,
        *,
        starting_balance: float = 10_000.0,
        default_timezone: int | str | None = None,
    ) -> None:
        self._trades = trades
        self._metadata = metadata
        self._config = config
        self._starting_balance = starting_balance
        self._default_timezone = default_timezone

    # ------------------------------------------------------------------ #
    # Lookups                                                              #
    # ------------------------------------------------------------------ #

    def strategy(self, model_id: str) -> StrategyModel | None:
        for model in self._config.get_strategies():
            if model.model_id == model_id:
                return model
        return None

    def _scope(self, model_id: str | None) -> tuple[list[Trade], dict[str, TradeMetadata]]:
        trades = self._trades.get_trades()
        metadata = self._metadata.get_metadata()
        if model_id is not None:
            trades = [t for t in trades if trade_model(t, metadata) == model_id]
        return trades, metadata

    # ------------------------------------------------------------------ #
    # Components                                                           #
    # ------------------------------------------------------------------ #

    def metrics(self, model_id: str | None = None) -> DerivedMetrics:
        trades, _ = self._scope(model_id)
        return compute_metrics(trades)

    def auto_rules(self, model_id: str) -> AutoRuleSummary:
        """Evaluate a model's auto rules against the trades assigned to it."""
        model = self.strategy(model_id)
        trades, _ = self._scope(model_id)
        if model is None:
            logger.warning("Unknown strategy model %s, evaluating with no rules", model_id)
            return evaluate_auto_rules(trades, None)
        rules = model.auto_rules
        if rules.session.timezone is None and self._default_timezone is not None:
            session = rules.session.model_copy(update={"timezone": self._default_timezone})
            rules = rules.model_copy(update={"session": session})
        return evaluate_auto_rules(trades, rules)

    def compliance(self, model_id: str) -> list[dict[str, Any]]:
        model = self.strategy(model_id)
        if model is None:
            return []
        trades, metadata = self._scope(model_id)
        return playbook_compliance(model.rule_groups, trades, metadata)

    def series(self, model_id: str | None = None) -> dict[str, Any]:
        trades, _ = self._scope(model_id)
        daily = bucket_daily(trades)
        equity = equity_curve(trades)
        return {
            "daily_pnl": daily,
            "cumulative_pnl": cumulative(daily),
            "weekly_pnl": bucket_weekly(trades),
            "monthly_pnl": bucket_monthly(trades),
            "daily_trade_count": daily_trade_counts(trades),
            "equity_curve": equity,
            "account_balance": equity_curve(trades, starting_balance=self._starting_balance),
            "drawdown": drawdown_series(equity),
            "winning_day_streak": winning_day_streaks(daily),
            "losing_day_streak": losing_day_streaks(daily),
        }

    # ------------------------------------------------------------------ #
    # Combined report                                                      #
    # ------------------------------------------------------------------ #

    def report(self, model_id: str | None = None) -> dict[str, Any]:
        """Everything the dashboard shows, for one model or all trades."""
        trades, metadata = self._scope(model_id)
        result: dict[str, Any] = {
            "model_id": model_id,
            "metrics": compute_metrics(trades),
            "r_multiples": r_multiple_metrics(trades, metadata),
            "r_expectancy": r_multiple_expectancy(trades, metadata),
            "series": self.series(model_id),
        }
        if model_id is not None:
            result["auto_rules"] = self.auto_rules(model_id)
            result["compliance"] = self.compliance(model_id)
        else:
            model_ids = [m.model_id for m in self._config.get_strategies()]
            result["models"] = model_summary(model_ids, trades, metadata)
        logger.info("Built report for %s over %d trades", model_id or "all trades", len(trades))
        return result
