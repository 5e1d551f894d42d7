"""Trade Journal Analytics — performance and rule-compliance engine.

Turns a list of imported trades into the statistics a trader reviews
(win rate, profit factor, expectancy, R-multiples, drawdown, streaks)
and checks the trades against the rules of their strategy model.

Key components
--------------
**Data model**

Trade              One closed position, immutable
TradeMetadata      User-maintained rule checks, model, SL/TP overrides
RuleGroup / Rule   Ordered free-text playbook rules

**Calculators** (pure functions, no state between calls)

resolve_time_fields   Day key / weekday / session minute under a timezone
compute_metrics       Win rate, profit factor, expectancy, hold time
trade_r_multiple      Planned and realised R per trade
evaluate_auto_rules   Session, weekday, loss-cap and trade-cap checks
rule_metrics          Follow rate and P&L of a playbook rule
bucket_daily          Daily / weekly / monthly P&L series for charts

**Boundaries**

AnalyticsEngine       Facade over injected trade / metadata / config stores
ReportExporter        JSON / CSV output
"""

from .auto_rules import AutoRulesConfig, AutoRuleSummary, evaluate_auto_rules, normalize_auto_rules
from .compliance import RuleMetrics, playbook_compliance, rule_metrics
from .engine import AnalyticsEngine
from .export import ReportExporter
from .metrics import DerivedMetrics, compute_metrics, format_duration, format_profit_factor
from .r_multiple import RMultiple, r_multiple_metrics, trade_r_multiple
from .record import Rule, RuleGroup, Trade, TradeMetadata
from .timeseries import SeriesPoint, bucket_daily, cumulative
from .timezones import TimeFields, resolve_time_fields

__all__ = [
    "Trade",
    "TradeMetadata",
    "Rule",
    "RuleGroup",
    "TimeFields",
    "resolve_time_fields",
    "DerivedMetrics",
    "compute_metrics",
    "format_profit_factor",
    "format_duration",
    "RMultiple",
    "trade_r_multiple",
    "r_multiple_metrics",
    "AutoRulesConfig",
    "AutoRuleSummary",
    "evaluate_auto_rules",
    "normalize_auto_rules",
    "RuleMetrics",
    "rule_metrics",
    "playbook_compliance",
    "SeriesPoint",
    "bucket_daily",
    "cumulative",
    "AnalyticsEngine",
    "ReportExporter",
]
