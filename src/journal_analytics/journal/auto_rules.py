"""Auto-rule evaluation — system-checked trading constraints.

A strategy model carries one :class:`AutoRulesConfig` with five
independently enabled sub-rules:

    Sub-rule              Scope      Passes when
    ─────────────────────────────────────────────────────────────
    max_loss_per_trade    trade      net_pnl >= -|limit|
    session               trade      start <= minutes_of_day <= end
    allowed_weekdays      trade      weekday (Sunday=0) in the set
    max_trades_per_day    day        trade count <= limit
    max_daily_loss        day        summed net_pnl >= -|limit|

Per-trade rates use the trade count as denominator, per-day rates the
number of distinct day keys after timezone bucketing.  A disabled or
unconfigured sub-rule passes everything (100%).  With no trades at all
every rate is 0.

Older stored configs use bare numbers (``{"maxLossPerTrade": 40}``)
or flat keys (``sessionStart``).  :func:`normalize_auto_rules` maps
them to the ``{enabled, value}`` shape once, before evaluation; when
both shapes are present the ``{enabled, value}`` shape wins.

Sessions that cross midnight (end earlier than start) are not wrapped
around: no trade falls inside such a window.  The summary flags it.

Usage::

    config = AutoRulesConfig.model_validate(stored_config)
    summary = evaluate_auto_rules(trades, config)
    print(summary.within_max_loss.pass_rate)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field, model_validator

from journal_analytics.core.enums import ApplyIn, Weekday

from .record import Trade, parse_number
from .timezones import clock_to_minutes, resolve_trade_time

logger = logging.getLogger(__name__)


# ================================================================== #
# Configuration                                                       #
# ================================================================== #

class LimitRule(BaseModel):
    """A numeric cap.  ``value`` is a magnitude; its sign is ignored."""

    enabled: bool = False
    value: float | None = None

    @property
    def active(self) -> bool:
        return self.enabled and self.value is not None

    @property
    def limit(self) -> float:
        return abs(self.value or 0.0)


class SessionRule(BaseModel):
    enabled: bool = False
    start: str | None = None  # "HH:MM"
    end: str | None = None    # "HH:MM"
    timezone: int | str | None = None
    apply_in: ApplyIn = ApplyIn.CONFIGURED

    @property
    def window(self) -> tuple[int, int] | None:
        """Inclusive ``(start, end)`` in minutes, ``None`` if unusable."""
        start = clock_to_minutes(self.start)
        end = clock_to_minutes(self.end)
        if start is None or end is None:
            return None
        return start, end

    @property
    def wraps_midnight(self) -> bool:
        window = self.window
        return window is not None and window[1] < window[0]


class WeekdayRule(BaseModel):
    enabled: bool = False
    value: list[int] = Field(default_factory=list)  # 0 = Sunday


class AutoRulesConfig(BaseModel):
    """Canonical auto-rule configuration of one strategy model."""

    max_loss_per_trade: LimitRule = Field(default_factory=LimitRule)
    max_trades_per_day: LimitRule = Field(default_factory=LimitRule)
    max_daily_loss: LimitRule = Field(default_factory=LimitRule)
    session: SessionRule = Field(default_factory=SessionRule)
    allowed_weekdays: WeekdayRule = Field(default_factory=WeekdayRule)

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return normalize_auto_rules(data)
        return data

    def to_store_dict(self) -> dict[str, Any]:
        """camelCase shape persisted by the strategy configuration store."""
        return {
            "maxLossPerTrade": self.max_loss_per_trade.model_dump(),
            "maxTradesPerDay": self.max_trades_per_day.model_dump(),
            "maxDailyLoss": self.max_daily_loss.model_dump(),
            "session": {
                "enabled": self.session.enabled,
                "start": self.session.start,
                "end": self.session.end,
                "timezone": self.session.timezone,
                "applyIn": self.session.apply_in.value,
            },
            "allowedWeekdays": self.allowed_weekdays.model_dump(),
        }


# ------------------------------------------------------------------ #
# Legacy normalisation                                                 #
# ------------------------------------------------------------------ #

# canonical field -> (camelCase key, legacy flat key)
_LIMIT_KEYS: dict[str, tuple[str, str]] = {
    "max_loss_per_trade": ("maxLossPerTrade", "maxLoss"),
    "max_trades_per_day": ("maxTradesPerDay", "maxTrades"),
    "max_daily_loss": ("maxDailyLoss", "maxLossPerDay"),
}


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _limit_shape(value: Any) -> tuple[dict[str, Any] | None, bool]:
    """Return ``(canonical_dict, explicit)`` for one limit entry.

    ``explicit`` is True when the entry carried its own ``enabled`` flag.
    """
    if value is None or isinstance(value, bool):
        return None, False
    if isinstance(value, Mapping):
        number = parse_number(value.get("value"))
        if "enabled" in value:
            return {"enabled": bool(value["enabled"]), "value": number}, True
        if number is None:
            return None, False
        return {"enabled": True, "value": number}, False
    number = parse_number(value)
    if number is None:
        logger.warning("Ignoring unparsable rule limit %r", value)
        return None, False
    return {"enabled": True, "value": number}, False


def _parse_apply_in(value: Any) -> ApplyIn:
    if isinstance(value, ApplyIn):
        return value
    if isinstance(value, str) and value.strip().lower() == ApplyIn.LOCAL.value:
        return ApplyIn.LOCAL
    return ApplyIn.CONFIGURED


def _session_shape(raw: Mapping[str, Any]) -> dict[str, Any]:
    entry = raw.get("session")
    legacy = {
        "start": raw.get("sessionStart"),
        "end": raw.get("sessionEnd"),
        "timezone": _first(raw, "sessionTimezone", "timezone"),
    }

    if isinstance(entry, SessionRule):
        return entry.model_dump()
    source = entry if isinstance(entry, Mapping) else {}
    start = _first(source, "start") or legacy["start"]
    end = _first(source, "end") or legacy["end"]
    timezone = _first(source, "timezone", "timezoneOffset", "tz")
    if timezone is None:
        timezone = legacy["timezone"]

    if "enabled" in source:
        return {
            "enabled": bool(source["enabled"]),
            "start": start,
            "end": end,
            "timezone": timezone,
            "apply_in": _parse_apply_in(_first(source, "applyIn", "apply_in")),
        }
    return {
        "enabled": bool(start and end),
        "start": start,
        "end": end,
        "timezone": timezone,
        "apply_in": _parse_apply_in(_first(source, "applyIn", "apply_in")),
    }


def _weekday_list(values: Any) -> list[int]:
    days: list[int] = []
    for item in values or []:
        number = parse_number(item)
        if number is None or not number.is_integer() or not 0 <= number <= 6:
            logger.warning("Ignoring invalid weekday %r", item)
            continue
        if int(number) not in days:
            days.append(int(number))
    return sorted(days)


def _weekday_shape(raw: Mapping[str, Any]) -> dict[str, Any]:
    entry = _first(raw, "allowed_weekdays", "allowedWeekdays")
    if isinstance(entry, WeekdayRule):
        return entry.model_dump()
    if isinstance(entry, Mapping) and "enabled" in entry:
        return {"enabled": bool(entry["enabled"]), "value": _weekday_list(entry.get("value"))}
    if isinstance(entry, Mapping) and entry.get("value") is not None:
        return {"enabled": True, "value": _weekday_list(entry.get("value"))}
    if isinstance(entry, (list, tuple)):
        return {"enabled": True, "value": _weekday_list(entry)}
    legacy = raw.get("allowedDays")
    if isinstance(legacy, (list, tuple)):
        return {"enabled": True, "value": _weekday_list(legacy)}
    return {"enabled": False, "value": []}


def normalize_auto_rules(raw: Mapping[str, Any] | None) -> dict[str, Any]:
    """Map any stored auto-rule shape to the canonical field layout.

    Accepts snake_case or camelCase keys, bare numeric limits, dicts
    without an ``enabled`` flag, and the flat legacy keys.  The result
    validates as :class:`AutoRulesConfig`.
    """
    raw = raw or {}
    result: dict[str, Any] = {}

    for name, (camel, legacy_key) in _LIMIT_KEYS.items():
        entry = _first(raw, name, camel)
        if isinstance(entry, LimitRule):
            result[name] = entry.model_dump()
            continue
        canonical, explicit = _limit_shape(entry)
        legacy, _ = _limit_shape(raw.get(legacy_key))
        if explicit or canonical is not None:
            result[name] = canonical
        elif legacy is not None:
            result[name] = legacy
        else:
            result[name] = {"enabled": False, "value": None}

    result["session"] = _session_shape(raw)
    result["allowed_weekdays"] = _weekday_shape(raw)
    return result


# ================================================================== #
# Evaluation results                                                  #
# ================================================================== #

@dataclass
class RuleTally:
    """Pass count of one sub-rule over its denominator."""

    rule: str
    enabled: bool
    passed: int = 0
    total: int = 0

    @property
    def pass_rate(self) -> float:
        """Percent passing; 0 when the denominator is empty."""
        if self.total == 0:
            return 0.0
        return self.passed / self.total * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "enabled": self.enabled,
            "passed": self.passed,
            "total": self.total,
            "pass_rate": self.pass_rate,
        }


@dataclass
class DayResult:
    day_key: str
    trade_count: int
    net_pnl: float
    within_trade_cap: bool
    within_daily_loss: bool


@dataclass
class Violation:
    trade_id: str
    rule: str
    day_key: str
    detail: str


@dataclass
class AutoRuleSummary:
    total_trades: int
    total_days: int
    in_session: RuleTally
    within_max_loss: RuleTally
    on_allowed_days: RuleTally
    within_max_trades: RuleTally
    within_daily_loss: RuleTally
    days: list[DayResult] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)
    fallback_count: int = 0
    session_wraps_midnight: bool = False

    @property
    def tallies(self) -> list[RuleTally]:
        return [
            self.in_session,
            self.within_max_loss,
            self.on_allowed_days,
            self.within_max_trades,
            self.within_daily_loss,
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_trades": self.total_trades,
            "total_days": self.total_days,
            "rules": {t.rule: t.to_dict() for t in self.tallies},
            "days": [asdict(d) for d in self.days],
            "violations": [asdict(v) for v in self.violations],
            "fallback_count": self.fallback_count,
            "session_wraps_midnight": self.session_wraps_midnight,
        }


# ================================================================== #
# Evaluation                                                          #
# ================================================================== #

def _coerce_config(config: AutoRulesConfig | Mapping[str, Any] | None) -> AutoRulesConfig:
    if config is None:
        return AutoRulesConfig()
    if isinstance(config, AutoRulesConfig):
        return config
    if isinstance(config, Mapping):
        return AutoRulesConfig.model_validate(config)
    raise TypeError(f"config must be AutoRulesConfig or a mapping, got {type(config).__name__}")


def evaluate_auto_rules(
    trades: Iterable[Trade],
    config: AutoRulesConfig | Mapping[str, Any] | None,
    *,
    now: datetime | None = None,
) -> AutoRuleSummary:
    """Evaluate every auto rule against a trade list.

    Day keys, weekdays and session minutes come from the session
    rule's timezone (or the local zone when it applies locally).  Trades
    are bucketed by day once; both per-day checks read the same buckets.
    """
    trades = list(trades)
    config = _coerce_config(config)
    session = config.session
    tz_spec = session.timezone
    apply_in = session.apply_in

    max_loss = config.max_loss_per_trade
    max_trades = config.max_trades_per_day
    daily_loss = config.max_daily_loss
    weekdays = config.allowed_weekdays
    allowed = set(weekdays.value)

    window = session.window if session.enabled else None
    if session.enabled and window is None:
        logger.warning(
            "Session rule enabled without a usable window (%r-%r), treating as unset",
            session.start, session.end,
        )
    wraps = window is not None and window[1] < window[0]
    if wraps:
        logger.warning(
            "Session window %s-%s crosses midnight; wrap-around is not supported "
            "and no trade will be inside it",
            session.start, session.end,
        )

    in_session = RuleTally("in_session", window is not None)
    within_max_loss = RuleTally("within_max_loss", max_loss.active)
    on_allowed_days = RuleTally("on_allowed_days", weekdays.enabled)
    within_max_trades = RuleTally("within_max_trades", max_trades.active)
    within_daily_loss = RuleTally("within_daily_loss", daily_loss.active)

    violations: list[Violation] = []
    buckets: dict[str, list[float]] = defaultdict(list)
    fallback_count = 0

    for trade in trades:
        fields_ = resolve_trade_time(trade, tz_spec, apply_in=apply_in, now=now)
        if fields_.fallback_used:
            fallback_count += 1
        day = fields_.day_key
        buckets[day].append(trade.net_pnl)

        ok = True
        if window is not None:
            ok = window[0] <= fields_.minutes_of_day <= window[1]
            if not ok:
                violations.append(Violation(
                    trade.trade_id, in_session.rule, day,
                    f"entered at minute {fields_.minutes_of_day}, window {session.start}-{session.end}",
                ))
        in_session.passed += ok
        in_session.total += 1

        ok = True
        if max_loss.active:
            ok = trade.net_pnl >= -max_loss.limit
            if not ok:
                violations.append(Violation(
                    trade.trade_id, within_max_loss.rule, day,
                    f"net P&L {trade.net_pnl:.2f} below -{max_loss.limit:.2f}",
                ))
        within_max_loss.passed += ok
        within_max_loss.total += 1

        ok = True
        if weekdays.enabled:
            ok = fields_.weekday in allowed
            if not ok:
                violations.append(Violation(
                    trade.trade_id, on_allowed_days.rule, day,
                    f"{Weekday(fields_.weekday).name.title()} not in allowed days {sorted(allowed)}",
                ))
        on_allowed_days.passed += ok
        on_allowed_days.total += 1

    days: list[DayResult] = []
    for day in sorted(buckets):
        pnls = buckets[day]
        count, net = len(pnls), sum(pnls)
        cap_ok = not max_trades.active or count <= max_trades.limit
        loss_ok = not daily_loss.active or net >= -daily_loss.limit
        within_max_trades.passed += cap_ok
        within_max_trades.total += 1
        within_daily_loss.passed += loss_ok
        within_daily_loss.total += 1
        days.append(DayResult(day, count, net, cap_ok, loss_ok))

    if fallback_count:
        logger.warning("%d trade(s) had unparsable timestamps and used the current time", fallback_count)

    return AutoRuleSummary(
        total_trades=len(trades),
        total_days=len(buckets),
        in_session=in_session,
        within_max_loss=within_max_loss,
        on_allowed_days=on_allowed_days,
        within_max_trades=within_max_trades,
        within_daily_loss=within_daily_loss,
        days=days,
        violations=violations,
        fallback_count=fallback_count,
        session_wraps_midnight=wraps,
    )
