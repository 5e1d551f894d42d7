"""Trade records and per-trade metadata — the core data model.

A :class:`Trade` is one closed position as imported from a broker
export.  It is immutable: the engine reads it many times and never
writes to it.  :class:`TradeMetadata` carries the user-editable side
data (playbook rule checks, model assignment, stop / target overrides)
keyed by trade id.

Both types can be built from the camelCase dictionaries the journal
front-end persists (``Trade.from_dict`` / ``TradeMetadata.from_dict``).
Malformed numeric fields degrade to documented defaults instead of
raising, so one bad row never aborts a batch computation.  Only a row
without an id raises (:class:`MalformedTradeError`).
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from journal_analytics.core.enums import Frequency, Side, TradeOutcome
from journal_analytics.core.errors import MalformedTradeError

logger = logging.getLogger(__name__)

_DATE_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DATE_US = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def parse_date(text: str | None) -> date | None:
    """Calendar date of a stored date / datetime string.

    Reads the part before any ``T`` or space separator, as either
    ``YYYY-MM-DD`` or ``MM/DD/YYYY``.  Returns ``None`` when it is
    neither or names an impossible day.
    """
    if not text:
        return None
    head = text.strip().split("T")[0].split(" ")[0]
    match = _DATE_ISO.match(head)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _DATE_US.match(head)
        if not match:
            return None
        month, day, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def normalize_date(text: str) -> str:
    """Rewrite a leading ``MM/DD/YYYY`` date as ``YYYY-MM-DD``.

    Any time part is kept.  Text without a US-style date is returned
    unchanged.
    """
    raw = text.strip()
    head, sep, rest = raw.partition(" ")
    if "T" in head:
        head, sep, rest = raw.partition("T")
    if not _DATE_US.match(head):
        return text
    day = parse_date(head)
    if day is None:
        return text
    return f"{day.isoformat()}{sep}{rest}"


def parse_number(value: Any) -> float | None:
    """Parse a numeric field, accepting ``"$1,234.50"`` style strings.

    Returns ``None`` for missing, unparsable or non-finite input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.replace("$", "").replace(",", "").strip()
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def _parse_side(value: Any) -> Side:
    if isinstance(value, Side):
        return value
    if isinstance(value, str) and value.strip().upper() == "SHORT":
        return Side.SHORT
    return Side.LONG


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Trade:
    """One closed position.

    Parameters
    ----------
    trade_id : str
        Stable unique identifier supplied by the trade store.
    open_date, close_date : str
        Calendar dates (``YYYY-MM-DD``), optionally carrying a time
        part.  ``MM/DD/YYYY`` input is rewritten to ``YYYY-MM-DD``.
    entry_time, exit_time : str | None
        Clock times (``HH:MM`` or ``HH:MM:SS``) on the open / close date.
    net_pnl : float
        Signed realised P&L after fees.
    """

    trade_id: str
    symbol: str = ""
    side: Side = Side.LONG
    open_date: str = ""
    close_date: str = ""
    entry_time: str | None = None
    exit_time: str | None = None
    entry_price: float | None = None
    exit_price: float | None = None
    net_pnl: float = 0.0
    contracts_traded: float | None = None
    commissions: float = 0.0

    # Planned levels and explicit R overrides
    planned_stop: float | None = None
    planned_target: float | None = None
    planned_r_multiple: float | None = None
    realized_r_multiple: float | None = None

    model: str | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Frozen: normalise through object.__setattr__
        if self.open_date:
            object.__setattr__(self, "open_date", normalize_date(self.open_date))
        if self.close_date:
            object.__setattr__(self, "close_date", normalize_date(self.close_date))
        if not math.isfinite(self.net_pnl):
            logger.warning("Trade %s has non-finite netPnl, defaulting to 0", self.trade_id)
            object.__setattr__(self, "net_pnl", 0.0)

    @property
    def outcome(self) -> TradeOutcome:
        if self.net_pnl > 0:
            return TradeOutcome.WIN
        if self.net_pnl < 0:
            return TradeOutcome.LOSS
        return TradeOutcome.BREAKEVEN

    @property
    def is_long(self) -> bool:
        return self.side != Side.SHORT

    @property
    def realized_date(self) -> str:
        """Date P&L was realised: close date, falling back to open date.

        ``YYYY-MM-DD`` when either date parses, otherwise the raw date
        text so callers can report it.
        """
        for candidate in (self.close_date, self.open_date):
            day = parse_date(candidate)
            if day is not None:
                return day.isoformat()
        raw = (self.close_date or self.open_date or "").strip()
        return raw.split("T")[0].split(" ")[0]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Trade:
        """Build a trade from the persisted camelCase store shape."""
        raw_id = data.get("id", data.get("tradeId"))
        if raw_id is None or str(raw_id).strip() == "":
            raise MalformedTradeError("?", "missing id")
        trade_id = str(raw_id)

        net_pnl = parse_number(data.get("netPnl", data.get("pnl")))
        if net_pnl is None:
            logger.warning("Trade %s has no usable netPnl, defaulting to 0", trade_id)
            net_pnl = 0.0

        target = data.get("profitTarget")
        if target in (None, ""):
            target = data.get("initialTarget")

        tags = data.get("tags") or ()
        if isinstance(tags, str):
            tags = (tags,)

        return cls(
            trade_id=trade_id,
            symbol=str(data.get("symbol", "")),
            side=_parse_side(data.get("side")),
            open_date=str(data.get("openDate") or ""),
            close_date=str(data.get("closeDate") or ""),
            entry_time=_clean_text(data.get("entryTime")),
            exit_time=_clean_text(data.get("exitTime")),
            entry_price=parse_number(data.get("entryPrice")),
            exit_price=parse_number(data.get("exitPrice")),
            net_pnl=net_pnl,
            contracts_traded=parse_number(data.get("contractsTraded")),
            commissions=parse_number(data.get("commissions")) or 0.0,
            planned_stop=parse_number(data.get("stopLoss")),
            planned_target=parse_number(target),
            planned_r_multiple=parse_number(data.get("plannedRMultiple")),
            realized_r_multiple=parse_number(data.get("realizedRMultiple")),
            model=_clean_text(data.get("model")),
            tags=tuple(str(t) for t in tags),
        )


@dataclass
class TradeMetadata:
    """User-maintained side data for one trade.

    ``rule_checks`` is sparse: a rule absent from the map was not
    checked, which reads the same as ``False``.
    """

    rule_checks: dict[str, bool] = field(default_factory=dict)
    model: str | None = None
    stop_loss: float | None = None
    profit_target: float | None = None
    planned_r_multiple: float | None = None
    realized_r_multiple: float | None = None

    def followed(self, rule_id: str) -> bool:
        return bool(self.rule_checks.get(rule_id))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> TradeMetadata:
        if not data:
            return cls()
        checks = data.get("ruleChecks") or {}
        if not isinstance(checks, Mapping):
            checks = {}
        return cls(
            rule_checks={str(k): bool(v) for k, v in checks.items()},
            model=_clean_text(data.get("model")),
            stop_loss=parse_number(data.get("stopLoss")),
            profit_target=parse_number(data.get("profitTarget")),
            planned_r_multiple=parse_number(data.get("plannedRMultiple")),
            realized_r_multiple=parse_number(data.get("realizedRMultiple")),
        )


def metadata_map(raw: Mapping[str, Any] | None) -> dict[str, TradeMetadata]:
    """Coerce a stored ``{trade_id: {...}}`` map into typed metadata."""
    if not raw:
        return {}
    result: dict[str, TradeMetadata] = {}
    for trade_id, entry in raw.items():
        result[str(trade_id)] = (
            entry if isinstance(entry, TradeMetadata) else TradeMetadata.from_dict(entry)
        )
    return result


# ------------------------------------------------------------------ #
# Playbook rules                                                       #
# ------------------------------------------------------------------ #

@dataclass
class Rule:
    """A free-text playbook rule, checked manually per trade."""

    rule_id: str
    text: str = ""
    frequency: Frequency = Frequency.ALWAYS


@dataclass
class RuleGroup:
    """An ordered group of playbook rules.  Order is display-only."""

    group_id: str
    title: str = ""
    rules: list[Rule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RuleGroup:
        rules = []
        for raw in data.get("rules") or []:
            try:
                frequency = Frequency(raw.get("frequency", Frequency.ALWAYS.value))
            except ValueError:
                frequency = Frequency.ALWAYS
            rules.append(Rule(
                rule_id=str(raw.get("id", "")),
                text=str(raw.get("text", "")),
                frequency=frequency,
            ))
        return cls(
            group_id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            rules=rules,
        )
