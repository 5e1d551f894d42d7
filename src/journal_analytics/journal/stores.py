"""Store boundaries the engine reads from.

The engine never reaches for ambient global state.  Trades, per-trade
metadata and strategy configuration are supplied through the three
protocols below and injected into :class:`~journal_analytics.journal.engine.AnalyticsEngine`.

:class:`JsonKeyValueStore` is a local key-value file with last-write-wins
semantics, matching what the journal front-end keeps in browser storage.
:class:`LocalJournalStore` reads the persisted camelCase shapes from
any key-value store and implements all three protocols.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from journal_analytics.core.errors import MalformedTradeError, StoreError

from .auto_rules import AutoRulesConfig
from .record import RuleGroup, Trade, TradeMetadata, metadata_map

logger = logging.getLogger(__name__)


@dataclass
class StrategyModel:
    """A trading strategy ("model") with its rules."""

    model_id: str
    name: str = ""
    auto_rules: AutoRulesConfig = field(default_factory=AutoRulesConfig)
    rule_groups: list[RuleGroup] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StrategyModel:
        model_id = str(data.get("id", ""))
        try:
            auto_rules = AutoRulesConfig.model_validate(data.get("autoRules") or {})
        except ValidationError as exc:
            logger.warning("Strategy %s has invalid auto rules, ignoring them: %s", model_id, exc)
            auto_rules = AutoRulesConfig()
        return cls(
            model_id=model_id,
            name=str(data.get("name", "")),
            auto_rules=auto_rules,
            rule_groups=[RuleGroup.from_dict(g) for g in data.get("ruleGroups") or []],
        )


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class ITradeStore(Protocol):
    """Supplies trades.  Ids are unique within one call's result."""

    def get_trades(self) -> list[Trade]: ...


@runtime_checkable
class IMetadataStore(Protocol):
    """Supplies per-trade metadata keyed by trade id."""

    def get_metadata(self) -> dict[str, TradeMetadata]: ...


@runtime_checkable
class IConfigStore(Protocol):
    """Supplies strategy models with their auto rules and playbook."""

    def get_strategies(self) -> list[StrategyModel]: ...


@runtime_checkable
class IKeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...


# ---------------------------------------------------------------------------
# Key-value stores
# ---------------------------------------------------------------------------

class InMemoryStore:
    """Dict-backed key-value store."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class JsonKeyValueStore:
    """One JSON object on disk; each ``set`` rewrites the file.

    Concurrent writers are not coordinated: the last write wins.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Cannot read store {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Store {self._path} does not hold a JSON object")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self._path)
        except OSError as exc:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise StoreError(f"Cannot write store {self._path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Typed adapter
# ---------------------------------------------------------------------------

class LocalJournalStore:
    """Reads the journal's persisted shapes out of a key-value store.

    Parameters
    ----------
    kv : IKeyValueStore
        Backing store.
    trades_key, metadata_key, strategies_key : str
        Keys the journal front-end writes under.
    """

    def __init__(
        self,
        kv: IKeyValueStore,
        *,
        trades_key: str = "tradestial:trades",
        metadata_key: str = "tradestial:trade-metadata",
        strategies_key: str = "tradestial:strategies",
    ) -> None:
        self._kv = kv
        self._trades_key = trades_key
        self._metadata_key = metadata_key
        self._strategies_key = strategies_key

    def get_trades(self) -> list[Trade]:
        raw = self._kv.get(self._trades_key) or []
        trades = []
        seen: set[str] = set()
        for row in raw:
            if not isinstance(row, dict):
                logger.warning("Skipping non-object trade row %r", row)
                continue
            try:
                trade = Trade.from_dict(row)
            except MalformedTradeError as exc:
                logger.warning("Skipping trade row: %s", exc)
                continue
            if trade.trade_id in seen:
                logger.warning("Skipping duplicate trade id %s", trade.trade_id)
                continue
            seen.add(trade.trade_id)
            trades.append(trade)
        return trades

    def get_metadata(self) -> dict[str, TradeMetadata]:
        raw = self._kv.get(self._metadata_key) or {}
        if not isinstance(raw, dict):
            logger.warning("Trade metadata is not an object, ignoring it")
            return {}
        return metadata_map(raw)

    def get_strategies(self) -> list[StrategyModel]:
        raw = self._kv.get(self._strategies_key) or []
        return [StrategyModel.from_dict(s) for s in raw if isinstance(s, dict)]

    def save_trades(self, rows: list[dict[str, Any]]) -> None:
        self._kv.set(self._trades_key, rows)

    def save_metadata(self, rows: dict[str, dict[str, Any]]) -> None:
        self._kv.set(self._metadata_key, rows)

    def save_strategies(self, rows: list[dict[str, Any]]) -> None:
        self._kv.set(self._strategies_key, rows)
