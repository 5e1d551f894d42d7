"""Tests for the key-value stores and the typed journal adapter."""

import json

import pytest

from journal_analytics.core.errors import StoreError
from journal_analytics.journal.stores import (
    IConfigStore,
    IMetadataStore,
    ITradeStore,
    InMemoryStore,
    JsonKeyValueStore,
    LocalJournalStore,
    StrategyModel,
)


class TestJsonKeyValueStore:
    def test_missing_file_is_empty(self, tmp_path):
        store = JsonKeyValueStore(tmp_path / "journal.json")
        assert store.get("anything") is None
        assert store.get("anything", []) == []

    def test_set_then_get(self, tmp_path):
        path = tmp_path / "nested" / "journal.json"
        store = JsonKeyValueStore(path)
        store.set("a", [1, 2])
        store.set("b", {"x": 1})
        assert store.get("a") == [1, 2]
        assert json.loads(path.read_text()) == {"a": [1, 2], "b": {"x": 1}}

    def test_last_write_wins(self, tmp_path):
        store = JsonKeyValueStore(tmp_path / "journal.json")
        store.set("a", 1)
        store.set("a", 2)
        assert store.get("a") == 2

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "journal.json"
        path.write_text("{not json")
        with pytest.raises(StoreError):
            JsonKeyValueStore(path).get("a")

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "journal.json"
        path.write_text("[1, 2]")
        with pytest.raises(StoreError):
            JsonKeyValueStore(path).get("a")


class TestLocalJournalStore:
    @pytest.fixture
    def store(self):
        return LocalJournalStore(InMemoryStore({
            "tradestial:trades": [
                {"id": "a", "netPnl": 10, "openDate": "2024-03-11"},
                {"id": "a", "netPnl": 99, "openDate": "2024-03-11"},
                {"netPnl": 5},
                "junk",
                {"id": "b", "netPnl": "-20", "openDate": "2024-03-12"},
            ],
            "tradestial:trade-metadata": {"a": {"ruleChecks": {"r1": True}, "model": "orb"}},
            "tradestial:strategies": [
                {
                    "id": "orb",
                    "name": "Opening range",
                    "autoRules": {"maxLossPerTrade": 40},
                    "ruleGroups": [{"id": "g", "title": "Entry", "rules": [{"id": "r1", "text": "Wait"}]}],
                },
                {"id": "broken", "autoRules": {"session": {"enabled": True, "timezone": [1]}}},
            ],
        }))

    def test_implements_protocols(self, store):
        assert isinstance(store, ITradeStore)
        assert isinstance(store, IMetadataStore)
        assert isinstance(store, IConfigStore)

    def test_trades_skip_duplicates_and_bad_rows(self, store):
        trades = store.get_trades()
        assert [t.trade_id for t in trades] == ["a", "b"]
        assert trades[0].net_pnl == 10.0
        assert trades[1].net_pnl == -20.0

    def test_metadata(self, store):
        meta = store.get_metadata()
        assert meta["a"].followed("r1")
        assert meta["a"].model == "orb"

    def test_strategies(self, store):
        orb, broken = store.get_strategies()
        assert orb.name == "Opening range"
        assert orb.auto_rules.max_loss_per_trade.active
        assert orb.rule_groups[0].rules[0].rule_id == "r1"
        assert broken.auto_rules == StrategyModel("x").auto_rules

    def test_empty_store(self):
        store = LocalJournalStore(InMemoryStore())
        assert store.get_trades() == []
        assert store.get_metadata() == {}
        assert store.get_strategies() == []

    def test_save_round_trip(self, tmp_path):
        store = LocalJournalStore(JsonKeyValueStore(tmp_path / "j.json"), trades_key="t")
        store.save_trades([{"id": "z", "netPnl": 1}])
        store.save_metadata({"z": {"model": "m"}})
        store.save_strategies([{"id": "m"}])
        assert store.get_trades()[0].trade_id == "z"
        assert store.get_metadata()["z"].model == "m"
        assert store.get_strategies()[0].model_id == "m"
