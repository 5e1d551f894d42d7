"""Shared fixtures for journal tests."""

import time

import pytest

from journal_analytics.core.enums import Side
from journal_analytics.journal.record import Trade, TradeMetadata


def make_trade(
    trade_id: str = "t1",
    net_pnl: float = 0.0,
    open_date: str = "2024-03-11",
    close_date: str | None = None,
    entry_time: str | None = None,
    exit_time: str | None = None,
    side: Side = Side.LONG,
    entry_price: float | None = 100.0,
    exit_price: float | None = None,
    planned_stop: float | None = None,
    planned_target: float | None = None,
    contracts_traded: float | None = 1.0,
    model: str | None = None,
    **kwargs,
) -> Trade:
    """Helper to create a Trade with sensible defaults."""
    return Trade(
        trade_id=trade_id,
        symbol="NQ",
        side=side,
        open_date=open_date,
        close_date=close_date if close_date is not None else open_date,
        entry_time=entry_time,
        exit_time=exit_time,
        entry_price=entry_price,
        exit_price=exit_price,
        net_pnl=net_pnl,
        contracts_traded=contracts_traded,
        planned_stop=planned_stop,
        planned_target=planned_target,
        model=model,
        **kwargs,
    )


def make_trades(*pnls: float, open_date: str = "2024-03-11") -> list[Trade]:
    """One trade per P&L value, all on the same day."""
    return [
        make_trade(trade_id=f"t{i}", net_pnl=pnl, open_date=open_date)
        for i, pnl in enumerate(pnls)
    ]


@pytest.fixture
def scenario_a():
    return make_trades(100.0, -50.0, -50.0)


@pytest.fixture
def checked_metadata():
    return {
        "t0": TradeMetadata(rule_checks={"r1": True, "r2": False}),
        "t1": TradeMetadata(rule_checks={"r1": True}),
    }


@pytest.fixture
def india_local_zone(monkeypatch):
    """Pin the process local zone to UTC+05:30 for the test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is unavailable on this platform")
    monkeypatch.setenv("TZ", "IST-5:30")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
