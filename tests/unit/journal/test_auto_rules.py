"""Tests for auto-rule normalisation and evaluation."""

import pytest

from journal_analytics.core.enums import ApplyIn
from journal_analytics.journal.auto_rules import (
    AutoRulesConfig,
    LimitRule,
    SessionRule,
    evaluate_auto_rules,
    normalize_auto_rules,
)

from .conftest import make_trade, make_trades

ALL_RULES = (
    "in_session",
    "within_max_loss",
    "on_allowed_days",
    "within_max_trades",
    "within_daily_loss",
)


def _rates(summary):
    return {t.rule: t.pass_rate for t in summary.tallies}


# ------------------------------------------------------------------ #
# Normalisation                                                        #
# ------------------------------------------------------------------ #

class TestNormalize:
    """Legacy and canonical config shapes."""

    def test_empty_is_all_disabled(self):
        config = AutoRulesConfig()
        assert not config.max_loss_per_trade.enabled
        assert not config.session.enabled
        assert not config.allowed_weekdays.enabled

    def test_bare_number(self):
        config = AutoRulesConfig.model_validate({"maxLossPerTrade": 40})
        assert config.max_loss_per_trade == LimitRule(enabled=True, value=40.0)

    def test_legacy_flat_keys(self):
        config = AutoRulesConfig.model_validate({
            "maxLoss": "50",
            "maxTrades": 3,
            "maxLossPerDay": 200,
        })
        assert config.max_loss_per_trade.active
        assert config.max_loss_per_trade.limit == 50.0
        assert config.max_trades_per_day.limit == 3.0
        assert config.max_daily_loss.limit == 200.0

    def test_enabled_shape_wins_over_legacy(self):
        config = AutoRulesConfig.model_validate({
            "maxLossPerTrade": {"enabled": False, "value": 10},
            "maxLoss": 40,
        })
        assert not config.max_loss_per_trade.enabled
        assert config.max_loss_per_trade.value == 10.0

    def test_dict_without_enabled_is_enabled(self):
        config = AutoRulesConfig.model_validate({"maxDailyLoss": {"value": 300}})
        assert config.max_daily_loss.active

    def test_negative_limit_is_magnitude(self):
        assert LimitRule(enabled=True, value=-40).limit == 40.0

    def test_legacy_session(self):
        config = AutoRulesConfig.model_validate({
            "sessionStart": "09:30",
            "sessionEnd": "16:00",
            "sessionTimezone": -300,
        })
        assert config.session.enabled
        assert config.session.window == (570, 960)
        assert config.session.timezone == -300

    def test_enabled_session_keeps_legacy_timezone(self):
        config = AutoRulesConfig.model_validate({
            "session": {"enabled": True},
            "sessionStart": "09:30",
            "sessionEnd": "16:00",
            "sessionTimezone": -300,
        })
        assert config.session.enabled
        assert config.session.window == (570, 960)
        assert config.session.timezone == -300

    def test_enabled_session_timezone_wins_over_legacy(self):
        config = AutoRulesConfig.model_validate({
            "session": {"enabled": True, "start": "09:30", "end": "16:00", "timezone": 60},
            "sessionTimezone": -300,
        })
        assert config.session.timezone == 60

    def test_session_apply_in(self):
        config = AutoRulesConfig.model_validate({
            "session": {"enabled": True, "start": "09:30", "end": "16:00", "applyIn": "local"},
        })
        assert config.session.apply_in == ApplyIn.LOCAL

    def test_weekdays_from_bare_list(self):
        config = AutoRulesConfig.model_validate({"allowedWeekdays": [5, 1, 1, 9, "x", 3]})
        assert config.allowed_weekdays.enabled
        assert config.allowed_weekdays.value == [1, 3, 5]

    def test_weekdays_legacy_key(self):
        config = AutoRulesConfig.model_validate({"allowedDays": [1, 2]})
        assert config.allowed_weekdays.value == [1, 2]

    def test_normalize_is_stable(self):
        raw = {"maxLossPerTrade": 40, "allowedDays": [1, 2], "sessionStart": "09:30", "sessionEnd": "16:00"}
        once = normalize_auto_rules(raw)
        assert normalize_auto_rules(once) == once

    def test_store_dict_round_trip(self):
        config = AutoRulesConfig.model_validate({
            "maxLossPerTrade": 40,
            "session": {"enabled": True, "start": "09:30", "end": "16:00", "timezone": "America/New_York"},
        })
        assert AutoRulesConfig.model_validate(config.to_store_dict()) == config

    def test_midnight_window(self):
        session = SessionRule(enabled=True, start="22:00", end="02:00")
        assert session.wraps_midnight


# ------------------------------------------------------------------ #
# Evaluation                                                           #
# ------------------------------------------------------------------ #

class TestVacuousTruth:
    """Disabled rules and empty input."""

    def test_disabled_rules_pass_everything(self):
        summary = evaluate_auto_rules(make_trades(-500.0, 10.0), AutoRulesConfig())
        assert _rates(summary) == {rule: 100.0 for rule in ALL_RULES}

    def test_none_config(self):
        summary = evaluate_auto_rules(make_trades(1.0), None)
        assert _rates(summary) == {rule: 100.0 for rule in ALL_RULES}

    def test_zero_trades_is_zero(self):
        config = {"maxLossPerTrade": 40, "maxTradesPerDay": 2}
        summary = evaluate_auto_rules([], config)
        assert summary.total_trades == 0
        assert summary.total_days == 0
        assert _rates(summary) == {rule: 0.0 for rule in ALL_RULES}

    def test_bad_config_type(self):
        with pytest.raises(TypeError):
            evaluate_auto_rules([], 42)


class TestPerTradeRules:
    """Max loss, session window and allowed weekdays."""

    def test_max_loss_per_trade(self):
        trades = make_trades(-30.0, -50.0)
        summary = evaluate_auto_rules(trades, {"maxLossPerTrade": {"enabled": True, "value": 40}})
        assert summary.within_max_loss.pass_rate == 50.0
        assert [v.trade_id for v in summary.violations] == ["t1"]
        assert summary.violations[0].rule == "within_max_loss"

    def test_loss_equal_to_limit_passes(self):
        summary = evaluate_auto_rules(make_trades(-40.0), {"maxLossPerTrade": 40})
        assert summary.within_max_loss.pass_rate == 100.0

    def test_saturday_not_allowed(self):
        trade = make_trade(open_date="2024-03-16", entry_time="12:00")
        config = {
            "allowedWeekdays": {"enabled": True, "value": [1, 2, 3, 4, 5]},
            "session": {"enabled": False, "timezone": 0},
        }
        summary = evaluate_auto_rules([trade], config)
        assert summary.on_allowed_days.pass_rate == 0.0
        assert summary.in_session.pass_rate == 100.0
        assert summary.violations[0].detail.startswith("Saturday")

    def test_enabled_empty_weekdays_fails_all(self):
        trade = make_trade(open_date="2024-03-11", entry_time="12:00")
        config = {"allowedWeekdays": {"enabled": True, "value": []}, "session": {"enabled": False, "timezone": 0}}
        assert evaluate_auto_rules([trade], config).on_allowed_days.pass_rate == 0.0

    def test_session_window_in_configured_zone(self):
        trades = [
            make_trade("in", open_date="2024-03-11", entry_time="14:45"),   # 09:45 ET
            make_trade("out", open_date="2024-03-11", entry_time="13:00"),  # 08:00 ET
            make_trade("edge", open_date="2024-03-11", entry_time="21:00"),  # 16:00 ET
        ]
        config = {"session": {"enabled": True, "start": "09:30", "end": "16:00", "timezone": -300}}
        summary = evaluate_auto_rules(trades, config)
        assert summary.in_session.passed == 2
        assert summary.in_session.total == 3
        assert [v.trade_id for v in summary.violations] == ["out"]

    def test_midnight_session_fails_every_trade(self):
        trades = [make_trade(open_date="2024-03-11", entry_time="23:00")]
        config = {"session": {"enabled": True, "start": "22:00", "end": "02:00", "timezone": 0}}
        summary = evaluate_auto_rules(trades, config)
        assert summary.session_wraps_midnight
        assert summary.in_session.pass_rate == 0.0

    def test_legacy_timezone_under_enabled_session(self):
        trades = [make_trade("out", open_date="2024-03-11", entry_time="13:00")]  # 08:00 ET
        config = {
            "session": {"enabled": True},
            "sessionStart": "09:30",
            "sessionEnd": "16:00",
            "sessionTimezone": -300,
        }
        summary = evaluate_auto_rules(trades, config)
        assert summary.in_session.pass_rate == 0.0

    def test_region_name_timezone_does_not_abort(self):
        trades = make_trades(-50.0, 10.0)
        config = {"maxLossPerTrade": 40, "session": {"timezone": "Europe"}}
        summary = evaluate_auto_rules(trades, config)
        assert summary.within_max_loss.pass_rate == 50.0
        assert summary.days[0].day_key == "2024-03-11"

    def test_session_without_window_is_unset(self):
        config = {"session": {"enabled": True, "start": "09:30", "timezone": 0}}
        summary = evaluate_auto_rules(make_trades(1.0), config)
        assert not summary.in_session.enabled
        assert summary.in_session.pass_rate == 100.0


class TestPerDayRules:
    """Trade cap and daily loss use distinct day keys as denominator."""

    @pytest.fixture
    def trades(self):
        return [
            make_trade("a", -60.0, open_date="2024-03-11", entry_time="15:00"),
            make_trade("b", -60.0, open_date="2024-03-11", entry_time="15:30"),
            make_trade("c", 10.0, open_date="2024-03-11", entry_time="16:00"),
            make_trade("d", -50.0, open_date="2024-03-12", entry_time="15:00"),
        ]

    def test_max_trades_per_day(self, trades):
        config = {"maxTradesPerDay": 2, "session": {"timezone": 0}}
        summary = evaluate_auto_rules(trades, config)
        assert summary.total_days == 2
        assert summary.within_max_trades.passed == 1
        assert summary.within_max_trades.pass_rate == 50.0

    def test_max_daily_loss(self, trades):
        config = {"maxDailyLoss": {"enabled": True, "value": 100}, "session": {"timezone": 0}}
        summary = evaluate_auto_rules(trades, config)
        assert summary.within_daily_loss.pass_rate == 50.0
        day = summary.days[0]
        assert day.day_key == "2024-03-11"
        assert day.trade_count == 3
        assert day.net_pnl == pytest.approx(-110.0)
        assert not day.within_daily_loss
        assert summary.days[1].within_daily_loss

    def test_day_keys_follow_timezone(self):
        trades = [
            make_trade("a", open_date="2024-03-12", entry_time="02:00"),
            make_trade("b", open_date="2024-03-11", entry_time="20:00"),
        ]
        config = {"maxTradesPerDay": 1, "session": {"timezone": -300}}
        summary = evaluate_auto_rules(trades, config)
        # 21:00 and 15:00 on 2024-03-11 in UTC-5
        assert summary.total_days == 1
        assert summary.within_max_trades.pass_rate == 0.0


@pytest.mark.usefixtures("india_local_zone")
class TestLocalSession:
    """``applyIn: local`` reads the session window in the process zone."""

    def test_local_ignores_configured_offset(self):
        trade = make_trade(open_date="2024-03-11", entry_time="09:30")  # 15:00 IST, 04:30 ET
        config = {
            "session": {
                "enabled": True,
                "start": "14:00",
                "end": "16:00",
                "timezone": -300,
                "applyIn": "local",
            },
        }
        assert evaluate_auto_rules([trade], config).in_session.pass_rate == 100.0

    def test_configured_offset_applies_without_local(self):
        trade = make_trade(open_date="2024-03-11", entry_time="09:30")
        config = {"session": {"enabled": True, "start": "14:00", "end": "16:00", "timezone": -300}}
        assert evaluate_auto_rules([trade], config).in_session.pass_rate == 0.0

    def test_missing_timezone_uses_local_zone(self):
        trade = make_trade(open_date="2024-03-11", entry_time="20:00")  # 01:30 IST next day
        config = {"allowedWeekdays": [1]}
        summary = evaluate_auto_rules([trade], config)
        assert summary.days[0].day_key == "2024-03-12"
        assert summary.on_allowed_days.pass_rate == 0.0


class TestFallback:
    def test_unparsable_timestamp_uses_now(self, fixed_now):
        trade = make_trade(open_date="sometime", close_date="sometime")
        summary = evaluate_auto_rules([trade], {"session": {"timezone": 0}}, now=fixed_now)
        assert summary.fallback_count == 1
        assert summary.days[0].day_key == "2024-03-13"


class TestSummaryDict:
    def test_to_dict(self):
        summary = evaluate_auto_rules(make_trades(-50.0), {"maxLossPerTrade": 40, "session": {"timezone": 0}})
        data = summary.to_dict()
        assert set(data["rules"]) == set(ALL_RULES)
        assert data["rules"]["within_max_loss"]["pass_rate"] == 0.0
        assert data["violations"][0]["trade_id"] == "t0"
        assert data["days"][0]["day_key"] == "2024-03-11"
