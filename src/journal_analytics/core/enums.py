"""Enumerations used across the journal analytics engine."""

from enum import Enum


class Side(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class TradeOutcome(str, Enum):
    """Win / loss / break-even classification."""

    WIN = "win"
    LOSS = "loss"
    BREAKEVEN = "breakeven"


class ApplyIn(str, Enum):
    """Which zone a session rule is evaluated in."""

    LOCAL = "local"            # Viewer's (evaluating environment's) zone
    CONFIGURED = "configured"  # The zone named / offset on the rule


class Frequency(str, Enum):
    """How often a playbook rule is expected to apply."""

    ALWAYS = "Always"
    OFTEN = "Often"
    SOMETIMES = "Sometimes"
    RARELY = "Rarely"


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Weekday(int, Enum):
    """Weekday index with Sunday = 0."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
