"""Custom exception hierarchy for the journal analytics engine.

Analytics functions never raise on malformed trade data; they degrade to
documented defaults and log.  These exceptions cover configuration,
storage and invalid call shapes only.
"""


class JournalError(Exception):
    """Base exception for all journal analytics errors."""


# --- Configuration ---
class ConfigError(JournalError):
    """Invalid or missing configuration."""


# --- Data ---
class DataError(JournalError):
    """Trade data ingestion or quality error."""


class MalformedTradeError(DataError):
    """A trade record is missing a field that has no documented default."""

    def __init__(self, trade_id: str, reason: str):
        self.trade_id = trade_id
        self.reason = reason
        super().__init__(f"Malformed trade [{trade_id}]: {reason}")


# --- Storage ---
class StoreError(JournalError):
    """Key-value store read or write failure."""
