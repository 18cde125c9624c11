"""
Error taxonomy for the convergence bot.

Transient errors are retried by the caller with a fixed delay and never
escape a market. Fatal errors (configuration, authentication, signing)
propagate to the runner and stop the process.
"""


class BotError(Exception):
    """Base class for all bot errors."""


class TransientError(BotError):
    """Network or timeout failure on a book, position or status query."""


class FatalError(BotError):
    """Process-level failure. Never retried."""


class ConfigError(FatalError):
    """Malformed or inconsistent configuration."""


class AuthenticationError(FatalError):
    """The exchange refused our credentials or request signature."""


class InvalidOrderField(FatalError):
    """An order field could not be encoded (malformed numeric string)."""

    def __init__(self, field: str, value):
        super().__init__(f"Invalid order field {field!r}: {value!r}")
        self.field = field
        self.value = value


class InvalidTransition(BotError):
    """A trade tried to move between lifecycle phases that are not connected."""


class LedgerError(BotError):
    """A trade record was flushed more than once."""


class ActiveTradeError(BotError):
    """A second position was opened while another trade is still active."""
