"""Error types raised by the odds computation and its storage layer."""


class OddsError(Exception):
    """Base class for every error raised by this project."""


class InvalidRules(OddsError, ValueError):
    """Rule set rejected at construction (deck count, payout, split budget)."""


class InvalidHandState(OddsError, ValueError):
    """Rank counts or an operation inconsistent with the cards in play."""


class CacheMiss(OddsError, KeyError):
    """A stand cache was queried outside the configuration it was built for."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable
        return str(self.args[0]) if self.args else ""


class StorageUnavailable(OddsError, OSError):
    """The persistent stand-value store is unreachable or its data is corrupt."""
