"""Errors raised by the ledger and the commentary fetcher."""


class TradeRejected(ValueError):
    """A buy or sell was rejected; the account state is unchanged."""


class InvalidQuantity(TradeRejected):
    """The lot count is not a positive integer."""


class InsufficientFunds(TradeRejected):
    """The cash balance does not cover the cost of a buy."""


class NoShortSelling(TradeRejected):
    """A sell asked for more shares than are held."""


class UnknownInstrument(KeyError):
    """The instrument id does not resolve to a known instrument."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class CommentaryUnavailable(RuntimeError):
    """The commentary service failed or returned no text.

    Never escapes the commentary fetcher; it is resolved to a fallback string.
    """
