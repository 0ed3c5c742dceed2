"""
Exceptions raised by the forecasting pipeline.

Only the failures that must abort a run live here. Sentiment outages and
constant-valued feature columns are recovered where they happen and never
surface as exceptions.
"""

from __future__ import annotations


class ForecastError(RuntimeError):
    """Base class for errors that abort a forecasting run."""


class DataUnavailableError(ForecastError):
    """
    The market-data provider returned no usable daily series.

    ``reason`` tells the caller which corrective action applies:

        - "bad_symbol":   the provider does not know the ticker
        - "rate_limited": the API key hit its call quota
        - "empty":        the payload was missing or contained no bars
    """

    MESSAGES = {
        "bad_symbol": "Unknown or unsupported ticker symbol",
        "rate_limited": "Market data API rate limit reached, try again later",
        "empty": "Market data provider returned no daily prices",
    }

    def __init__(self, reason: str, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        message = self.MESSAGES.get(reason, "Market data unavailable")
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InsufficientHistoryError(ForecastError):
    """Fewer trading days were returned than one window plus its label needs."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Not enough price history: got {available} trading days, "
            f"need at least {required}."
        )


class BoundsMismatchError(ForecastError):
    """Normalization bounds used for a forecast were not produced by this run."""
