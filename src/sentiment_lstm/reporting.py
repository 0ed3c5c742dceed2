"""
Console reporting for a forecasting run.

The pipeline only hands over numbers (progress, forecast, display records);
this module decides how they are printed.
"""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from .preprocessing import DisplayRecord, FeatureSummary


def display_frame(records: Sequence[DisplayRecord]) -> pd.DataFrame:
    """DisplayRecords as a date-indexed DataFrame (price, rsi, sma)."""
    df = pd.DataFrame(
        [(r.date, r.price, r.rsi, r.sma) for r in records],
        columns=["date", "price", "rsi", "sma"],
    )
    return df.set_index("date")


class ConsoleReporter:
    """Print training progress and the final forecast to stdout."""

    def __init__(self, tail: int = 5):
        self.tail = tail
        self.progress = []

    def on_progress(self, percent: int, loss: float) -> None:
        self.progress.append((percent, loss))
        print(f"Training: {percent:3d}% | loss={loss:.4f}")

    def report_forecast(
        self,
        ticker: str,
        forecast: float,
        records: Sequence[DisplayRecord],
        summary: FeatureSummary,
    ) -> None:
        last_close = records[-1].price if records else float("nan")

        print(f"\nTarget stock:          {ticker}")
        print(f"Last close price:      {last_close:.2f}")
        print(f"Predicted next close:  {forecast:.2f}")
        print(f"RSI (latest):          {summary.recent_rsi:.2f}")
        print(f"SMA (latest):          {summary.recent_sma:.2f}")
        print(f"News sentiment:        {summary.sentiment:.3f}")
        print(f"Volume (latest):       {summary.recent_volume:,.0f}")

        if records and self.tail > 0:
            print(f"\nLast {min(self.tail, len(records))} labelled days:")
            print(display_frame(records).tail(self.tail).round(2).to_string())
