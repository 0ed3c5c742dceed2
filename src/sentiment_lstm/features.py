"""
Technical indicators computed from a chronological close-price series.

This module:
- Computes the Simple Moving Average (SMA) with the same length as the input,
  passing raw prices through during the warm-up period.
- Computes the Relative Strength Index (RSI) over a trailing window of
  day-over-day differences, updated incrementally as the window slides.

Both indicators return one value per input price so that index i of every
series refers to the same trading day.

Public helpers:
    - simple_moving_average()
    - relative_strength_index()
    - compute_indicators()
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
import pandas as pd
from ta.trend import SMAIndicator

from . import config

# RSI reported while fewer than `period` differences are available
NEUTRAL_RSI = 50.0

# RS substituted when the window holds no losses (RSI -> 99.0099...)
ZERO_LOSS_RS = 100.0


# ---------------------------------------------------------------------------
# Indicators
# ---------------------------------------------------------------------------


def simple_moving_average(
    prices: Sequence[float] | np.ndarray,
    period: int = config.SMA_PERIOD,
) -> np.ndarray:
    """
    Trailing arithmetic mean of `period` closes, ending at each day.

    For i < period - 1 there is not enough history yet, so the raw close is
    returned instead of a missing value.
    """
    if period < 1:
        raise ValueError(f"SMA period must be >= 1, got {period}")

    close = pd.Series(np.asarray(prices, dtype="float64"))
    sma = SMAIndicator(close=close, window=period).sma_indicator()

    # Warm-up rows come back as NaN from ta; use the price itself
    return sma.fillna(close).to_numpy(dtype="float64")


def relative_strength_index(
    prices: Sequence[float] | np.ndarray,
    period: int = config.RSI_PERIOD,
) -> np.ndarray:
    """
    RSI over the trailing `period` day-over-day differences.

    Rules:
      - index 0 and indices 1..period-1 -> 50 (not enough differences yet)
      - from index `period` on:
            RS  = avg_gain / avg_loss
            RSI = 100 - 100 / (1 + RS)
        with RS = 100 when the window holds no losses at all.

    The gain/loss sums are slid one day at a time (add the newest
    difference, drop the one leaving the window) instead of re-summing the
    whole window. Counts of up/down days are tracked alongside so that a
    window without losses (or gains) has an exact zero sum, not a tiny
    floating residue left over from the subtraction.
    """
    if period < 1:
        raise ValueError(f"RSI period must be >= 1, got {period}")

    close = np.asarray(prices, dtype="float64")
    n = len(close)
    rsi = np.full(n, NEUTRAL_RSI, dtype="float64")
    if n <= period:
        return rsi

    # diffs[k] is the move from day k to day k+1
    diffs = np.diff(close)
    gains = np.where(diffs > 0, diffs, 0.0)
    losses = np.where(diffs < 0, -diffs, 0.0)

    gain_sum = float(gains[:period].sum())
    loss_sum = float(losses[:period].sum())
    up_days = int(np.count_nonzero(gains[:period]))
    down_days = int(np.count_nonzero(losses[:period]))

    for i in range(period, n):
        if i > period:
            newest = i - 1
            oldest = i - 1 - period
            gain_sum += gains[newest] - gains[oldest]
            loss_sum += losses[newest] - losses[oldest]
            up_days += int(gains[newest] > 0) - int(gains[oldest] > 0)
            down_days += int(losses[newest] > 0) - int(losses[oldest] > 0)

        if up_days == 0:
            gain_sum = 0.0
        if down_days == 0:
            loss_sum = 0.0

        avg_gain = max(gain_sum, 0.0) / period
        avg_loss = max(loss_sum, 0.0) / period

        rs = ZERO_LOSS_RS if avg_loss == 0 else avg_gain / avg_loss
        rsi[i] = 100.0 - 100.0 / (1.0 + rs)

    return rsi


def compute_indicators(
    prices: Sequence[float] | np.ndarray,
    sma_period: int = config.SMA_PERIOD,
    rsi_period: int = config.RSI_PERIOD,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return (sma, rsi) for a chronological close series."""
    sma = simple_moving_average(prices, sma_period)
    rsi = relative_strength_index(prices, rsi_period)
    return sma, rsi
