"""
Feature synthesis: build LSTM-ready windows from aligned daily series.

- Fuses close, volume, SMA, RSI and a single sentiment score into one
  5-feature vector per trading day, every component scaled to [0, 1].
- Close and volume are min-max scaled over the full history with
  MinMaxScaler; SMA reuses the close bounds, RSI is divided by 100 and
  sentiment is shifted from [-1, 1] to [0, 1].
- Slides a window of `time_steps` days over the history; the label of each
  window is the scaled close of the following day.

Public helpers:
    - synthesize_features()
    - build_dataset()
    - denormalize_price()
    - check_bounds_provenance()
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import MinMaxScaler

from . import config
from .download_data import load_price_bars
from .errors import BoundsMismatchError
from .features import compute_indicators

FEATURE_NAMES = ("price", "volume", "sma", "rsi", "sentiment")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizationBounds:
    """Min/max of close and volume over one run's full history."""

    min_price: float
    max_price: float
    min_volume: float
    max_volume: float
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)


@dataclass(frozen=True)
class Sample:
    window: np.ndarray  # (time_steps, n_features)
    label: float


@dataclass(frozen=True)
class DisplayRecord:
    date: str
    price: float
    rsi: float
    sma: float


@dataclass(frozen=True)
class FeatureSummary:
    recent_volume: float
    recent_rsi: float
    recent_sma: float
    sentiment: float


@dataclass
class SynthesisResult:
    samples: List[Sample]
    display_records: List[DisplayRecord]
    bounds: NormalizationBounds
    summary: FeatureSummary
    last_window: np.ndarray
    features: np.ndarray

    @property
    def n_samples(self) -> int:
        return len(self.samples)


# ---------------------------------------------------------------------------
# Scaling
# ---------------------------------------------------------------------------


def _fit_scaler(values: np.ndarray) -> Tuple[MinMaxScaler, np.ndarray]:
    """
    Fit a MinMaxScaler on one column and return it with the scaled column.

    MinMaxScaler treats a zero range as a unit range, so a constant column
    scales to all zeros instead of NaN.
    """
    scaler = MinMaxScaler()
    scaled = scaler.fit_transform(values.reshape(-1, 1)).ravel()
    return scaler, scaled


def sentiment_to_unit(sentiment: float) -> float:
    """Fixed map from [-1, 1] to [0, 1]."""
    return (sentiment + 1.0) / 2.0


def denormalize_price(value: float, min_price: float, max_price: float) -> float:
    """Inverse of the close scaling for one run's bounds."""
    return float(value) * (max_price - min_price) + min_price


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


def synthesize_features(
    dates: Sequence[Any],
    prices: Sequence[float] | np.ndarray,
    volumes: Sequence[float] | np.ndarray,
    sma: Sequence[float] | np.ndarray,
    rsi: Sequence[float] | np.ndarray,
    sentiment: float,
    time_steps: int = config.TIME_STEPS,
) -> SynthesisResult:
    """
    Align all inputs per day, scale them, and cut (window, label) samples.

    For each start index i in [0, N - time_steps - 1]:
      window  = feature rows [i, i + time_steps)
      label   = scaled close at i + time_steps
      display = raw close / RSI / SMA and date at i + time_steps

    With N <= time_steps no samples are produced; callers treat that as
    insufficient history.
    """
    if time_steps < 1:
        raise ValueError(f"time_steps must be >= 1, got {time_steps}")

    prices = np.asarray(prices, dtype="float64")
    volumes = np.asarray(volumes, dtype="float64")
    sma = np.asarray(sma, dtype="float64")
    rsi = np.asarray(rsi, dtype="float64")
    dates = [str(d) for d in dates]

    n = len(prices)
    lengths = {len(dates), len(volumes), len(sma), len(rsi)}
    if n == 0 or lengths != {n}:
        raise ValueError(
            "dates, prices, volumes, sma and rsi must be non-empty and of equal "
            f"length; got {[len(dates), n, len(volumes), len(sma), len(rsi)]}"
        )

    # 1) Bounds over the full history
    price_scaler, price_norm = _fit_scaler(prices)
    _, volume_norm = _fit_scaler(volumes)
    bounds = NormalizationBounds(
        min_price=float(prices.min()),
        max_price=float(prices.max()),
        min_volume=float(volumes.min()),
        max_volume=float(volumes.max()),
    )

    # 2) One feature row per day; SMA lives in price space
    sma_norm = price_scaler.transform(sma.reshape(-1, 1)).ravel()
    features = np.column_stack(
        [
            price_norm,
            volume_norm,
            sma_norm,
            rsi / 100.0,
            np.full(n, sentiment_to_unit(sentiment)),
        ]
    )

    # 3) Sliding windows
    samples: List[Sample] = []
    display_records: List[DisplayRecord] = []
    for i in range(n - time_steps):
        target = i + time_steps
        samples.append(
            Sample(window=features[i:target].copy(), label=float(price_norm[target]))
        )
        display_records.append(
            DisplayRecord(
                date=dates[target],
                price=float(prices[target]),
                rsi=float(rsi[target]),
                sma=float(sma[target]),
            )
        )

    summary = FeatureSummary(
        recent_volume=float(volumes[-1]),
        recent_rsi=float(rsi[-1]),
        recent_sma=float(sma[-1]),
        sentiment=float(sentiment),
    )

    return SynthesisResult(
        samples=samples,
        display_records=display_records,
        bounds=bounds,
        summary=summary,
        last_window=features[-time_steps:].copy(),
        features=features,
    )


def build_dataset(
    daily_data: Mapping[str, Mapping[str, Any]],
    sentiment: float,
    time_steps: int = config.TIME_STEPS,
    sma_period: int = config.SMA_PERIOD,
    rsi_period: int = config.RSI_PERIOD,
) -> SynthesisResult:
    """
    Provider payload -> chronological bars -> indicators -> samples.
    """
    bars: pd.DataFrame = load_price_bars(daily_data)
    prices = bars["close"].to_numpy()
    sma, rsi = compute_indicators(prices, sma_period=sma_period, rsi_period=rsi_period)

    print(f"Loaded {len(bars)} bars: {bars.index.min().date()} -> {bars.index.max().date()}")

    return synthesize_features(
        dates=bars.index.strftime("%Y-%m-%d"),
        prices=prices,
        volumes=bars["volume"].to_numpy(),
        sma=sma,
        rsi=rsi,
        sentiment=sentiment,
        time_steps=time_steps,
    )


def check_bounds_provenance(
    bounds: NormalizationBounds,
    synthesis: SynthesisResult,
) -> None:
    """
    Make sure a forecast is denormalized with the bounds of the run whose
    windows were fed to the model.
    """
    expected = synthesis.bounds
    if bounds.run_id != expected.run_id or bounds != expected:
        raise BoundsMismatchError(
            f"Bounds from run {bounds.run_id} do not match synthesis run "
            f"{expected.run_id}; refusing to denormalize with stale bounds."
        )
