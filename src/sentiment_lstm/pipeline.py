"""
End-to-end pipeline orchestration for one ticker.

This module coordinates the main steps:

    1. Fetch daily market data and news sentiment (concurrently).
    2. Compute SMA / RSI and build scaled (window, label) samples.
    3. Build a fresh LSTM and train it, reporting progress every epoch.
    4. Forecast the next close from the latest window and report it.

Everything a run produces lives on a RunContext owned by the caller. A new
run never reuses the previous run's model or bounds; pass the old context
as `previous` and its model is released before the new one is built.

Typical usage (from the project root):

    from sentiment_lstm.pipeline import run_pipeline
    context = run_pipeline("RELIANCE.BSE")
    print(context.forecast)

The root-level run_pipeline.py script will just import and call main().
"""

from __future__ import annotations

import argparse
import functools
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Tuple

import numpy as np
import tensorflow as tf

from . import config
from .download_data import get_daily_series, normalize_symbol
from .errors import ForecastError, InsufficientHistoryError
from .models.lstm import build_lstm_model, predict_next, release_model, train_lstm_model
from .preprocessing import (
    NormalizationBounds,
    SynthesisResult,
    build_dataset,
    check_bounds_provenance,
)
from .reporting import ConsoleReporter
from .sentiment import fetch_news_sentiment

MarketFetcher = Callable[[str], Mapping[str, Mapping[str, Any]]]
SentimentFetcher = Callable[[str], float]
ModelFactory = Callable[[int, int], Any]


# ---------------------------------------------------------------------------
# Run context
# ---------------------------------------------------------------------------


@dataclass
class RunContext:
    """State produced by one run; discarded when the next run starts."""

    ticker: str
    time_steps: int = config.TIME_STEPS
    n_features: int = config.N_FEATURES
    sentiment: Optional[float] = None
    synthesis: Optional[SynthesisResult] = None
    model: Any = None
    losses: List[float] = field(default_factory=list)
    forecast: Optional[float] = None

    def release(self) -> None:
        """Release the model owned by this run."""
        model, self.model = self.model, None
        release_model(model)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def fetch_inputs(
    ticker: str,
    market_fetcher: MarketFetcher,
    sentiment_fetcher: SentimentFetcher,
) -> Tuple[Mapping[str, Mapping[str, Any]], float]:
    """
    Run both retrievals in parallel and wait for both.

    Market data errors propagate. A sentiment failure is replaced by the
    neutral default.
    """
    with ThreadPoolExecutor(max_workers=2) as executor:
        market_future = executor.submit(market_fetcher, ticker)
        sentiment_future = executor.submit(sentiment_fetcher, ticker)

        try:
            sentiment = float(sentiment_future.result())
        except Exception as exc:
            print(f"Warning: sentiment fetch failed ({exc}); using neutral default.")
            sentiment = config.NEUTRAL_SENTIMENT

        daily_data = market_future.result()

    return daily_data, sentiment


def forecast_next_close(
    context: RunContext,
    bounds: Optional[NormalizationBounds] = None,
) -> float:
    """
    Predict the next close for a trained context.

    If `bounds` are given they must be the ones this context's synthesis
    produced; anything else raises BoundsMismatchError.
    """
    if context.model is None or context.synthesis is None:
        raise ForecastError("Run context has no trained model to forecast with")

    synthesis = context.synthesis
    bounds = synthesis.bounds if bounds is None else bounds
    check_bounds_provenance(bounds, synthesis)

    return predict_next(
        context.model,
        synthesis.last_window,
        context.time_steps,
        context.n_features,
        bounds.min_price,
        bounds.max_price,
    )


def set_seeds(seed: int = config.RANDOM_SEED) -> None:
    random.seed(seed)
    np.random.seed(seed)
    tf.random.set_seed(seed)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


def run_pipeline(
    ticker: str = config.TICKER,
    time_steps: int = config.TIME_STEPS,
    epochs: Optional[int] = None,
    batch_size: Optional[int] = None,
    provider: str = config.MARKET_DATA_PROVIDER,
    api_key: str = config.ALPHAVANTAGE_API_KEY,
    market_fetcher: Optional[MarketFetcher] = None,
    sentiment_fetcher: Optional[SentimentFetcher] = None,
    model_factory: ModelFactory = build_lstm_model,
    reporter: Optional[ConsoleReporter] = None,
    previous: Optional[RunContext] = None,
) -> RunContext:
    """Run the full pipeline for one ticker.

    Args:
        ticker:
            Symbol as typed by the user (suffix optional).
        time_steps:
            Window length fed to the LSTM.
        epochs, batch_size:
            Override config.LSTM_CONFIG for this run.
        market_fetcher, sentiment_fetcher, model_factory:
            Collaborators; default to the Alpha Vantage/yfinance clients
            and the Keras LSTM builder.
        reporter:
            Receives progress and the final forecast. Defaults to a
            ConsoleReporter.
        previous:
            Context of an earlier run whose model should be released.

    Returns:
        The RunContext holding samples, bounds, losses and the forecast.

    Raises:
        DataUnavailableError: no usable market data.
        InsufficientHistoryError: fewer than time_steps + 1 trading days.
        Any exception raised by the model during training.
    """
    if previous is not None:
        previous.release()

    reporter = reporter or ConsoleReporter()
    market_fetcher = market_fetcher or functools.partial(
        get_daily_series, provider=provider, api_key=api_key
    )
    sentiment_fetcher = sentiment_fetcher or functools.partial(
        fetch_news_sentiment, api_key=api_key
    )

    context = RunContext(ticker=ticker.strip().upper(), time_steps=time_steps)

    print("\n=== STEP 1: Fetch market data & news sentiment ===")
    daily_data, context.sentiment = fetch_inputs(
        context.ticker, market_fetcher, sentiment_fetcher
    )

    print("\n=== STEP 2: Build indicators & training windows ===")
    synthesis = build_dataset(daily_data, context.sentiment, time_steps=time_steps)
    if synthesis.n_samples == 0:
        raise InsufficientHistoryError(
            available=len(synthesis.features), required=time_steps + 1
        )
    context.synthesis = synthesis
    print(f"Built {synthesis.n_samples} samples of shape {synthesis.samples[0].window.shape}")

    print("\n=== STEP 3: Build & train LSTM ===")
    set_seeds()
    try:
        context.model = model_factory(time_steps, context.n_features)
        context.losses = train_lstm_model(
            context.model,
            synthesis.samples,
            time_steps,
            context.n_features,
            on_progress=reporter.on_progress,
            epochs=epochs,
            batch_size=batch_size,
        )

        print("\n=== STEP 4: Forecast next close ===")
        context.forecast = forecast_next_close(context)
    except Exception:
        context.release()
        raise

    reporter.report_forecast(
        context.ticker,
        context.forecast,
        synthesis.display_records,
        synthesis.summary,
    )

    print("\n=== PIPELINE COMPLETED SUCCESSFULLY ===")
    return context


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point:

    python -m sentiment_lstm.pipeline RELIANCE.BSE --epochs 50
    """
    parser = argparse.ArgumentParser(
        description="Sentiment-fused LSTM next-close forecaster"
    )
    parser.add_argument(
        "ticker",
        nargs="?",
        default=config.TICKER,
        help=f"Ticker symbol (default: {config.TICKER})",
    )
    parser.add_argument(
        "--provider",
        choices=["alphavantage", "yfinance"],
        default=config.MARKET_DATA_PROVIDER,
        help="Market data source",
    )
    parser.add_argument(
        "--epochs",
        type=int,
        default=None,
        help=f"Training epochs (default: {config.LSTM_CONFIG['epochs']})",
    )
    parser.add_argument(
        "--time-steps",
        type=int,
        default=config.TIME_STEPS,
        help=f"Window length in days (default: {config.TIME_STEPS})",
    )
    args = parser.parse_args(argv)

    ticker = args.ticker
    if args.provider == "alphavantage":
        try:
            ticker = normalize_symbol(ticker)
        except ForecastError as exc:
            print(f"Error: {exc}")
            return 1

    try:
        run_pipeline(
            ticker=ticker,
            time_steps=args.time_steps,
            epochs=args.epochs,
            provider=args.provider,
        )
    except ForecastError as exc:
        print(f"Error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
