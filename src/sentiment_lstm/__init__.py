"""
Top-level package for the sentiment-fused LSTM next-close forecaster.

This package provides:

- config: Central configuration (window length, indicator periods, LSTM
  hyperparameters, API settings).
- download_data: Daily close/volume retrieval (Alpha Vantage or yfinance)
  and parsing into chronological bars.
- sentiment: News sentiment aggregation with a neutral fallback.
- features: SMA and RSI indicators.
- preprocessing: Scaling and (window, label) sample construction.
- models: Stacked LSTM build, training with progress callbacks, forecasting.
- reporting: Console output for progress and the final forecast.
- pipeline: End-to-end orchestration of one run.

Typical entry points:

    from sentiment_lstm import config
    from sentiment_lstm.pipeline import run_pipeline

"""

from __future__ import annotations

from . import config

__version__ = "0.1.0"

__all__ = ["config"]
