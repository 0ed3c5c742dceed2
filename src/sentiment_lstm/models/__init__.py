"""
Models subpackage for the sentiment-fused LSTM forecaster.

This subpackage contains:

- lstm: Stacked LSTM construction, progress-reporting training and the
        denormalized next-close forecast.

Typical usage:

    from sentiment_lstm.models import (
        build_lstm_model,
        train_lstm_model,
        predict_next,
    )

For most users, you don't need to import this directly: the main pipeline
already calls these pieces in the right order.
"""

from __future__ import annotations

from .lstm import build_lstm_model, predict_next, release_model, train_lstm_model

__all__ = [
    "build_lstm_model",
    "train_lstm_model",
    "predict_next",
    "release_model",
]
