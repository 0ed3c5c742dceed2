"""
LSTM model: build, train with per-epoch progress, and forecast one day ahead.

- Builds a stacked LSTM whose shape comes from config.LSTM_CONFIG.
- Packs Samples into (samples, time_steps, features) / (samples,) arrays.
- Trains with a Keras callback that reports (percent_complete, loss) to the
  caller after every epoch.
- Predicts the next scaled close from the latest window and maps it back to
  price units with the run's bounds.

Tensors created for a fit or predict call live inside a TensorScope and are
dropped when the call returns or raises.

Public helpers:
    - build_lstm_model()
    - pack_samples()
    - train_lstm_model()
    - predict_next()
    - release_model()
"""

from __future__ import annotations

import gc
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import tensorflow as tf
from tensorflow.keras import Input, Sequential
from tensorflow.keras.layers import LSTM, Dense, Dropout

from .. import config
from ..preprocessing import Sample, denormalize_price

ProgressCallback = Callable[[int, float], Any]


# ---------------------------------------------------------------------------
# Model definition
# ---------------------------------------------------------------------------


def build_lstm_model(
    lookback: int,
    n_features: int,
    lstm_config: Optional[Dict[str, Any]] = None,
) -> tf.keras.Model:
    """
    Build a Sequential model with stacked LSTM layers and a Dense(1) linear
    output for the next scaled close.

    Architecture (defaults from config.LSTM_CONFIG):
      - Input(shape=(lookback, n_features))
      - LSTM(64, return_sequences=True)
      - Dropout(0.2)
      - LSTM(32)
      - Dense(1)

    `lstm_config` overrides individual keys (units, dropout, learning_rate).
    """
    cfg = {**config.LSTM_CONFIG, **(lstm_config or {})}
    units: Sequence[int] = cfg["units"]
    dropout_rate = cfg["dropout"]
    learning_rate = cfg["learning_rate"]

    if not units:
        raise ValueError("LSTM config needs at least one layer in 'units'")

    layers: List[Any] = [Input(shape=(lookback, n_features))]
    for idx, n_units in enumerate(units):
        is_last = idx == len(units) - 1
        layers.append(LSTM(n_units, return_sequences=not is_last))
        if not is_last and dropout_rate > 0:
            layers.append(Dropout(dropout_rate))
    layers.append(Dense(1, activation="linear"))

    model = Sequential(layers)
    model.compile(
        optimizer=tf.keras.optimizers.Adam(learning_rate=learning_rate),
        loss="mse",
    )

    model.summary()
    return model


def release_model(model: Optional[tf.keras.Model]) -> None:
    """Drop a model no run owns anymore and free the Keras graph state."""
    if model is None:
        return
    del model
    tf.keras.backend.clear_session()
    gc.collect()


# ---------------------------------------------------------------------------
# Packing & scoped tensors
# ---------------------------------------------------------------------------


class TensorScope:
    """
    Tensors for a single fit/predict call.

    Release means dropping the scope's references on exit; under eager
    TensorFlow the buffers are freed once nothing else holds them. The
    caller's numpy inputs live until the calling function returns.

    Usage:
        with TensorScope(X, y) as tensors:
            model.fit(*tensors)
    """

    def __init__(self, *arrays: np.ndarray):
        self.tensors = [tf.convert_to_tensor(a, dtype=tf.float32) for a in arrays]
        self.released = False

    def __enter__(self) -> List[tf.Tensor]:
        return self.tensors

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.tensors.clear()
        self.released = True
        return False


def pack_samples(
    samples: Sequence[Sample],
    lookback: int,
    n_features: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Stack Samples into X of shape (samples, lookback, n_features) and y of
    shape (samples,), keeping the input order.
    """
    if not samples:
        raise ValueError("Cannot pack an empty list of samples")

    X = np.stack([np.asarray(s.window, dtype="float32") for s in samples])
    y = np.asarray([s.label for s in samples], dtype="float32")

    if X.shape[1:] != (lookback, n_features):
        raise ValueError(
            f"Sample windows have shape {X.shape[1:]}, "
            f"expected {(lookback, n_features)}"
        )
    return X, y


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------


class EpochProgress(tf.keras.callbacks.Callback):
    """Report (percent_complete, loss) after every epoch and keep the losses."""

    def __init__(self, epochs: int, on_progress: Optional[ProgressCallback] = None):
        super().__init__()
        self.epochs = epochs
        self.on_progress = on_progress
        self.losses: List[float] = []

    def percent_complete(self, epoch: int) -> int:
        # ceil((epoch + 1) * 100 / epochs) without float rounding
        return ((epoch + 1) * 100 + self.epochs - 1) // self.epochs

    def on_epoch_end(self, epoch, logs=None):
        loss = float((logs or {}).get("loss", float("nan")))
        self.losses.append(loss)
        if self.on_progress is not None:
            self.on_progress(self.percent_complete(epoch), loss)


def train_lstm_model(
    model: tf.keras.Model,
    samples: Sequence[Sample],
    lookback: int,
    n_features: int,
    on_progress: Optional[ProgressCallback] = None,
    epochs: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> List[float]:
    """
    Fit `model` on the samples for a fixed number of epochs.

    `on_progress(percent, loss)` is called synchronously once per finished
    epoch. Errors raised by model.fit are not caught here; the packed
    tensors are released either way.

    Returns:
        Training loss for each completed epoch.
    """
    epochs = config.LSTM_CONFIG["epochs"] if epochs is None else epochs
    batch_size = config.LSTM_CONFIG["batch_size"] if batch_size is None else batch_size
    if epochs < 1:
        raise ValueError(f"epochs must be >= 1, got {epochs}")

    X, y = pack_samples(samples, lookback, n_features)
    print(f"Training on X={X.shape}, y={y.shape} for {epochs} epochs (batch {batch_size})")

    progress = EpochProgress(epochs, on_progress)
    with TensorScope(X, y) as tensors:
        model.fit(
            *tensors,
            epochs=epochs,
            batch_size=batch_size,
            callbacks=[progress],
            verbose=0,
        )

    return progress.losses


# ---------------------------------------------------------------------------
# Inference
# ---------------------------------------------------------------------------


def predict_next(
    model: tf.keras.Model,
    last_window: np.ndarray,
    lookback: int,
    n_features: int,
    min_price: float,
    max_price: float,
) -> float:
    """
    One forward pass on the latest window, returned in price units:

        price = normalized * (max_price - min_price) + min_price
    """
    window = np.asarray(last_window, dtype="float32")
    if window.shape != (lookback, n_features):
        raise ValueError(
            f"Window has shape {window.shape}, expected {(lookback, n_features)}"
        )

    with TensorScope(window[np.newaxis, ...]) as tensors:
        prediction = model.predict(tensors[0], verbose=0)

    normalized = float(np.asarray(prediction).reshape(-1)[0])
    return denormalize_price(normalized, min_price, max_price)
