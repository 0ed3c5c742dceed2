import numpy as np
import pandas as pd
import pytest

from sentiment_lstm import pipeline
from sentiment_lstm.errors import (
    BoundsMismatchError,
    DataUnavailableError,
    InsufficientHistoryError,
)
from sentiment_lstm.preprocessing import NormalizationBounds


# --------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------


def _payload(closes, start="2024-01-01"):
    dates = pd.bdate_range(start, periods=len(closes))
    return {
        d.strftime("%Y-%m-%d"): {"4. close": f"{c:.4f}", "5. volume": str(1_000 + 10 * i)}
        for i, (d, c) in reversed(list(enumerate(zip(dates, closes))))
    }


class FakeModel:
    def __init__(self, prediction=0.5, fail=False):
        self.prediction = prediction
        self.fail = fail
        self.fit_calls = 0

    def fit(self, x, y, epochs, batch_size, callbacks, verbose):
        self.fit_calls += 1
        if self.fail:
            raise RuntimeError("out of memory")
        for epoch in range(epochs):
            for cb in callbacks:
                cb.on_epoch_end(epoch, {"loss": 0.1})

    def predict(self, x, verbose=0):
        return np.array([[self.prediction]])


class RecordingReporter:
    def __init__(self):
        self.progress = []
        self.forecast = None

    def on_progress(self, percent, loss):
        self.progress.append((percent, loss))

    def report_forecast(self, ticker, forecast, records, summary):
        self.forecast = (ticker, forecast, len(records), summary)


def _run(closes, sentiment=0.0, model=None, **kwargs):
    model = model or FakeModel()
    built = []

    def factory(time_steps, n_features):
        built.append((time_steps, n_features))
        return model

    reporter = RecordingReporter()
    context = pipeline.run_pipeline(
        ticker="test.bse",
        time_steps=kwargs.pop("time_steps", 10),
        epochs=kwargs.pop("epochs", 4),
        market_fetcher=lambda t: _payload(closes),
        sentiment_fetcher=lambda t: sentiment,
        model_factory=factory,
        reporter=reporter,
        **kwargs,
    )
    return context, reporter, built


CLOSES = list(np.linspace(100.0, 140.0, 30))


# --------------------------------------------------------------------------------------
# run_pipeline
# --------------------------------------------------------------------------------------


def test_run_pipeline_end_to_end_with_fake_model():
    context, reporter, built = _run(CLOSES, sentiment=0.0)

    assert built == [(10, 5)]
    assert context.ticker == "TEST.BSE"
    assert context.sentiment == 0.0
    assert context.synthesis.n_samples == 20
    assert (context.synthesis.features[:, 4] == 0.5).all()
    assert reporter.progress == [(25, 0.1), (50, 0.1), (75, 0.1), (100, 0.1)]
    assert context.losses == [0.1] * 4
    # 0.5 in scaled space is the middle of [100, 140]
    assert context.forecast == pytest.approx(120.0)
    assert reporter.forecast[0] == "TEST.BSE"
    assert reporter.forecast[1] == pytest.approx(120.0)
    assert reporter.forecast[2] == 20


def test_run_pipeline_insufficient_history():
    with pytest.raises(InsufficientHistoryError) as excinfo:
        _run(CLOSES[:10], time_steps=10)

    assert excinfo.value.available == 10
    assert excinfo.value.required == 11


def test_run_pipeline_market_failure_propagates():
    def no_data(ticker):
        raise DataUnavailableError("rate_limited", "quota")

    with pytest.raises(DataUnavailableError):
        pipeline.run_pipeline(
            ticker="X",
            market_fetcher=no_data,
            sentiment_fetcher=lambda t: 0.2,
            model_factory=lambda *a: FakeModel(),
            reporter=RecordingReporter(),
        )


def test_sentiment_failure_uses_neutral_default():
    def broken(ticker):
        raise ConnectionError("news down")

    daily, score = pipeline.fetch_inputs("X", lambda t: {"d": {}}, broken)

    assert daily == {"d": {}}
    assert score == 0.15


def test_training_failure_releases_model_and_propagates(monkeypatch):
    released = []
    monkeypatch.setattr(pipeline, "release_model", lambda m: released.append(m))
    model = FakeModel(fail=True)

    with pytest.raises(RuntimeError, match="out of memory"):
        _run(CLOSES, model=model)

    assert released == [model]


def test_new_run_releases_previous_model(monkeypatch):
    released = []
    monkeypatch.setattr(pipeline, "release_model", lambda m: released.append(m))
    first_model = FakeModel()
    first, _, _ = _run(CLOSES, model=first_model)

    second, _, _ = _run(CLOSES, model=FakeModel(prediction=0.0), previous=first)

    assert released == [first_model]
    assert first.model is None
    assert second.forecast == pytest.approx(100.0)
    assert second.synthesis.bounds.run_id != first.synthesis.bounds.run_id


# --------------------------------------------------------------------------------------
# forecast_next_close
# --------------------------------------------------------------------------------------


def test_forecast_rejects_bounds_from_another_run():
    context, _, _ = _run(CLOSES)
    other, _, _ = _run(CLOSES)

    with pytest.raises(BoundsMismatchError):
        pipeline.forecast_next_close(context, bounds=other.synthesis.bounds)

    stale = NormalizationBounds(0.0, 1.0, 0.0, 1.0)
    with pytest.raises(BoundsMismatchError):
        pipeline.forecast_next_close(context, bounds=stale)


def test_forecast_with_own_bounds_matches_run_forecast():
    context, _, _ = _run(CLOSES)

    assert pipeline.forecast_next_close(
        context, bounds=context.synthesis.bounds
    ) == pytest.approx(context.forecast)


# --------------------------------------------------------------------------------------
# main
# --------------------------------------------------------------------------------------


def test_main_reports_forecast_errors(monkeypatch, capsys):
    def fail(**kwargs):
        raise InsufficientHistoryError(available=5, required=11)

    monkeypatch.setattr(pipeline, "run_pipeline", fail)

    assert pipeline.main(["reliance"]) == 1
    assert "Not enough price history" in capsys.readouterr().out


def test_main_normalizes_ticker_and_passes_options(monkeypatch):
    received = {}
    monkeypatch.setattr(pipeline, "run_pipeline", lambda **kw: received.update(kw))

    assert pipeline.main(["tcs", "--epochs", "3", "--time-steps", "5"]) == 0
    assert received["ticker"] == "TCS.BSE"
    assert received["epochs"] == 3
    assert received["time_steps"] == 5
