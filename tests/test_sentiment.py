import pytest
import requests

from sentiment_lstm import config, sentiment


# --------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------


def _article(*pairs):
    return {
        "title": "headline",
        "ticker_sentiment": [
            {"ticker": ticker, "ticker_sentiment_score": score} for ticker, score in pairs
        ],
    }


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


# --------------------------------------------------------------------------------------
# aggregate_sentiment
# --------------------------------------------------------------------------------------


def test_base_symbol_strips_exchange_suffix():
    assert sentiment.base_symbol(" reliance.bse ") == "RELIANCE"
    assert sentiment.base_symbol("AAPL") == "AAPL"


def test_aggregate_sentiment_averages_matching_scores():
    articles = [
        _article(("RELIANCE", "0.30"), ("TCS", "-0.90")),
        _article(("RELIANCE", "-0.10")),
        _article(("INFY", "0.80")),
    ]

    score = sentiment.aggregate_sentiment(articles, "RELIANCE.BSE")

    assert score == pytest.approx(0.10)


def test_aggregate_sentiment_no_match_returns_exact_fallback():
    articles = [_article(("TCS", "0.5"))]

    assert sentiment.aggregate_sentiment(articles, "RELIANCE") == 0.15
    assert sentiment.aggregate_sentiment([], "RELIANCE") == 0.15
    assert sentiment.aggregate_sentiment(None, "RELIANCE") == 0.15


def test_aggregate_sentiment_skips_malformed_entries():
    articles = [
        {"title": "no tags"},
        {"ticker_sentiment": None},
        _article(("AAPL", "not-a-number")),
        _article(("AAPL", 0.4)),
        "garbage",
    ]

    assert sentiment.aggregate_sentiment(articles, "AAPL") == pytest.approx(0.4)


# --------------------------------------------------------------------------------------
# fetch_news_sentiment
# --------------------------------------------------------------------------------------


def test_fetch_news_sentiment_uses_bare_symbol(monkeypatch):
    calls = {}

    def fake_get(url, params=None, timeout=None):
        calls["params"] = params
        return FakeResponse({"feed": [_article(("RELIANCE", "0.25"))]})

    monkeypatch.setattr(sentiment.requests, "get", fake_get)

    score = sentiment.fetch_news_sentiment("RELIANCE.BSE", api_key="KEY")

    assert score == pytest.approx(0.25)
    assert calls["params"]["tickers"] == "RELIANCE"
    assert calls["params"]["function"] == "NEWS_SENTIMENT"


def test_fetch_news_sentiment_transport_failure_falls_back(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.Timeout("slow feed")

    monkeypatch.setattr(sentiment.requests, "get", boom)

    assert sentiment.fetch_news_sentiment("AAPL") == config.NEUTRAL_SENTIMENT


def test_fetch_news_sentiment_bad_json_falls_back(monkeypatch):
    class BadJson(FakeResponse):
        def json(self):
            raise ValueError("Expecting value")

    monkeypatch.setattr(sentiment.requests, "get", lambda *a, **k: BadJson(None))

    assert sentiment.fetch_news_sentiment("AAPL") == 0.15


def test_fetch_news_sentiment_rate_limit_payload_falls_back(monkeypatch):
    monkeypatch.setattr(
        sentiment.requests,
        "get",
        lambda *a, **k: FakeResponse({"Information": "rate limit"}),
    )

    assert sentiment.fetch_news_sentiment("AAPL") == 0.15


@pytest.mark.parametrize("score", ["nan", "inf", "-inf", float("nan")])
def test_aggregate_sentiment_ignores_non_finite_scores(score):
    only_bad = [_article(("AAPL", score))]
    mixed = [_article(("AAPL", score)), _article(("AAPL", "0.3"))]

    assert sentiment.aggregate_sentiment(only_bad, "AAPL") == 0.15
    assert sentiment.aggregate_sentiment(mixed, "AAPL") == pytest.approx(0.3)


def test_aggregate_sentiment_non_list_structures_count_as_empty():
    assert sentiment.aggregate_sentiment(3, "AAPL") == 0.15
    assert sentiment.aggregate_sentiment([{"ticker_sentiment": 5}], "AAPL") == 0.15
    assert sentiment.aggregate_sentiment([{"ticker_sentiment": "AAPL"}], "AAPL") == 0.15


@pytest.mark.parametrize(
    "payload",
    [
        {"feed": 3},
        {"feed": [{"ticker_sentiment": 5}]},
        {"feed": [{"ticker_sentiment": [{"ticker": "AAPL", "ticker_sentiment_score": "nan"}]}]},
        [1, 2, 3],
    ],
)
def test_fetch_news_sentiment_malformed_feed_falls_back(monkeypatch, payload):
    monkeypatch.setattr(
        sentiment.requests, "get", lambda *a, **k: FakeResponse(payload)
    )

    assert sentiment.fetch_news_sentiment("AAPL") == 0.15
