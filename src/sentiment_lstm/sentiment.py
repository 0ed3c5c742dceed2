"""
News sentiment for one instrument.

The news feed (Alpha Vantage NEWS_SENTIMENT) tags each article with
per-ticker scores keyed by the bare symbol, so exchange suffixes are
stripped before matching. The aggregate is the mean of the matching scores.

A missing signal never aborts a run: no matching articles, a malformed
payload, or a failed request all yield config.NEUTRAL_SENTIMENT.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

import requests

from . import config


def base_symbol(ticker: str) -> str:
    """RELIANCE.BSE -> RELIANCE"""
    return ticker.strip().upper().split(".")[0]


def aggregate_sentiment(
    articles: Iterable[Mapping[str, Any]] | None,
    ticker: str,
    neutral: float = config.NEUTRAL_SENTIMENT,
) -> float:
    """
    Mean ticker_sentiment_score over articles that mention `ticker`.

    Each article contributes at most one score (its first entry for the
    symbol). Entries with unparsable or non-finite scores are skipped, and a
    feed or tag list that is not a list counts as empty.
    """
    symbol = base_symbol(ticker)
    scores = []

    if not isinstance(articles, (list, tuple)):
        return neutral

    for article in articles:
        if not isinstance(article, Mapping):
            continue
        tags = article.get("ticker_sentiment")
        if not isinstance(tags, (list, tuple)):
            continue
        for entry in tags:
            if not isinstance(entry, Mapping) or entry.get("ticker") != symbol:
                continue
            try:
                score = float(entry["ticker_sentiment_score"])
            except (KeyError, TypeError, ValueError):
                break
            if math.isfinite(score):
                scores.append(score)
            break

    if not scores:
        return neutral
    return sum(scores) / len(scores)


def fetch_news_sentiment(
    ticker: str,
    api_key: str = config.ALPHAVANTAGE_API_KEY,
    timeout: float = config.REQUEST_TIMEOUT,
) -> float:
    """
    Download recent articles for `ticker` and aggregate their sentiment.

    Returns config.NEUTRAL_SENTIMENT on any transport or parsing failure.
    """
    symbol = base_symbol(ticker)
    print(f"Analyzing news sentiment for {symbol}...")

    params = {"function": "NEWS_SENTIMENT", "tickers": symbol, "apikey": api_key}
    try:
        response = requests.get(config.ALPHAVANTAGE_URL, params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        print(f"Warning: news sentiment unavailable ({exc}); using neutral default.")
        return config.NEUTRAL_SENTIMENT

    feed = payload.get("feed") if isinstance(payload, Mapping) else None
    score = aggregate_sentiment(feed, symbol)
    print(f"Sentiment for {symbol}: {score:.3f}")
    return score
