"""
Daily market data retrieval and parsing.

This module:
- Normalizes user-entered tickers to the symbol format Alpha Vantage expects.
- Downloads the compact TIME_SERIES_DAILY payload via requests, or an
  equivalent history via yfinance when no API key is available.
- Turns the provider payload ({date: {"4. close": ..., "5. volume": ...}})
  into an oldest-first DataFrame of close/volume bars.

Provider failures are mapped onto DataUnavailableError with a reason that
separates an unknown symbol from a rate limit from an empty payload.

Public helpers:
    - normalize_symbol()
    - fetch_daily_series()
    - download_daily_series()
    - extract_daily_series()
    - load_price_bars()
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

import pandas as pd
import requests
import yfinance as yf

from . import config
from .errors import DataUnavailableError

SERIES_KEY = "Time Series (Daily)"
CLOSE_KEY = "4. close"
VOLUME_KEY = "5. volume"

# Alpha Vantage answers quota problems with HTTP 200 and one of these keys
RATE_LIMIT_KEYS = ("Note", "Information")
ERROR_KEY = "Error Message"


def normalize_symbol(ticker: str) -> str:
    """
    Upper-case the ticker and append the default exchange suffix.

    Symbols that already carry a suffix (RELIANCE.NSE) or are indices (^BSESN)
    are left as they are.
    """
    symbol = ticker.strip().upper()
    if not symbol:
        raise DataUnavailableError("bad_symbol", "empty ticker")
    if "." not in symbol and not symbol.startswith("^"):
        symbol += config.DEFAULT_EXCHANGE_SUFFIX
    return symbol


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def extract_daily_series(payload: Any) -> Dict[str, Mapping[str, Any]]:
    """
    Pull the date -> bar mapping out of a TIME_SERIES_DAILY payload.

    Raises:
        DataUnavailableError: rate limit note, error message, or no bars.
    """
    if not isinstance(payload, Mapping) or not payload:
        raise DataUnavailableError("empty")

    series = payload.get(SERIES_KEY)
    if series:
        return dict(series)

    for key in RATE_LIMIT_KEYS:
        if payload.get(key):
            raise DataUnavailableError("rate_limited", str(payload[key]))
    if payload.get(ERROR_KEY):
        raise DataUnavailableError("bad_symbol", str(payload[ERROR_KEY]))

    raise DataUnavailableError("empty")


def load_price_bars(daily_data: Mapping[str, Mapping[str, Any]]) -> pd.DataFrame:
    """
    Convert the provider mapping into chronological price bars.

    Returns:
        DataFrame indexed by DatetimeIndex (ascending, unique) with float
        columns ['close', 'volume'].
    """
    if not daily_data:
        raise DataUnavailableError("empty")

    df = pd.DataFrame.from_dict(daily_data, orient="index")

    missing = {CLOSE_KEY, VOLUME_KEY} - set(df.columns)
    if missing:
        raise DataUnavailableError(
            "empty", f"bars are missing fields {sorted(missing)}"
        )

    df = df[[CLOSE_KEY, VOLUME_KEY]].rename(
        columns={CLOSE_KEY: "close", VOLUME_KEY: "volume"}
    )
    try:
        df.index = pd.to_datetime(df.index)
        df = df.astype("float64")
    except (TypeError, ValueError) as exc:
        raise DataUnavailableError("empty", f"unparsable bar: {exc}") from exc

    if df.isna().any().any():
        raise DataUnavailableError("empty", "bars contain missing values")
    if (df["close"] <= 0).any():
        raise DataUnavailableError("empty", "bars contain non-positive close prices")
    if (df["volume"] < 0).any():
        raise DataUnavailableError("empty", "bars contain negative volume")

    df = df[~df.index.duplicated(keep="first")].sort_index()
    df.index.name = "date"
    return df


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


def fetch_daily_series(
    ticker: str,
    api_key: str = config.ALPHAVANTAGE_API_KEY,
    timeout: float = config.REQUEST_TIMEOUT,
) -> Dict[str, Mapping[str, Any]]:
    """
    Download the compact (~100 days) daily series from Alpha Vantage.
    """
    symbol = normalize_symbol(ticker)
    print(f"Fetching market data for {symbol} from Alpha Vantage...")

    params = {
        "function": "TIME_SERIES_DAILY",
        "symbol": symbol,
        "outputsize": "compact",
        "apikey": api_key,
    }
    try:
        response = requests.get(config.ALPHAVANTAGE_URL, params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as exc:
        raise DataUnavailableError("empty", f"request failed: {exc}") from exc
    except ValueError as exc:
        raise DataUnavailableError("empty", "response was not JSON") from exc

    daily_data = extract_daily_series(payload)
    print(f"Received {len(daily_data)} daily bars for {symbol}")
    return daily_data


def download_daily_series(
    ticker: str,
    period: str = config.YFINANCE_PERIOD,
) -> Dict[str, Mapping[str, Any]]:
    """
    Keyless alternative: download history via yfinance and return it in the
    same {date: {"4. close": ..., "5. volume": ...}} shape as Alpha Vantage.
    """
    symbol = ticker.strip().upper()
    print(f"Calling yfinance.download(ticker={symbol}, period={period})...")
    df = yf.download(symbol, period=period, interval="1d", auto_adjust=False, progress=False)

    if df is None or df.empty:
        raise DataUnavailableError("bad_symbol", f"yfinance returned no rows for {symbol}")

    # Handle MultiIndex columns like ('Close', 'RELIANCE.NS')
    if isinstance(df.columns, pd.MultiIndex):
        if "Price" in df.columns.names:
            df.columns = df.columns.get_level_values("Price")
        else:
            df.columns = df.columns.get_level_values(0)

    missing = {"Close", "Volume"} - set(df.columns)
    if missing:
        raise DataUnavailableError("empty", f"missing columns {sorted(missing)}")

    df = df[["Close", "Volume"]].dropna()
    df.index = pd.to_datetime(df.index)

    # Newest first, matching the Alpha Vantage ordering
    return {
        date.strftime("%Y-%m-%d"): {
            CLOSE_KEY: float(row["Close"]),
            VOLUME_KEY: float(row["Volume"]),
        }
        for date, row in df.sort_index(ascending=False).iterrows()
    }


def get_daily_series(
    ticker: str,
    provider: str = config.MARKET_DATA_PROVIDER,
    api_key: str = config.ALPHAVANTAGE_API_KEY,
) -> Dict[str, Mapping[str, Any]]:
    """Dispatch to the configured market data provider."""
    if provider == "alphavantage":
        return fetch_daily_series(ticker, api_key=api_key)
    if provider == "yfinance":
        return download_daily_series(ticker)
    raise ValueError(f"Unknown market data provider: {provider!r}")
