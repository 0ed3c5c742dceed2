import os

# Default instrument (Alpha Vantage symbol, exchange suffix included)
TICKER = "RELIANCE.BSE"

# Suffix appended to bare symbols before querying the market-data provider
DEFAULT_EXCHANGE_SUFFIX = ".BSE"

# Market data provider: "alphavantage" or "yfinance"
MARKET_DATA_PROVIDER = os.getenv("MARKET_DATA_PROVIDER", "alphavantage")

# Alpha Vantage access
ALPHAVANTAGE_URL = "https://www.alphavantage.co/query"
ALPHAVANTAGE_API_KEY = os.getenv("ALPHAVANTAGE_API_KEY", "demo")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 10))

# yfinance history length when using the keyless provider
YFINANCE_PERIOD = "6mo"

# Window length (number of past days fed to the LSTM)
TIME_STEPS = int(os.getenv("TIME_STEPS", 10))

# price, volume, sma, rsi, sentiment
N_FEATURES = 5

# Indicator lookbacks
SMA_PERIOD = 20
RSI_PERIOD = 14

# Sentiment used when no article mentions the symbol or the feed is down
NEUTRAL_SENTIMENT = 0.15

RANDOM_SEED = 42

# LSTM hyperparameters
LSTM_CONFIG = {
    "units": [64, 32],
    "dropout": 0.2,
    "batch_size": 32,
    "epochs": int(os.getenv("EPOCHS", 50)),
    "learning_rate": 1e-3,
}
