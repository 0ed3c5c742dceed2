#!/usr/bin/env python

"""
Command-line entry point for the sentiment-fused LSTM forecaster.

Usage (from project root, inside .venv):

    python run_pipeline.py RELIANCE.BSE
    python run_pipeline.py AAPL --provider yfinance --epochs 20
"""

import os

from sentiment_lstm.pipeline import main as pipeline_main


def ensure_api_key() -> None:
    """Warn if no Alpha Vantage key is configured."""
    if "ALPHAVANTAGE_API_KEY" not in os.environ:
        print("---- ENVIRONMENT WARNING ----")
        print("ALPHAVANTAGE_API_KEY is not set; the shared 'demo' key will be used.")
        print("Get a free key at https://www.alphavantage.co/support/#api-key and run:")
        print("  export ALPHAVANTAGE_API_KEY=<your key>")
        print("Or use the keyless provider:")
        print("  python run_pipeline.py AAPL --provider yfinance")
        print()


def main() -> int:
    ensure_api_key()
    return pipeline_main()


if __name__ == "__main__":
    raise SystemExit(main())
