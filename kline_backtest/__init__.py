"""
Kline Backtest Engine

Chart-pattern detection and trade simulation on historical candlestick
(kline) data.

Modules:
    - detectors: W / M / bull reversal pattern scanners
    - trade_factory: pattern matches -> pending trades
    - trade_resolver: chronological trade resolution and equity accounting
    - analysis: strategy statistics and equity charts
    - data_processor: kline ingestion and validation
"""

__version__ = "0.1.0"
