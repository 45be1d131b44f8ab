"""
Data Processing Module

Kline file ingestion and validation.
"""

from .data_ingestor import KlineIngestor, candles_to_frame, kline_file_name, save_klines_json

__all__ = ["KlineIngestor", "candles_to_frame", "kline_file_name", "save_klines_json"]
