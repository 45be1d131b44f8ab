"""Synthetic kline builders shared by the tests."""

from kline_backtest.models import Candle

MINUTE_MS = 60_000

# 20 one-minute candles forming one clean double bottom:
#   0-2   bearish run, anchor low 94 (candle 2)
#   3-5   bullish run, neckline = high of candle 5 (108)
#   6-7   pullback, lowest close 97 (candle 7, low 96)
#   8-10  rally, candle 10 closes above the neckline (trigger)
#   11-19 steady bullish trend, reaches 136 on candle 17
W_SCENARIO = [
    (110, 111, 104, 105),
    (105, 106, 99, 100),
    (100, 101, 94, 95),
    (95, 100, 94.5, 99),
    (99, 104, 98, 103),
    (103, 108, 102, 107),
    (107, 107.5, 100, 101),
    (101, 102, 96, 97),
    (97, 103, 96.5, 102),
    (102, 107, 101, 106),
    (106, 110, 105, 109),
    (109, 114, 108, 113),
    (113, 118, 112, 117),
    (117, 122, 116, 121),
    (121, 126, 120, 125),
    (125, 130, 124, 129),
    (129, 134, 128, 133),
    (133, 138, 132, 137),
    (137, 142, 136, 141),
    (141, 146, 140, 145),
]


def build_candles(ohlc, start_index=0):
    """(open, high, low, close) tuples -> one-minute Candles."""
    candles = []
    for i, (o, h, l, c) in enumerate(ohlc, start=start_index):
        open_time = i * MINUTE_MS
        candles.append(Candle(
            open_time=open_time,
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            close_time=open_time + MINUTE_MS - 1,
            volume=1.0,
        ))
    return candles
