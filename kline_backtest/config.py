"""
Backtest Configuration

Fixed market constants used by the trade resolver.
"""

from .models import MarketType

# Fee rate charged on notional at activation
TAXES_SPOT = 0.0
TAXES_FUTURES = 0.0002

# Spot notional cap: position_size * entry_price <= equity * MAX_LEVERAGE
MAX_LEVERAGE = 10.0

# Candles between two progress reports
PROGRESS_REPORT_INTERVAL = 1000

FEE_RATES = {
    MarketType.SPOT: TAXES_SPOT,
    MarketType.FUTURES: TAXES_FUTURES,
}


def fee_rate_for(market_type: MarketType) -> float:
    """Fee rate applied to a trade's notional for the given market."""
    return FEE_RATES[market_type]
