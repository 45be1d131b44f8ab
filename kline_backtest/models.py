"""
Backtest data models - candles, pattern matches, strategies and trades.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class MalformedCandleError(ValueError):
    """Raised when kline data violates the OHLC invariants."""


# ================================
# Enums
# ================================

class PatternKind(str, Enum):
    """Chart formations the scanner can detect."""
    W = "W"
    M = "M"
    BULL_REVERSAL = "Bull Reversal"


class MarketType(str, Enum):
    SPOT = "spot"
    FUTURES = "futures"


class TradeStatus(str, Enum):
    NOT_OPENED = "not_opened"
    NOT_TRIGGERED = "not_triggered"
    RUNNING = "running"
    CLOSED = "closed"


class TradeResult(str, Enum):
    WIN = "win"
    LOST = "lost"
    UNKNOWN = "unknown"                   # SL and TP touched by the same candle


class TradeDirection(str, Enum):
    LONG = "long"
    SHORT = "short"


# ================================
# Candle
# ================================

@dataclass(frozen=True)
class Candle:
    """One OHLC kline. Times are epoch milliseconds."""
    open_time: int
    open: float
    high: float
    low: float
    close: float
    close_time: int
    volume: float = 0.0
    quote_volume: float = 0.0
    trade_count: int = 0
    taker_buy_base: float = 0.0
    taker_buy_quote: float = 0.0

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    def brackets(self, price: float) -> bool:
        """True if price lies inside the candle's low/high range."""
        return self.low <= price <= self.high


# ================================
# Pattern Parameters
# ================================

@dataclass(frozen=True)
class DoublePatternParams:
    """Size parameters shared by the W and M detectors."""
    kind: PatternKind                     # W / M
    repetition_count: int                 # candles per directional run
    search_range: int                     # window for each later phase

    def __post_init__(self):
        if self.kind not in (PatternKind.W, PatternKind.M):
            raise ValueError(f"DoublePatternParams only supports W and M, got {self.kind}")
        if self.repetition_count < 1 or self.search_range < 1:
            raise ValueError(
                f"repetition_count and search_range must be >= 1, "
                f"got {self.repetition_count}, {self.search_range}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.kind.value,
            "repetition_count": self.repetition_count,
            "search_range": self.search_range,
        }


@dataclass(frozen=True)
class ReversalPatternParams:
    """Size parameters for the bull reversal detector."""
    trend_length: int
    counter_trend_length: int
    kind: PatternKind = PatternKind.BULL_REVERSAL

    def __post_init__(self):
        if self.kind is not PatternKind.BULL_REVERSAL:
            raise ValueError(f"ReversalPatternParams only supports BULL_REVERSAL, got {self.kind}")
        if self.trend_length < 1 or self.counter_trend_length < 1:
            raise ValueError(
                f"trend_length and counter_trend_length must be >= 1, "
                f"got {self.trend_length}, {self.counter_trend_length}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.kind.value,
            "trend_length": self.trend_length,
            "counter_trend_length": self.counter_trend_length,
        }


PatternParams = Union[DoublePatternParams, ReversalPatternParams]


# ================================
# Pattern Matches
# ================================

@dataclass
class WPatternMatch:
    """Double bottom."""
    start_index: int
    start_time: int
    end_index: int
    end_time: int
    lower_price: float                    # anchor low of the first bottom
    neckline_price: float


@dataclass
class MPatternMatch:
    """Double top."""
    start_index: int
    start_time: int
    end_index: int
    end_time: int
    higher_price: float                   # anchor high of the first top
    neckline_price: float


@dataclass
class ReversalPatternMatch:
    start_index: int
    start_time: int
    end_index: int
    end_time: int
    peak_price: float                     # close of the last trend candle
    end_price: float                      # close of the last counter-trend candle


PatternMatch = Union[WPatternMatch, MPatternMatch, ReversalPatternMatch]


# ================================
# Strategy
# ================================

@dataclass(frozen=True)
class StrategyConfig:
    """
    One runnable strategy: trade management + pattern parameters.

    Immutable. The running balance of a backtest lives in AccountState.
    """
    take_profit_multiplier: float
    stop_loss_multiplier: float
    risk_per_trade: float                 # fraction of equity, 0.01 = 1%
    starting_equity: float
    market_type: MarketType
    pattern_params: PatternParams

    def __post_init__(self):
        if self.take_profit_multiplier <= 0 or self.stop_loss_multiplier <= 0:
            raise ValueError(
                f"Multipliers must be > 0, got tp={self.take_profit_multiplier}, "
                f"sl={self.stop_loss_multiplier}"
            )
        if not 0 < self.risk_per_trade <= 1:
            raise ValueError(f"risk_per_trade must be in (0, 1], got {self.risk_per_trade}")
        if self.starting_equity <= 0:
            raise ValueError(f"starting_equity must be > 0, got {self.starting_equity}")

    @property
    def pattern_kind(self) -> PatternKind:
        return self.pattern_params.kind

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "take_profit_multiplier": self.take_profit_multiplier,
            "stop_loss_multiplier": self.stop_loss_multiplier,
            "risk_per_trade": self.risk_per_trade,
            "starting_equity": self.starting_equity,
            "market_type": self.market_type.value,
        }
        data.update(self.pattern_params.to_dict())
        return data


@dataclass
class AccountState:
    """Balance of a single strategy run."""
    equity: float
    equity_curve: List[float] = field(default_factory=list)
    exhausted: bool = False               # equity reached zero, run halted


# ================================
# Trade
# ================================

_ALLOWED_TRANSITIONS = {
    TradeStatus.NOT_OPENED: {TradeStatus.NOT_TRIGGERED, TradeStatus.RUNNING},
    TradeStatus.NOT_TRIGGERED: {TradeStatus.RUNNING},
    TradeStatus.RUNNING: {TradeStatus.CLOSED},
    TradeStatus.CLOSED: set(),
}


@dataclass
class Trade:
    """Simulated trade. Created by the trade factory, mutated by the resolver only."""
    entry_price: float
    stop_loss: float
    take_profit: float
    open_time: int                        # close_time of the confirming candle
    direction: TradeDirection
    pattern_kind: PatternKind
    close_time: Optional[int] = None
    triggered_time: Optional[int] = None
    position_size: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    fees: float = 0.0
    status: TradeStatus = TradeStatus.NOT_OPENED
    result: Optional[TradeResult] = None

    @property
    def is_closed(self) -> bool:
        return self.status is TradeStatus.CLOSED

    def transition(self, target: TradeStatus) -> None:
        """Move to target status. Backward or skipping moves raise ValueError."""
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"Invalid trade status transition: {self.status} -> {target}")
        self.status = target

    def close(self, result: TradeResult, close_time: int) -> None:
        self.transition(TradeStatus.CLOSED)
        self.result = result
        self.close_time = close_time

    def stop_hit(self, candle: Candle) -> bool:
        if self.direction is TradeDirection.LONG:
            return candle.low <= self.stop_loss
        return candle.high >= self.stop_loss

    def target_hit(self, candle: Candle) -> bool:
        if self.direction is TradeDirection.LONG:
            return candle.high >= self.take_profit
        return candle.low <= self.take_profit


# ================================
# Results
# ================================

@dataclass(frozen=True)
class StrategyResult:
    """Statistics of one strategy run. Ratios are NaN when no trade closed."""
    config: StrategyConfig
    win_count: int
    lose_count: int
    unknown_count: int
    closed_count: int
    open_count: int
    win_ratio: float
    lose_ratio: float
    unknown_ratio: float
    required_win_ratio: float
    efficiency_ratio: float
    risk_reward_label: str
    final_equity: float
    total_return_pct: float
    max_drawdown_pct: float
    equity_curve: List[float] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_closed_trades(self) -> bool:
        return self.closed_count > 0 and not math.isnan(self.win_ratio)

    def to_dict(self) -> Dict[str, Any]:
        """Flat dict for DataFrame / JSON export."""
        return {
            **self.config.to_dict(),
            "win_count": self.win_count,
            "lose_count": self.lose_count,
            "unknown_count": self.unknown_count,
            "closed_count": self.closed_count,
            "open_count": self.open_count,
            "win_ratio": self.win_ratio,
            "lose_ratio": self.lose_ratio,
            "unknown_ratio": self.unknown_ratio,
            "required_win_ratio": self.required_win_ratio,
            "efficiency_ratio": self.efficiency_ratio,
            "risk_reward": self.risk_reward_label,
            "final_equity": self.final_equity,
            "total_return_pct": self.total_return_pct,
            "max_drawdown_pct": self.max_drawdown_pct,
            "equity_curve": list(self.equity_curve),
            "error": self.error,
        }
