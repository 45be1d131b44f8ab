"""
Configuration for the Pattern Strategy Optimizer.

This module contains the sweep ranges and run settings for grid search.
Defaults can be loaded from optimizer_config.json next to this file;
explicit JSON files and CLI arguments take precedence.
"""

import os
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from pathlib import Path

from kline_backtest.models import MarketType, PatternKind, StrategyConfig

# ================================
# BLAS THREAD LIMITS (for multiprocessing)
# ================================
os.environ.setdefault("OMP_NUM_THREADS", "1")
os.environ.setdefault("OPENBLAS_NUM_THREADS", "1")
os.environ.setdefault("MKL_NUM_THREADS", "1")


# ================================
# PATHS
# ================================
# Default output directory
DEFAULT_OUTPUT_DIR = Path(__file__).parent / "output"

# JSON config file path
CONFIG_FILE = Path(__file__).parent / "optimizer_config.json"


def load_json_config(path: Path = CONFIG_FILE) -> Dict[str, Any]:
    """Load configuration from JSON file if it exists."""
    if path.exists():
        with open(path, 'r') as f:
            return json.load(f)
    return {}


# Load JSON config once at module load
_JSON_CONFIG = load_json_config()


def _section_value(data: Dict[str, Any], section: str, key: str, default: Any) -> Any:
    """Get data[section][key] with fallback to default."""
    return data.get(section, {}).get(key, default)


def _get_json_default(section: str, key: str, default: Any) -> Any:
    """Get value from JSON config with fallback to default."""
    return _section_value(_JSON_CONFIG, section, key, default)


# ================================
# RANGES
# ================================
@dataclass(frozen=True)
class ParamRange:
    """
    Inclusive [min, max] range walked with a fixed step.

    Values are computed from the step count (min + i * step), so float
    steps never accumulate drift. max < min gives an empty range.
    """
    min: float
    max: float
    step: float = 1.0

    def __post_init__(self):
        if self.step <= 0:
            raise ValueError(f"step must be > 0, got {self.step}")

    def values(self) -> List[float]:
        if self.max < self.min:
            return []
        count = int(math.floor((self.max - self.min) / self.step + 1e-9)) + 1
        return [round(self.min + i * self.step, 10) for i in range(count)]

    @property
    def is_integral(self) -> bool:
        """True if every value of the range is a whole number."""
        return float(self.min).is_integer() and float(self.step).is_integer()

    def int_values(self) -> List[int]:
        return [int(round(v)) for v in self.values()]

    def __len__(self) -> int:
        return len(self.values())

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max, "step": self.step}

    @classmethod
    def parse(cls, value: Union["ParamRange", Dict[str, float], List[float], float]) -> "ParamRange":
        """
        Build a range from a dict {min, max, step}, a [min, max, step]
        list or a single number (fixed value).
        """
        if isinstance(value, ParamRange):
            return value
        if isinstance(value, dict):
            return cls(value["min"], value["max"], value.get("step", 1.0))
        if isinstance(value, (list, tuple)):
            return cls(*value)
        return cls(value, value, 1.0)


def parse_pattern(name: Union[str, PatternKind]) -> PatternKind:
    """PatternKind from its value ("Bull Reversal") or name ("BULL_REVERSAL")."""
    if isinstance(name, PatternKind):
        return name
    normalized = str(name).strip().upper()
    for kind in PatternKind:
        if normalized in (kind.name, kind.value.upper()):
            return kind
    raise ValueError(f"Unknown pattern: {name}. Supported: {[k.value for k in PatternKind]}")


def _default_range(key: str, default: List[float]) -> ParamRange:
    return ParamRange.parse(_get_json_default("ranges", key, default))


# ================================
# SWEEP CONFIGURATION
# ================================
@dataclass
class SweepConfig:
    """
    Configuration for a strategy sweep.

    Values are loaded from optimizer_config.json if present,
    with CLI arguments taking precedence.

    size_a / size_b are repetition count / search range for W and M,
    trend / counter-trend length for the bull reversal. Risk is in
    percent of equity (1 = 1%).
    """
    patterns: List[PatternKind] = field(default_factory=lambda: [
        parse_pattern(p) for p in _get_json_default("sweep", "patterns", ["W"])
    ])

    # Ranges (from JSON: ranges.*)
    take_profit: ParamRange = field(default_factory=lambda: _default_range("take_profit", [1.0, 3.0, 0.5]))
    stop_loss: ParamRange = field(default_factory=lambda: _default_range("stop_loss", [1.0, 1.5, 0.25]))
    size_a: ParamRange = field(default_factory=lambda: _default_range("size_a", [2, 4, 1]))
    size_b: ParamRange = field(default_factory=lambda: _default_range("size_b", [10, 30, 10]))
    risk: ParamRange = field(default_factory=lambda: _default_range("risk", [1, 1, 1]))

    # Backtest settings (from JSON: backtest.*)
    starting_equity: float = field(default_factory=lambda: _get_json_default("backtest", "starting_equity", 1000.0))
    market_type: MarketType = field(default_factory=lambda: MarketType(_get_json_default("backtest", "market_type", "spot")))
    potential_only: bool = field(default_factory=lambda: _get_json_default("backtest", "potential_only", False))

    # Parallelization (from JSON: parallelization.num_workers)
    num_workers: int = field(default_factory=lambda: _get_json_default("parallelization", "num_workers", 1))

    # Ranking (from JSON: ranking.*)
    min_closed_trades: int = field(default_factory=lambda: _get_json_default("ranking", "min_closed_trades", 1))
    top_n: int = field(default_factory=lambda: _get_json_default("ranking", "top_n", 20))

    output_dir: Path = DEFAULT_OUTPUT_DIR

    def __post_init__(self):
        self.patterns = [parse_pattern(p) for p in self.patterns]
        if not self.patterns:
            raise ValueError("At least one pattern is required")
        self.market_type = MarketType(self.market_type)
        self.output_dir = Path(self.output_dir)
        if self.num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {self.num_workers}")
        for name in ("size_a", "size_b"):
            if not getattr(self, name).is_integral:
                raise ValueError(f"{name} needs a whole-number min and step, got {getattr(self, name)}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SweepConfig":
        """
        Build a config from a dict with the optimizer_config.json layout.

        Missing keys fall back to the module defaults.
        """
        defaults = cls()
        ranges = data.get("ranges", {})

        def rng(key: str) -> ParamRange:
            return ParamRange.parse(ranges[key]) if key in ranges else getattr(defaults, key)

        return cls(
            patterns=_section_value(data, "sweep", "patterns", defaults.patterns),
            take_profit=rng("take_profit"),
            stop_loss=rng("stop_loss"),
            size_a=rng("size_a"),
            size_b=rng("size_b"),
            risk=rng("risk"),
            starting_equity=_section_value(data, "backtest", "starting_equity", defaults.starting_equity),
            market_type=_section_value(data, "backtest", "market_type", defaults.market_type),
            potential_only=_section_value(data, "backtest", "potential_only", defaults.potential_only),
            num_workers=_section_value(data, "parallelization", "num_workers", defaults.num_workers),
            min_closed_trades=_section_value(data, "ranking", "min_closed_trades", defaults.min_closed_trades),
            top_n=_section_value(data, "ranking", "top_n", defaults.top_n),
            output_dir=_section_value(data, "output", "dir", defaults.output_dir),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sweep": {"patterns": [p.value for p in self.patterns]},
            "ranges": {
                "take_profit": self.take_profit.to_dict(),
                "stop_loss": self.stop_loss.to_dict(),
                "size_a": self.size_a.to_dict(),
                "size_b": self.size_b.to_dict(),
                "risk": self.risk.to_dict(),
            },
            "backtest": {
                "starting_equity": self.starting_equity,
                "market_type": self.market_type.value,
                "potential_only": self.potential_only,
            },
            "parallelization": {"num_workers": self.num_workers},
            "ranking": {"min_closed_trades": self.min_closed_trades, "top_n": self.top_n},
            "output": {"dir": str(self.output_dir)},
        }


def load_sweep_config(path: Optional[Union[str, Path]] = None) -> SweepConfig:
    """
    Load a SweepConfig from an explicit JSON file.

    Args:
        path: JSON file path; None gives the module defaults

    Returns:
        SweepConfig
    """
    if path is None:
        return SweepConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sweep config not found: {path}")

    return SweepConfig.from_dict(load_json_config(path))


def build_strategies(config: SweepConfig) -> List[StrategyConfig]:
    """
    Expand a sweep configuration into strategy configurations.

    A W + M sweep is interleaved per combination; other pattern lists
    are concatenated grid by grid.
    """
    from pattern_optimizer.engine.parameter_grid import ParameterGrid, create_w_and_m_strategies

    if config.patterns == [PatternKind.W, PatternKind.M]:
        return create_w_and_m_strategies(
            take_profit=config.take_profit,
            stop_loss=config.stop_loss,
            repetition_count=config.size_a,
            search_range=config.size_b,
            risk=config.risk,
            starting_equity=config.starting_equity,
            market_type=config.market_type,
        )

    strategies: List[StrategyConfig] = []
    for pattern in config.patterns:
        grid = ParameterGrid(
            pattern,
            take_profit=config.take_profit,
            stop_loss=config.stop_loss,
            size_a=config.size_a,
            size_b=config.size_b,
            risk=config.risk,
            starting_equity=config.starting_equity,
            market_type=config.market_type,
        )
        strategies.extend(grid.build_strategies())
    return strategies


# ================================
# CONSOLE OUTPUT HELPERS
# ================================
class Colors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def print_status(message: str, status: str = "INFO") -> None:
    """Print status message with color."""
    from datetime import datetime
    colors = {
        "INFO": Colors.OKBLUE,
        "SUCCESS": Colors.OKGREEN,
        "WARNING": Colors.WARNING,
        "ERROR": Colors.FAIL,
        "HEADER": Colors.HEADER,
        "PROGRESS": Colors.OKCYAN,
    }
    color = colors.get(status, Colors.ENDC)
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"{color}[{timestamp}] {status}: {message}{Colors.ENDC}")


def print_progress_bar(percent: float, prefix: str = '', suffix: str = '', length: int = 50) -> None:
    """Display progress bar for an overall percentage (0-100)."""
    fraction = min(max(percent / 100.0, 0.0), 1.0)
    filled = int(length * fraction)
    bar = '#' * filled + '-' * (length - filled)
    print(f'\r{Colors.OKCYAN}{prefix} |{bar}| {fraction:.1%} {suffix}{Colors.ENDC}', end='', flush=True)
    if fraction >= 1.0:
        print()
