"""
Load configuration from config.yaml and .env. Environment variables override the file.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from strategy_backtester.core.errors import InputError

# Env var name -> (RiskConfig field, cast)
_RISK_ENV = {
    "INITIAL_BALANCE": ("initial_balance", float),
    "STOP_LOSS_PERCENT": ("stop_loss_percent", float),
    "TAKE_PROFIT_PERCENT": ("take_profit_percent", float),
    "TRAILING_STOP_PERCENT": ("trailing_stop_percent", float),
    "POSITION_SIZE_PERCENT": ("position_size_percent", float),
    "PRODUCT_TYPE": ("product_type", str),
    "LEVERAGE": ("leverage", float),
    "MAKER_FEE_PERCENT": ("maker_fee_percent", float),
    "TAKER_FEE_PERCENT": ("taker_fee_percent", float),
    "SLIPPAGE_PERCENT": ("slippage_percent", float),
    "EXECUTION_TIMING": ("execution_timing", str),
    "COOLDOWN_CANDLES": ("cooldown_candles", int),
    "LOT_STEP": ("lot_step", float),
    "MIN_NOTIONAL": ("min_notional", float),
}


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    elif config_path is not None:
        raise InputError("config", f"file not found: {path}", str(path))

    def env(key: str, default: str = "") -> str:
        return os.getenv(key, default).strip()

    def env_bool(key: str, default: bool = False) -> bool:
        return os.getenv(key, str(default)).lower() in ("true", "1", "yes")

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    strategy = data.get("strategy", {}) or {}
    risk = data.get("risk", {}) or {}
    execution = data.get("execution", {}) or {}
    source = data.get("data", {}) or {}
    log = data.get("logging", {}) or {}
    walk = data.get("walk_forward", {}) or {}

    # Risk and execution keys both feed RiskConfig
    risk_values: Dict[str, Any] = {**risk, **execution}
    for name, (key, cast) in _RISK_ENV.items():
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            continue
        try:
            risk_values[key] = cast(raw.strip())
        except ValueError:
            raise InputError(name, f"invalid value {raw!r}", raw) from None

    return Config(
        symbol=env("SYMBOL", str(strategy.get("symbol", "BTCUSDT"))).upper(),
        timeframe=env("TIMEFRAME", str(strategy.get("timeframe", "1h"))),
        strategy_mode=env("STRATEGY_MODE", str(strategy.get("mode", "rules"))).lower(),
        strategy_name=strategy.get("name", "rules"),
        conditions=list(strategy.get("conditions", []) or []),
        composite=dict(strategy.get("composite", {}) or {}),
        risk=risk_values,
        data_source=env("DATA_SOURCE", str(source.get("source", "csv"))).lower(),
        csv_path=env("CSV_PATH", str(source.get("csv_path", "data/{symbol}_{interval}.csv"))),
        limit=env_int("CANDLE_LIMIT", source.get("limit", 500)),
        futures_data=env_bool("FUTURES_DATA", source.get("futures", False)),
        log_level=env("LOG_LEVEL", log.get("level", "INFO")),
        log_dir=Path(log.get("log_dir", "logs")),
        log_file=log.get("log_file", "strategy_backtester.log"),
        walk_forward_train_pct=float(walk.get("train_pct", 0.7)),
        walk_forward_step_bars=walk.get("step_bars"),
    )


class Config:
    """Unified configuration. Immutable after load."""

    __slots__ = (
        "symbol", "timeframe", "strategy_mode", "strategy_name", "conditions", "composite",
        "risk", "data_source", "csv_path", "limit", "futures_data",
        "log_level", "log_dir", "log_file",
        "walk_forward_train_pct", "walk_forward_step_bars",
    )

    def __init__(
        self,
        symbol: str = "BTCUSDT",
        timeframe: str = "1h",
        strategy_mode: str = "rules",
        strategy_name: str = "rules",
        conditions: Optional[List[dict]] = None,
        composite: Optional[dict] = None,
        risk: Optional[dict] = None,
        data_source: str = "csv",
        csv_path: str = "data/{symbol}_{interval}.csv",
        limit: int = 500,
        futures_data: bool = False,
        log_level: str = "INFO",
        log_dir: Path = None,
        log_file: str = "strategy_backtester.log",
        walk_forward_train_pct: float = 0.7,
        walk_forward_step_bars: Optional[int] = None,
    ):
        self.symbol = symbol
        self.timeframe = timeframe
        self.strategy_mode = strategy_mode
        self.strategy_name = strategy_name
        self.conditions = conditions or []
        self.composite = composite or {}
        self.risk = risk or {}
        self.data_source = data_source
        self.csv_path = csv_path
        self.limit = limit
        self.futures_data = futures_data
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file
        self.walk_forward_train_pct = walk_forward_train_pct
        self.walk_forward_step_bars = walk_forward_step_bars

    def risk_config(self):
        """Validated RiskConfig from the risk and execution sections."""
        from strategy_backtester.risk.config import RiskConfig

        return RiskConfig.from_dict(self.risk).validate()

    def build_strategy(self):
        """Strategy for strategy_mode: 'rules' (condition rows) or 'composite'."""
        from strategy_backtester.strategies.composite import CompositeScoreStrategy, FactorWeights
        from strategy_backtester.strategies.conditions import RuleBasedStrategy

        if self.strategy_mode == "rules":
            return RuleBasedStrategy.from_rows(self.conditions, name=self.strategy_name)
        if self.strategy_mode == "composite":
            params = dict(self.composite)
            weights = params.pop("weights", None)
            if weights is not None:
                if not isinstance(weights, dict):
                    raise InputError("weights", "expected a mapping of factor -> weight", weights)
                try:
                    params["weights"] = FactorWeights(**weights)
                except TypeError:
                    raise InputError("weights", f"unknown factor in {sorted(weights)}", weights) from None
            try:
                return CompositeScoreStrategy(**params)
            except TypeError:
                raise InputError("composite", f"unknown parameter in {sorted(params)}", params) from None
        raise InputError("strategy.mode", f"unknown mode {self.strategy_mode!r}", self.strategy_mode)

    def candle_source(self):
        from strategy_backtester.data import BinanceCandleSource, CsvCandleSource

        if self.data_source == "csv":
            return CsvCandleSource(self.csv_path)
        if self.data_source == "binance":
            return BinanceCandleSource(futures=self.futures_data)
        raise InputError("data.source", f"unknown source {self.data_source!r}", self.data_source)
