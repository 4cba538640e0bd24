"""
Liquidity range optimizer.

Recommends a price band around the current price for concentrated
liquidity from pool depth, volatility, 24h volume and price trend. Bands
are fractional offsets internally and converted to absolute prices at the
boundary. Invalid metrics degrade to the default band instead of raising:
liquidity suggestions are advisory and must never hard-fail the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from backend_aether.aether_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MIN_RANGE = 0.1
DEFAULT_MAX_RANGE = 0.1
MAX_RANGE = 0.5
MIN_POOL_DEPTH = 1000.0
MAX_VOLATILITY = 0.5
TARGET_UTILIZATION = 0.8


@dataclass(frozen=True)
class LiquidityMetrics:
    """Snapshot of one pool at one instant."""

    pool_depth: float
    volatility: float
    volume_24h: float
    current_price: float
    price_change_24h: float

    @classmethod
    def from_pool_resource(cls, data: Mapping[str, Any]) -> LiquidityMetrics:
        """Build from the on-chain liquidity_pool::Pool resource data."""
        return cls(
            pool_depth=float(data["total_liquidity"]),
            volatility=float(data["volatility"]),
            volume_24h=float(data["volume_24h"]),
            current_price=float(data["current_price"]),
            price_change_24h=float(data["price_change_24h"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pool_depth": self.pool_depth,
            "volatility": self.volatility,
            "volume_24h": self.volume_24h,
            "current_price": self.current_price,
            "price_change_24h": self.price_change_24h,
        }


@dataclass(frozen=True)
class OptimalRange:
    """Fractional offsets below (min) and above (max) the current price."""

    min: float
    max: float

    def to_price_bounds(self, current_price: float) -> tuple[float, float]:
        return current_price * (1 - self.min), current_price * (1 + self.max)

    def to_dict(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max}


@dataclass(frozen=True)
class OptimalParameters:
    min_price: float
    max_price: float
    target_utilization: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "min_price": self.min_price,
            "max_price": self.max_price,
            "target_utilization": self.target_utilization,
        }


@dataclass(frozen=True)
class LiquidityConfig:
    default_min_range: float = DEFAULT_MIN_RANGE
    default_max_range: float = DEFAULT_MAX_RANGE
    max_range: float = MAX_RANGE
    min_pool_depth: float = MIN_POOL_DEPTH
    max_volatility: float = MAX_VOLATILITY

    base_range_cap: float = 0.4
    trend_damping: float = 0.5
    trend_adjustment_cap: float = 0.3
    depth_factor_cap: float = 2.0

    target_utilization: float = TARGET_UTILIZATION
    min_utilization: float = 0.5
    max_utilization: float = 0.9
    high_volatility_above: float = 0.1
    strong_trend_above: float = 0.05


class LiquidityOptimizer:
    """Deterministic, stateless range optimizer."""

    def __init__(self, config: LiquidityConfig | None = None) -> None:
        self.config = config or LiquidityConfig()

    @property
    def default_range(self) -> OptimalRange:
        return OptimalRange(self.config.default_min_range, self.config.default_max_range)

    def validate(self, metrics: LiquidityMetrics) -> bool:
        """True if the pool is deep, calm and active enough for a reliable band."""
        cfg = self.config
        return (
            metrics.pool_depth >= cfg.min_pool_depth
            and metrics.volatility <= cfg.max_volatility
            and metrics.volume_24h > 0
            and metrics.current_price > 0
        )

    def trend_adjustment(self, metrics: LiquidityMetrics) -> float:
        """Dampened relative price trend, capped; skews the band toward the trend."""
        cfg = self.config
        trend_strength = metrics.price_change_24h / metrics.current_price
        return min(abs(trend_strength) * cfg.trend_damping, cfg.trend_adjustment_cap)

    def depth_factor(self, pool_depth: float) -> float:
        """Wider bands for deeper pools, up to depth_factor_cap."""
        cfg = self.config
        return min(pool_depth / (cfg.min_pool_depth * 10), cfg.depth_factor_cap)

    def _constrain(self, value: float, floor: float) -> float:
        return max(min(value, self.config.max_range), floor)

    def optimize_range(self, metrics: LiquidityMetrics) -> OptimalRange:
        """
        Optimal band as fractional offsets, each within [0.1, 0.5].

        Invalid metrics return the default band.
        """
        if not self.validate(metrics):
            logger.warning("liquidity_metrics_invalid", **metrics.to_dict())
            return self.default_range

        cfg = self.config
        base_range = min(metrics.volatility * 2, cfg.base_range_cap)
        trend = self.trend_adjustment(metrics)
        depth = self.depth_factor(metrics.pool_depth)
        low = base_range * (1 - trend) * depth
        high = base_range * (1 + trend) * depth
        result = OptimalRange(
            min=self._constrain(low, cfg.default_min_range),
            max=self._constrain(high, cfg.default_max_range),
        )
        logger.debug(
            "liquidity_range_optimized",
            base_range=base_range,
            trend_adjustment=trend,
            depth_factor=depth,
            range_min=result.min,
            range_max=result.max,
        )
        return result

    def target_utilization(self, metrics: LiquidityMetrics) -> float:
        """Share of pool depth to deploy, adjusted for volatility, volume and trend."""
        cfg = self.config
        adjustment = 0.0
        if metrics.volatility > cfg.high_volatility_above:
            adjustment -= 0.1
        if metrics.volume_24h > metrics.pool_depth:
            adjustment += 0.1
        if abs(metrics.price_change_24h) > cfg.strong_trend_above:
            adjustment -= 0.05
        return max(cfg.min_utilization, min(cfg.max_utilization, cfg.target_utilization + adjustment))

    def optimize_parameters(self, metrics: LiquidityMetrics) -> OptimalParameters:
        """Absolute price bounds plus target utilization."""
        optimal = self.optimize_range(metrics)
        min_price, max_price = optimal.to_price_bounds(metrics.current_price)
        return OptimalParameters(
            min_price=min_price,
            max_price=max_price,
            target_utilization=self.target_utilization(metrics),
        )
