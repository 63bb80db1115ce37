"""Liquidity tier fee engine - maps a channel's balance ratio to a fee tier"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

# Percent of capacity held locally
HIGH_LIQUIDITY_THRESHOLD = 60.0
LOW_LIQUIDITY_THRESHOLD = 40.0


class LiquidityTier(Enum):
    """Local liquidity buckets"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class FeeTier:
    """Fee pair advertised while a channel sits in a tier"""
    fee_rate_ppm: int
    base_fee_msat: int


@dataclass(frozen=True)
class TierTable:
    """Fee tiers for low, medium and high local liquidity"""
    low: FeeTier
    medium: FeeTier
    high: FeeTier

    def for_tier(self, tier: LiquidityTier) -> FeeTier:
        return getattr(self, tier.value)


def liquidity_ratio(local_balance: int, capacity: int) -> float:
    """Local balance as a percentage of capacity"""
    if capacity <= 0:
        raise ValueError(f"Channel capacity must be positive, got {capacity}")
    return local_balance / capacity * 100.0


def classify_liquidity(ratio: float) -> LiquidityTier:
    """
    Bucket a liquidity ratio (percent) into a tier

    A channel full of local balance has outbound liquidity to sell, so it
    gets the expensive tier. A depleted channel gets the cheap tier to
    attract flow back towards us. Exactly 60% is medium and exactly 40% is low.
    """
    if ratio > HIGH_LIQUIDITY_THRESHOLD:
        return LiquidityTier.HIGH
    elif ratio > LOW_LIQUIDITY_THRESHOLD:
        return LiquidityTier.MEDIUM
    else:
        return LiquidityTier.LOW


def select_fee_tier(ratio: float, tiers: TierTable) -> FeeTier:
    """Fee rate and base fee for a liquidity ratio"""
    return tiers.for_tier(classify_liquidity(ratio))
