"""Fee tier selection and channel policy reconciliation"""

from .engine import FeeTier, LiquidityTier, TierTable, classify_liquidity, liquidity_ratio, select_fee_tier

__all__ = [
    'FeeTier',
    'LiquidityTier',
    'TierTable',
    'classify_liquidity',
    'liquidity_ratio',
    'select_fee_tier'
]
