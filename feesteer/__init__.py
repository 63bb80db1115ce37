"""Lightning Fee Steer - liquidity tiered fee policies for LND"""

__version__ = "0.1.0"
