"""
Config -> Kernel bridges.

Functions that turn a ``MarketConfig`` into the explicit values kernel
services take.  They live here because the kernel must never import
``market_config``.
"""

from __future__ import annotations

from market_config.schema import MarketConfig
from market_kernel.selectors.standing_selector import StandingPolicies


def build_standing_policies(config: MarketConfig) -> StandingPolicies:
    return StandingPolicies(
        trust=config.trust,
        restriction=config.restriction,
        fraud=config.fraud,
    )


def engine_kwargs(config: MarketConfig) -> dict:
    """Keyword arguments for ``market_kernel.db.init_engine_from_url``."""
    db = config.database
    return {
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "pool_timeout": db.pool_timeout,
        "sqlite_busy_timeout": db.sqlite_busy_timeout,
    }
