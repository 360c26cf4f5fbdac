from typing import TypeAlias
from collections.abc import Callable, Sequence

import pytest

from quotebot.uniswap.v3_functions import (
    LiquidityPosition,
    pool_state_from_positions,
    tick_spacing_for_fee,
)
from quotebot.uniswap.v3_libraries.tick_math import MAX_TICK
from quotebot.uniswap.v3_sources import UniswapV3PoolLocator
from quotebot.uniswap.v3_types import Pip, UniswapV3PoolState

PoolBuilder: TypeAlias = Callable[..., UniswapV3PoolState]


def full_range(fee: Pip, liquidity: int) -> LiquidityPosition:
    tick_spacing = tick_spacing_for_fee(fee)
    max_usable_tick = MAX_TICK // tick_spacing * tick_spacing
    return (-max_usable_tick, max_usable_tick, liquidity)


@pytest.fixture
def pool_locator() -> UniswapV3PoolLocator:
    return UniswapV3PoolLocator()


@pytest.fixture
def build_pool(pool_locator: UniswapV3PoolLocator) -> PoolBuilder:
    """
    Build a complete pool state for a token pair at the deterministic address of the pool, with a
    single full range position unless positions are given.
    """

    def _build(
        token_a: str,
        token_b: str,
        fee: Pip = 3000,
        sqrt_price_x96: int = 2**96,
        positions: Sequence[LiquidityPosition] | None = None,
        liquidity: int = 10**18,
    ) -> UniswapV3PoolState:
        return pool_state_from_positions(
            address=pool_locator.get_pool_address(token_a, token_b, fee),
            fee=fee,
            sqrt_price_x96=sqrt_price_x96,
            positions=positions if positions is not None else [full_range(fee, liquidity)],
        )

    return _build
