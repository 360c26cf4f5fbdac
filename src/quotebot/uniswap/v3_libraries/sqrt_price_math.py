"""
Functions computing prices from token amounts and token amounts from prices, based on the Q64.96
square root price and the in-range liquidity.

ref: https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/SqrtPriceMath.sol
"""

import functools

from quotebot.constants import MAX_UINT160, MAX_UINT256
from quotebot.exceptions import EVMRevertError
from quotebot.uniswap.v3_libraries._config import V3_LIB_CACHE_SIZE
from quotebot.uniswap.v3_libraries.constants import Q96, Q96_RESOLUTION
from quotebot.uniswap.v3_libraries.full_math import muldiv, muldiv_rounding_up
from quotebot.uniswap.v3_libraries.functions import to_uint160
from quotebot.uniswap.v3_libraries.unsafe_math import div_rounding_up


def _sorted_prices(sqrt_ratio_a_x96: int, sqrt_ratio_b_x96: int) -> tuple[int, int]:
    return (
        (sqrt_ratio_b_x96, sqrt_ratio_a_x96)
        if sqrt_ratio_a_x96 > sqrt_ratio_b_x96
        else (sqrt_ratio_a_x96, sqrt_ratio_b_x96)
    )


@functools.lru_cache(maxsize=V3_LIB_CACHE_SIZE)
def get_amount0_delta(
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int,
    round_up: bool,
) -> int:
    """
    Get the token0 amount between two prices: liquidity / sqrt(lower) - liquidity / sqrt(upper)
    """

    sqrt_ratio_lower_x96, sqrt_ratio_upper_x96 = _sorted_prices(sqrt_ratio_a_x96, sqrt_ratio_b_x96)

    if not (sqrt_ratio_lower_x96 > 0):
        raise EVMRevertError(error="required: sqrt_ratio_a_x96 > 0")

    numerator1 = liquidity << Q96_RESOLUTION
    numerator2 = sqrt_ratio_upper_x96 - sqrt_ratio_lower_x96

    if round_up:
        return div_rounding_up(
            muldiv_rounding_up(numerator1, numerator2, sqrt_ratio_upper_x96),
            sqrt_ratio_lower_x96,
        )
    return muldiv(numerator1, numerator2, sqrt_ratio_upper_x96) // sqrt_ratio_lower_x96


@functools.lru_cache(maxsize=V3_LIB_CACHE_SIZE)
def get_amount1_delta(
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int,
    round_up: bool,
) -> int:
    """
    Get the token1 amount between two prices: liquidity * (sqrt(upper) - sqrt(lower))
    """

    assert liquidity >= 0

    sqrt_ratio_lower_x96, sqrt_ratio_upper_x96 = _sorted_prices(sqrt_ratio_a_x96, sqrt_ratio_b_x96)

    if round_up:
        return muldiv_rounding_up(liquidity, sqrt_ratio_upper_x96 - sqrt_ratio_lower_x96, Q96)
    return muldiv(liquidity, sqrt_ratio_upper_x96 - sqrt_ratio_lower_x96, Q96)


@functools.lru_cache(maxsize=V3_LIB_CACHE_SIZE)
def get_next_sqrt_price_from_amount0_rounding_up(
    sqrt_price_x96: int,
    liquidity: int,
    amount: int,
    add: bool,
) -> int:
    # Rounding up moves the price less far when adding token0 (price decreasing), and further when
    # removing it, so the computed price never passes the exact one in the favorable direction.
    if amount == 0:
        return sqrt_price_x96

    numerator1 = liquidity << Q96_RESOLUTION
    product = amount * sqrt_price_x96

    if add:
        if product <= MAX_UINT256:
            # the Solidity contract checks `product / amount == sqrtPX96` to detect a wrapped
            # multiplication, equivalent to this bound
            denominator = numerator1 + product
            if denominator <= MAX_UINT256:
                return muldiv_rounding_up(numerator1, sqrt_price_x96, denominator)
        return div_rounding_up(numerator1, (numerator1 // sqrt_price_x96) + amount)

    if not (product <= MAX_UINT256 and numerator1 > product):
        raise EVMRevertError(error="required: numerator1 > product")
    return to_uint160(muldiv_rounding_up(numerator1, sqrt_price_x96, numerator1 - product))


@functools.lru_cache(maxsize=V3_LIB_CACHE_SIZE)
def get_next_sqrt_price_from_amount1_rounding_down(
    sqrt_price_x96: int,
    liquidity: int,
    amount: int,
    add: bool,
) -> int:
    if add:
        quotient = (
            (amount << Q96_RESOLUTION) // liquidity
            if amount <= MAX_UINT160
            else muldiv(amount, Q96, liquidity)
        )
        return to_uint160(sqrt_price_x96 + quotient)

    quotient = (
        div_rounding_up(amount << Q96_RESOLUTION, liquidity)
        if amount <= MAX_UINT160
        else muldiv_rounding_up(amount, Q96, liquidity)
    )

    if not (sqrt_price_x96 > quotient):
        raise EVMRevertError(error="required: sqrt_price_x96 > quotient")

    # always fits 160 bits
    return sqrt_price_x96 - quotient


def _check_price_and_liquidity(sqrt_price_x96: int, liquidity: int) -> None:
    if not (sqrt_price_x96 > 0):
        raise EVMRevertError(error="required: sqrt_price_x96 > 0")
    if not (liquidity > 0):
        raise EVMRevertError(error="required: liquidity > 0")


@functools.lru_cache(maxsize=V3_LIB_CACHE_SIZE)
def get_next_sqrt_price_from_input(
    sqrt_price_x96: int,
    liquidity: int,
    amount_in: int,
    zero_for_one: bool,
) -> int:
    _check_price_and_liquidity(sqrt_price_x96, liquidity)

    # round to make sure that we don't pass the target price
    if zero_for_one:
        return get_next_sqrt_price_from_amount0_rounding_up(
            sqrt_price_x96, liquidity, amount_in, True
        )
    return get_next_sqrt_price_from_amount1_rounding_down(
        sqrt_price_x96, liquidity, amount_in, True
    )


@functools.lru_cache(maxsize=V3_LIB_CACHE_SIZE)
def get_next_sqrt_price_from_output(
    sqrt_price_x96: int,
    liquidity: int,
    amount_out: int,
    zero_for_one: bool,
) -> int:
    _check_price_and_liquidity(sqrt_price_x96, liquidity)

    # round to make sure that we pass the target price
    if zero_for_one:
        return get_next_sqrt_price_from_amount1_rounding_down(
            sqrt_price_x96, liquidity, amount_out, False
        )
    return get_next_sqrt_price_from_amount0_rounding_up(
        sqrt_price_x96, liquidity, amount_out, False
    )
