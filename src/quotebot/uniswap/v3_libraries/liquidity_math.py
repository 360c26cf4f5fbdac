from quotebot.constants import MAX_INT128, MAX_UINT128, MIN_INT128, MIN_UINT128
from quotebot.exceptions import ArithmeticOverflow


def add_delta(x: int, y: int) -> int:
    """
    Add a signed liquidity delta to a uint128 liquidity value.

    The V3 contract detects overflow ("LA") and underflow ("LS") through Solidity's wrapping
    arithmetic. Here the result is range-checked directly.

    ref: https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/LiquidityMath.sol
    """

    if not (MIN_UINT128 <= x <= MAX_UINT128):
        raise ArithmeticOverflow(error="x not a valid uint128")
    if not (MIN_INT128 <= y <= MAX_INT128):
        raise ArithmeticOverflow(error="y not a valid int128")

    z = x + y

    if z < MIN_UINT128:
        raise ArithmeticOverflow(error="LS")
    if z > MAX_UINT128:
        raise ArithmeticOverflow(error="LA")

    return z
