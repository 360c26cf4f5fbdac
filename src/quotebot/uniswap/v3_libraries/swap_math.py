from typing import TypeAlias
from quotebot.uniswap.v3_libraries import full_math, sqrt_price_math
from quotebot.uniswap.v3_libraries.constants import FEE_DENOMINATOR

SqrtPriceX96: TypeAlias = int
AmountIn: TypeAlias = int
AmountOut: TypeAlias = int
FeeTaken: TypeAlias = int


def compute_swap_step(
    sqrt_ratio_x96_current: int,
    sqrt_ratio_x96_target: int,
    liquidity: int,
    amount_remaining: int,
    fee_pips: int,
) -> tuple[SqrtPriceX96, AmountIn, AmountOut, FeeTaken]:
    """
    Compute the result of swapping some amount in or out within a single constant-liquidity range.

    A positive `amount_remaining` is an exact input amount (including fee), a negative value is an
    exact output amount. The direction is implied by the relative position of the target price.

    Returns the price after the step, the amount swapped in (excluding fee), the amount swapped out,
    and the fee charged on the input.

    ref: https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/SwapMath.sol
    """

    zero_for_one = sqrt_ratio_x96_current >= sqrt_ratio_x96_target
    exact_in = amount_remaining >= 0

    assert liquidity >= 0

    def _amount_in_between(price_a: int, price_b: int, round_up: bool = True) -> int:
        return (
            sqrt_price_math.get_amount0_delta(price_a, price_b, liquidity, round_up)
            if zero_for_one
            else sqrt_price_math.get_amount1_delta(price_a, price_b, liquidity, round_up)
        )

    def _amount_out_between(price_a: int, price_b: int, round_up: bool = False) -> int:
        return (
            sqrt_price_math.get_amount1_delta(price_a, price_b, liquidity, round_up)
            if zero_for_one
            else sqrt_price_math.get_amount0_delta(price_a, price_b, liquidity, round_up)
        )

    amount_in = amount_out = 0
    if exact_in:
        amount_remaining_less_fee = full_math.muldiv(
            amount_remaining, FEE_DENOMINATOR - fee_pips, FEE_DENOMINATOR
        )
        amount_in = _amount_in_between(sqrt_ratio_x96_target, sqrt_ratio_x96_current)
        sqrt_ratio_x96_next = (
            sqrt_ratio_x96_target
            if amount_remaining_less_fee >= amount_in
            else sqrt_price_math.get_next_sqrt_price_from_input(
                sqrt_price_x96=sqrt_ratio_x96_current,
                liquidity=liquidity,
                amount_in=amount_remaining_less_fee,
                zero_for_one=zero_for_one,
            )
        )
    else:
        amount_out = _amount_out_between(sqrt_ratio_x96_target, sqrt_ratio_x96_current)
        sqrt_ratio_x96_next = (
            sqrt_ratio_x96_target
            if -amount_remaining >= amount_out
            else sqrt_price_math.get_next_sqrt_price_from_output(
                sqrt_price_x96=sqrt_ratio_x96_current,
                liquidity=liquidity,
                amount_out=-amount_remaining,
                zero_for_one=zero_for_one,
            )
        )

    reached_target_price = sqrt_ratio_x96_target == sqrt_ratio_x96_next

    # get the input/output amounts, reusing the full-range amount when the target was reached
    if not (reached_target_price and exact_in):
        amount_in = _amount_in_between(sqrt_ratio_x96_next, sqrt_ratio_x96_current)
    if not (reached_target_price and not exact_in):
        amount_out = _amount_out_between(sqrt_ratio_x96_next, sqrt_ratio_x96_current)

    # cap the output amount to not exceed the remaining output amount
    if not exact_in and amount_out > -amount_remaining:
        amount_out = -amount_remaining

    if exact_in and not reached_target_price:
        # we didn't reach the target, so take the remainder of the maximum input as fee
        fee_amount = amount_remaining - amount_in
    else:
        fee_amount = full_math.muldiv_rounding_up(amount_in, fee_pips, FEE_DENOMINATOR - fee_pips)

    return sqrt_ratio_x96_next, amount_in, amount_out, fee_amount
