from decimal import Decimal, getcontext

import pytest

from quotebot.constants import MAX_UINT128, MAX_UINT256
from quotebot.exceptions import ArithmeticOverflow, EVMRevertError
from quotebot.uniswap.v3_libraries.sqrt_price_math import (
    get_amount0_delta,
    get_amount1_delta,
    get_next_sqrt_price_from_input,
    get_next_sqrt_price_from_output,
)

# Adapted from Typescript tests on Uniswap V3 Github repo
# ref: https://github.com/Uniswap/v3-core/blob/main/test/SqrtPriceMath.spec.ts


getcontext().prec = (
    40
    # Match the decimal places value specified in Uniswap tests
    # ref: https://github.com/Uniswap/v3-core/blob/d8b1c635c275d2a9450bd6a78f3fa2484fef73eb/test/shared/utilities.ts#L60
)

getcontext().rounding = (
    # Change the rounding method to match the BigNumber rounding mode "3",
    # which is 'ROUND_FLOOR' per https://mikemcl.github.io/bignumber.js/#bignumber
    "ROUND_FLOOR"
)


def expand_to_18_decimals(x: int) -> int:
    return x * 10**18


def encode_price_sqrt(reserve1: int, reserve0: int) -> int:
    """
    Returns the sqrt price as a Q64.96 value
    """
    return int((Decimal(reserve1) / Decimal(reserve0)).sqrt() * Decimal(2**96))


def test_get_next_sqrt_price_from_input_reverts():
    with pytest.raises(EVMRevertError, match="required: sqrt_price_x96 > 0"):
        get_next_sqrt_price_from_input(
            sqrt_price_x96=0,
            liquidity=1,
            amount_in=expand_to_18_decimals(1) // 10,
            zero_for_one=False,
        )

    with pytest.raises(EVMRevertError, match="required: liquidity > 0"):
        get_next_sqrt_price_from_input(
            sqrt_price_x96=1,
            liquidity=0,
            amount_in=expand_to_18_decimals(1) // 10,
            zero_for_one=True,
        )

    # input amount overflows the price
    with pytest.raises(ArithmeticOverflow):
        get_next_sqrt_price_from_input(
            sqrt_price_x96=2**160 - 1,
            liquidity=1024,
            amount_in=1024,
            zero_for_one=False,
        )


def test_get_next_sqrt_price_from_input():
    # any input amount cannot underflow the price
    assert (
        get_next_sqrt_price_from_input(
            sqrt_price_x96=1,
            liquidity=1,
            amount_in=2**255,
            zero_for_one=True,
        )
        == 1
    )

    # returns input price if amount in is zero
    price = encode_price_sqrt(1, 1)
    for zero_for_one in (True, False):
        assert (
            get_next_sqrt_price_from_input(
                sqrt_price_x96=price,
                liquidity=expand_to_18_decimals(1) // 10,
                amount_in=0,
                zero_for_one=zero_for_one,
            )
            == price
        )

    # returns the minimum price for max inputs
    sqrt_p = 2**160 - 1
    liquidity = MAX_UINT128
    max_amount_no_overflow = MAX_UINT256 - ((liquidity << 96) // sqrt_p)
    assert (
        get_next_sqrt_price_from_input(
            sqrt_price_x96=sqrt_p,
            liquidity=liquidity,
            amount_in=max_amount_no_overflow,
            zero_for_one=True,
        )
        == 1
    )

    # input amount of 0.1 token1
    assert (
        get_next_sqrt_price_from_input(
            sqrt_price_x96=encode_price_sqrt(1, 1),
            liquidity=expand_to_18_decimals(1),
            amount_in=expand_to_18_decimals(1) // 10,
            zero_for_one=False,
        )
        == 87150978765690771352898345369
    )

    # input amount of 0.1 token0
    assert (
        get_next_sqrt_price_from_input(
            sqrt_price_x96=encode_price_sqrt(1, 1),
            liquidity=expand_to_18_decimals(1),
            amount_in=expand_to_18_decimals(1) // 10,
            zero_for_one=True,
        )
        == 72025602285694852357767227579
    )

    # amount_in > type(uint96).max and zeroForOne = true
    assert (
        get_next_sqrt_price_from_input(
            sqrt_price_x96=encode_price_sqrt(1, 1),
            liquidity=expand_to_18_decimals(10),
            amount_in=2**100,
            zero_for_one=True,
        )
        == 624999999995069620
    )

    # can return 1 with enough amount_in and zeroForOne = true
    assert (
        get_next_sqrt_price_from_input(
            sqrt_price_x96=encode_price_sqrt(1, 1),
            liquidity=1,
            amount_in=MAX_UINT256 // 2,
            zero_for_one=True,
        )
        == 1
    )


def test_get_next_sqrt_price_from_output_reverts():
    with pytest.raises(EVMRevertError, match="required: sqrt_price_x96 > 0"):
        get_next_sqrt_price_from_output(
            sqrt_price_x96=0,
            liquidity=1,
            amount_out=expand_to_18_decimals(1) // 10,
            zero_for_one=False,
        )

    with pytest.raises(EVMRevertError, match="required: liquidity > 0"):
        get_next_sqrt_price_from_output(
            sqrt_price_x96=1,
            liquidity=0,
            amount_out=expand_to_18_decimals(1) // 10,
            zero_for_one=True,
        )

    price = 20282409603651670423947251286016
    liquidity = 1024

    # output amount is exactly the virtual reserves of token0
    with pytest.raises(EVMRevertError, match="numerator1 > product"):
        get_next_sqrt_price_from_output(
            sqrt_price_x96=price,
            liquidity=liquidity,
            amount_out=4,
            zero_for_one=False,
        )

    # output amount is greater than the virtual reserves of token0
    with pytest.raises(EVMRevertError, match="numerator1 > product"):
        get_next_sqrt_price_from_output(
            sqrt_price_x96=price,
            liquidity=liquidity,
            amount_out=5,
            zero_for_one=False,
        )

    # output amount is greater than the virtual reserves of token1
    with pytest.raises(EVMRevertError, match="sqrt_price_x96 > quotient"):
        get_next_sqrt_price_from_output(
            sqrt_price_x96=price,
            liquidity=liquidity,
            amount_out=262145,
            zero_for_one=True,
        )

    # output amount is exactly the virtual reserves of token1
    with pytest.raises(EVMRevertError, match="sqrt_price_x96 > quotient"):
        get_next_sqrt_price_from_output(
            sqrt_price_x96=price,
            liquidity=liquidity,
            amount_out=262144,
            zero_for_one=True,
        )

    # impossible amount out
    with pytest.raises(EVMRevertError):
        get_next_sqrt_price_from_output(
            sqrt_price_x96=encode_price_sqrt(1, 1),
            liquidity=1,
            amount_out=MAX_UINT256,
            zero_for_one=True,
        )

    with pytest.raises(EVMRevertError):
        get_next_sqrt_price_from_output(
            sqrt_price_x96=encode_price_sqrt(1, 1),
            liquidity=1,
            amount_out=MAX_UINT256,
            zero_for_one=False,
        )


def test_get_next_sqrt_price_from_output():
    # output amount is just less than the virtual reserves of token1
    assert (
        get_next_sqrt_price_from_output(
            sqrt_price_x96=20282409603651670423947251286016,
            liquidity=1024,
            amount_out=262143,
            zero_for_one=True,
        )
        == 77371252455336267181195264
    )

    price = encode_price_sqrt(1, 1)
    for zero_for_one in (True, False):
        assert (
            get_next_sqrt_price_from_output(
                sqrt_price_x96=price,
                liquidity=expand_to_18_decimals(1) // 10,
                amount_out=0,
                zero_for_one=zero_for_one,
            )
            == price
        )

    # output amount of 0.1 token1
    assert (
        get_next_sqrt_price_from_output(
            sqrt_price_x96=encode_price_sqrt(1, 1),
            liquidity=expand_to_18_decimals(1),
            amount_out=expand_to_18_decimals(1) // 10,
            zero_for_one=False,
        )
        == 88031291682515930659493278152
    )

    # output amount of 0.1 token0
    assert (
        get_next_sqrt_price_from_output(
            sqrt_price_x96=encode_price_sqrt(1, 1),
            liquidity=expand_to_18_decimals(1),
            amount_out=expand_to_18_decimals(1) // 10,
            zero_for_one=True,
        )
        == 71305346262837903834189555302
    )


def test_get_amount0_delta():
    assert (
        get_amount0_delta(
            sqrt_ratio_a_x96=encode_price_sqrt(1, 1),
            sqrt_ratio_b_x96=encode_price_sqrt(2, 1),
            liquidity=0,
            round_up=True,
        )
        == 0
    )

    assert (
        get_amount0_delta(
            sqrt_ratio_a_x96=encode_price_sqrt(1, 1),
            sqrt_ratio_b_x96=encode_price_sqrt(1, 1),
            liquidity=0,
            round_up=True,
        )
        == 0
    )

    # returns 0.1 amount0 for price of 1 to 1.21
    amount0 = get_amount0_delta(
        sqrt_ratio_a_x96=encode_price_sqrt(1, 1),
        sqrt_ratio_b_x96=encode_price_sqrt(121, 100),
        liquidity=expand_to_18_decimals(1),
        round_up=True,
    )
    assert amount0 == 90909090909090910

    amount0_rounded_down = get_amount0_delta(
        sqrt_ratio_a_x96=encode_price_sqrt(1, 1),
        sqrt_ratio_b_x96=encode_price_sqrt(121, 100),
        liquidity=expand_to_18_decimals(1),
        round_up=False,
    )
    assert amount0_rounded_down == amount0 - 1

    # works for prices that overflow
    amount0_up = get_amount0_delta(
        sqrt_ratio_a_x96=encode_price_sqrt(2**90, 1),
        sqrt_ratio_b_x96=encode_price_sqrt(2**96, 1),
        liquidity=expand_to_18_decimals(1),
        round_up=True,
    )
    amount0_down = get_amount0_delta(
        sqrt_ratio_a_x96=encode_price_sqrt(2**90, 1),
        sqrt_ratio_b_x96=encode_price_sqrt(2**96, 1),
        liquidity=expand_to_18_decimals(1),
        round_up=False,
    )
    assert amount0_up == amount0_down + 1

    # price order does not matter
    assert get_amount0_delta(
        encode_price_sqrt(121, 100), encode_price_sqrt(1, 1), expand_to_18_decimals(1), True
    ) == get_amount0_delta(
        encode_price_sqrt(1, 1), encode_price_sqrt(121, 100), expand_to_18_decimals(1), True
    )


def test_get_amount1_delta():
    assert (
        get_amount1_delta(
            sqrt_ratio_a_x96=encode_price_sqrt(1, 1),
            sqrt_ratio_b_x96=encode_price_sqrt(2, 1),
            liquidity=0,
            round_up=True,
        )
        == 0
    )

    # returns 0.1 amount1 for price of 1 to 1.21
    amount1 = get_amount1_delta(
        sqrt_ratio_a_x96=encode_price_sqrt(1, 1),
        sqrt_ratio_b_x96=encode_price_sqrt(121, 100),
        liquidity=expand_to_18_decimals(1),
        round_up=True,
    )
    assert amount1 == 100000000000000000

    amount1_rounded_down = get_amount1_delta(
        sqrt_ratio_a_x96=encode_price_sqrt(1, 1),
        sqrt_ratio_b_x96=encode_price_sqrt(121, 100),
        liquidity=expand_to_18_decimals(1),
        round_up=False,
    )
    assert amount1_rounded_down == amount1 - 1


def test_swap_computation():
    # sqrt_p * sqrt_q overflows
    sqrt_p = 1025574284609383690408304870162715216695788925244
    liquidity = 50015962439936049619261659728067971248
    amount_in = 406

    sqrt_q = get_next_sqrt_price_from_input(
        sqrt_price_x96=sqrt_p,
        liquidity=liquidity,
        amount_in=amount_in,
        zero_for_one=True,
    )
    assert sqrt_q == 1025574284609383582644711336373707553698163132913

    assert (
        get_amount0_delta(
            sqrt_ratio_a_x96=sqrt_q,
            sqrt_ratio_b_x96=sqrt_p,
            liquidity=liquidity,
            round_up=True,
        )
        == 406
    )
