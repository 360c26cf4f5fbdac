from quotebot.constants import MAX_UINT256, MIN_UINT256
from quotebot.exceptions import ArithmeticOverflow, EVMRevertError
from quotebot.uniswap.v3_libraries.functions import mulmod

# ref: https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/FullMath.sol


def _check_uint256(name: str, value: int) -> None:
    if not (MIN_UINT256 <= value <= MAX_UINT256):
        raise ArithmeticOverflow(error=f"{name} is not a valid uint256")


def muldiv(
    a: int,
    b: int,
    denominator: int,
) -> int:
    """
    Calculate floor(a * b / denominator).

    The Solidity implementation uses 512-bit intermediate math so the product cannot overflow.
    Python integers are unbounded, so only the operands and the final result are range-checked.
    """

    _check_uint256("a", a)
    _check_uint256("b", b)
    _check_uint256("denominator", denominator)

    if denominator == 0:
        raise EVMRevertError(error="DIVISION BY ZERO")

    result = (a * b) // denominator
    _check_uint256("result", result)
    return result


def muldiv_rounding_up(a: int, b: int, denominator: int) -> int:
    result = muldiv(a, b, denominator)
    if mulmod(a, b, denominator) > 0:
        # the rounded result must also fit
        if result == MAX_UINT256:
            raise ArithmeticOverflow(error="result is not a valid uint256 after rounding")
        result += 1
    return result
