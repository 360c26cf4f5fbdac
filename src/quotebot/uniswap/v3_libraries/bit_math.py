from quotebot.constants import MAX_UINT256, MIN_UINT256
from quotebot.exceptions import EVMRevertError

# This module is adapted from the Uniswap V3 BitMath.sol library.
# Reference: https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/BitMath.sol


def _check_operand(number: int) -> None:
    if number <= MIN_UINT256:
        raise EVMRevertError(error="required: number > 0")
    if number > MAX_UINT256:
        raise EVMRevertError(error="required: number <= max(uint256)")


def least_significant_bit(number: int) -> int:
    """
    Find the index of the least significant set bit.

    The Solidity contract performs a binary search over masks. Python integers expose their bit
    length directly, and `number & -number` isolates the lowest set bit.
    """

    _check_operand(number)
    return (number & -number).bit_length() - 1


def most_significant_bit(number: int) -> int:
    """
    Find the index of the most significant set bit.
    """

    _check_operand(number)
    return number.bit_length() - 1
