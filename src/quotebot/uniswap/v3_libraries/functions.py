from quotebot.constants import MAX_INT256, MAX_UINT160, MIN_INT256
from quotebot.exceptions import ArithmeticOverflow, EVMRevertError


def mulmod(x: int, y: int, k: int) -> int:
    if k == 0:
        raise EVMRevertError(error="division by zero")
    return (x * y) % k


# Checked downcasts, equivalent to the OpenZeppelin SafeCast helpers which revert if the value
# does not fit in the target type
def to_int256(x: int) -> int:
    if not (MIN_INT256 <= x <= MAX_INT256):
        raise ArithmeticOverflow(error=f"{x} outside range of int256 values")
    return x


def to_uint160(x: int) -> int:
    if not (0 <= x <= MAX_UINT160):
        raise ArithmeticOverflow(error=f"{x} outside range of uint160 values")
    return x
