from quotebot.exceptions.base import QuotebotError, QuotebotTypeError, QuotebotValueError
from quotebot.exceptions.evm import ArithmeticOverflow, EVMRevertError
from quotebot.exceptions.liquidity_pool import (
    AddressMismatch,
    IncompleteSwap,
    InvalidPriceLimit,
    InvalidSwapInputAmount,
    LiquidityMapWordMissing,
    LiquidityPoolError,
    NoProgress,
    SwapStepLimitExceeded,
)
from quotebot.exceptions.quoter import (
    MalformedRoute,
    QuoterError,
    StateShapeMismatch,
    UnresolvedPool,
)

from . import evm, liquidity_pool, quoter

__all__ = (
    "AddressMismatch",
    "ArithmeticOverflow",
    "EVMRevertError",
    "IncompleteSwap",
    "InvalidPriceLimit",
    "InvalidSwapInputAmount",
    "LiquidityMapWordMissing",
    "LiquidityPoolError",
    "MalformedRoute",
    "NoProgress",
    "QuotebotError",
    "QuotebotTypeError",
    "QuotebotValueError",
    "QuoterError",
    "StateShapeMismatch",
    "SwapStepLimitExceeded",
    "UnresolvedPool",
    "evm",
    "liquidity_pool",
    "quoter",
)
