from typing import Any

from eth_typing import ChecksumAddress

from quotebot.exceptions.base import QuotebotError


class LiquidityPoolError(QuotebotError):
    """
    Exception raised inside liquidity pool helpers.
    """


class AddressMismatch(LiquidityPoolError):
    """
    A pool state was supplied for a pool other than the one referenced by the route.
    """

    def __init__(self, expected: ChecksumAddress, received: ChecksumAddress) -> None:
        self.expected = expected
        self.received = received
        super().__init__(message=f"Expected state for pool {expected}, received {received}.")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.expected, self.received)


class LiquidityMapWordMissing(LiquidityPoolError):
    """
    A word bitmap is not included in the liquidity map.
    """

    def __init__(self, word: int) -> None:
        self.word = word
        super().__init__(message=f"Word {word} is unknown.")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.word,)


class IncompleteSwap(LiquidityPoolError):
    """
    Raised if a swap calculation would not consume the input or deliver the requested output.
    """

    def __init__(self, amount_in: int, amount_out: int) -> None:
        self.amount_in = amount_in
        self.amount_out = amount_out
        super().__init__(message="Insufficient liquidity to swap for the requested amount.")

    def __reduce__(self) -> tuple[Any, ...]:
        # Pickling will raise an exception if a reduction method is not defined
        return self.__class__, (self.amount_in, self.amount_out)


class InvalidPriceLimit(LiquidityPoolError):
    """
    Raised if a price limit lies on the wrong side of the current price or outside the valid range.
    """

    def __init__(self, sqrt_price_limit_x96: int) -> None:
        self.sqrt_price_limit_x96 = sqrt_price_limit_x96
        super().__init__(message=f"Invalid price limit {sqrt_price_limit_x96}")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.sqrt_price_limit_x96,)


class InvalidSwapInputAmount(LiquidityPoolError):
    def __init__(self) -> None:
        """
        Raised if a swap amount is zero or negative.
        """

        super().__init__(message="The swap amount is invalid.")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, ()


class NoProgress(LiquidityPoolError):
    """
    Raised when the curve walk cannot move at all: the pool has no in-range liquidity and no
    initialized ticks ahead in the direction of the swap.
    """

    def __init__(self) -> None:
        super().__init__(message="The pool has no liquidity in the direction of the swap.")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, ()


class SwapStepLimitExceeded(LiquidityPoolError):
    """
    Raised when a curve walk takes more steps than the configured maximum.
    """

    def __init__(self, max_steps: int) -> None:
        self.max_steps = max_steps
        super().__init__(message=f"Swap did not complete within {max_steps} steps.")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.max_steps,)
