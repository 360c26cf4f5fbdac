from typing import Any

from quotebot.exceptions.base import QuotebotError


class EVMRevertError(QuotebotError):
    """
    Raised when a simulated EVM contract operation would revert.
    """

    def __init__(self, error: str) -> None:
        self.error = error
        super().__init__(message=f"EVM Revert: {error}")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.error,)


class ArithmeticOverflow(EVMRevertError):
    """
    Raised when an intermediate value falls outside the range of its fixed-width EVM type.
    """
