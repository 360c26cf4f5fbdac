from typing import Any

from eth_typing import ChecksumAddress

from quotebot.exceptions.base import QuotebotError


class QuoterError(QuotebotError):
    """
    Exception raised by the route codec and quote orchestrator.
    """


class MalformedRoute(QuoterError):
    """
    Raised when a path cannot be decoded into one or more complete hops.
    """


class StateShapeMismatch(QuoterError):
    """
    Raised when a carried pool state sequence is neither empty nor one entry per hop.
    """

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            message=f"Expected 0 or {expected} pool states for the route, received {received}."
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.expected, self.received)


class UnresolvedPool(QuoterError):
    """
    Raised when no state is available for a pool referenced by the route.
    """

    def __init__(self, pool: ChecksumAddress) -> None:
        self.pool = pool
        super().__init__(message=f"No state is available for pool {pool}.")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.pool,)
