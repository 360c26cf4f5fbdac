from typing import TypeAlias
import dataclasses
import enum

import pydantic
from eth_typing import ChecksumAddress

from quotebot.constants import MAX_INT256
from quotebot.exceptions import ArithmeticOverflow, InvalidSwapInputAmount, MalformedRoute
from quotebot.validation.evm_values import ValidatedInt128, ValidatedUint128, ValidatedUint256

BitmapWord: TypeAlias = int
BlockNumber: TypeAlias = int
Pip: TypeAlias = int  # V3 pool fees are expressed in pips equaling one hundredth of a basis point
Liquidity: TypeAlias = int
SqrtPriceX96: TypeAlias = int
Tick: TypeAlias = int


class UniswapV3BitmapAtWord(pydantic.BaseModel, frozen=True):
    bitmap: ValidatedUint256
    block: BlockNumber | None = None


class UniswapV3LiquidityAtTick(pydantic.BaseModel, frozen=True):
    liquidity_net: ValidatedInt128
    liquidity_gross: ValidatedUint128
    block: BlockNumber | None = None


InitializedTickMap: TypeAlias = dict[BitmapWord, UniswapV3BitmapAtWord]
LiquidityMap: TypeAlias = dict[Tick, UniswapV3LiquidityAtTick]


class SwapMode(enum.Enum):
    EXACT_INPUT = enum.auto()
    EXACT_OUTPUT = enum.auto()


class SwapStatus(enum.Enum):
    COMPLETE = enum.auto()
    # The price limit was reached, or in-range liquidity ran out, before the full amount was swapped
    PARTIAL_FILL = enum.auto()


@dataclasses.dataclass(slots=True, frozen=True)
class TradeSpecification:
    """
    The size of a trade, tagged with its mode.

    The curve math uses a single signed value where a positive amount is an exact input and a
    negative amount is an exact output. That value is only produced on demand by
    `amount_specified`, so the mode and the magnitude cannot disagree.
    """

    mode: SwapMode
    amount: int

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise InvalidSwapInputAmount
        if self.amount > MAX_INT256:
            raise ArithmeticOverflow(error=f"{self.amount} outside range of int256 values")

    @classmethod
    def exact_input(cls, amount: int) -> "TradeSpecification":
        return cls(mode=SwapMode.EXACT_INPUT, amount=amount)

    @classmethod
    def exact_output(cls, amount: int) -> "TradeSpecification":
        return cls(mode=SwapMode.EXACT_OUTPUT, amount=amount)

    @property
    def exact_input_mode(self) -> bool:
        return self.mode is SwapMode.EXACT_INPUT

    @property
    def amount_specified(self) -> int:
        return self.amount if self.mode is SwapMode.EXACT_INPUT else -self.amount


@dataclasses.dataclass(slots=True, frozen=True)
class Hop:
    """
    A single pool traversal along a route, identified by its tokens and fee tier.
    """

    token_in: ChecksumAddress
    token_out: ChecksumAddress
    fee: Pip

    def __post_init__(self) -> None:
        if self.token_in.lower() == self.token_out.lower():
            raise MalformedRoute(message=f"Hop uses token {self.token_in} as input and output.")

    @property
    def zero_for_one(self) -> bool:
        # Pools sort their tokens by address, so the direction is always derived from the tokens
        return int(self.token_in, 16) < int(self.token_out, 16)


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class UniswapV3PoolState:
    """
    A snapshot of the values a V3 pool uses to price a swap.

    `tick_data` holds the liquidity changes at initialized ticks. If `tick_bitmap` is `None` the
    tick data is the complete liquidity map for the pool. Otherwise the map is sparse: only the
    initialized ticks inside the listed bitmap words are known, and a swap that needs an unlisted
    word raises `LiquidityMapWordMissing`.
    """

    address: ChecksumAddress
    fee: Pip
    tick_spacing: int
    liquidity: Liquidity
    sqrt_price_x96: SqrtPriceX96
    tick: Tick
    tick_data: LiquidityMap
    tick_bitmap: InitializedTickMap | None = None
    block: BlockNumber | None = None

    def __post_init__(self) -> None:
        assert self.liquidity >= 0
        assert self.tick_spacing > 0

    @property
    def sparse(self) -> bool:
        return self.tick_bitmap is not None

    def copy(self) -> "UniswapV3PoolState":
        return dataclasses.replace(
            self,
            tick_data=self.tick_data.copy(),
            tick_bitmap=self.tick_bitmap.copy() if self.tick_bitmap is not None else None,
        )


@dataclasses.dataclass(slots=True, frozen=True)
class UniswapV3PoolSimulationResult:
    """
    The outcome of a simulated swap against a single pool.

    A negative delta is the amount paid out by the pool, a positive delta is the amount supplied by
    the trader.

    When a walk over a complete liquidity map stops because no liquidity remains ahead,
    `final_state` is left at the price and tick of the last initialized tick crossed. The pool
    contract would continue moving the price through the empty range to the price limit. The
    deltas are identical in both cases, but the price and tick differ.
    """

    amount0_delta: int
    amount1_delta: int
    initial_state: UniswapV3PoolState = dataclasses.field(compare=False)
    final_state: UniswapV3PoolState = dataclasses.field(compare=False)
    status: SwapStatus = SwapStatus.COMPLETE
    initialized_ticks_crossed: int = 0
    steps: int = 0


@dataclasses.dataclass(slots=True, frozen=True)
class HopQuote:
    hop: Hop
    pool: ChecksumAddress
    amount_in: int
    amount_out: int
    sqrt_price_x96_after: SqrtPriceX96
    initialized_ticks_crossed: int
    status: SwapStatus = SwapStatus.COMPLETE


@dataclasses.dataclass(slots=True, frozen=True)
class MultiHopQuote:
    """
    The result of a stateful multi-hop quote.

    `amounts` has one more entry than there are hops. Index 0 is the amount consumed by the first
    hop, and index k + 1 is the amount delivered by hop k, so the last index is the overall output.
    With complete fills every hop consumes exactly what the previous hop delivered. After a partial
    fill an exact input hop may consume less than it was passed, and `unconsumed_amounts` holds the
    difference for each hop. `final_states` holds the post-swap state of each pool in route order,
    which can be supplied to a later quote to continue from where this one ended.
    """

    amounts: tuple[int, ...]
    hop_quotes: tuple[HopQuote, ...]
    final_states: tuple[UniswapV3PoolState, ...]

    @property
    def amount_in(self) -> int:
        return self.amounts[0]

    @property
    def amount_out(self) -> int:
        return self.amounts[-1]

    @property
    def partial_fill(self) -> bool:
        return any(quote.status is SwapStatus.PARTIAL_FILL for quote in self.hop_quotes)

    @property
    def unconsumed_amounts(self) -> tuple[int, ...]:
        return tuple(
            amount - quote.amount_in
            for amount, quote in zip(self.amounts, self.hop_quotes, strict=False)
        )
