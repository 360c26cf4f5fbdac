import bisect
import dataclasses
from collections.abc import Iterator

from quotebot.config import settings
from quotebot.exceptions import (
    ArithmeticOverflow,
    EVMRevertError,
    IncompleteSwap,
    InvalidPriceLimit,
    LiquidityPoolError,
    NoProgress,
    SwapStepLimitExceeded,
)
from quotebot.logging import logger
from quotebot.uniswap.v3_libraries.functions import to_int256
from quotebot.uniswap.v3_libraries.liquidity_math import add_delta
from quotebot.uniswap.v3_libraries.swap_math import compute_swap_step
from quotebot.uniswap.v3_libraries.tick_bitmap import (
    gen_ticks,
    next_initialized_tick_within_one_word,
)
from quotebot.uniswap.v3_libraries.tick_math import (
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    get_sqrt_ratio_at_tick,
    get_tick_at_sqrt_ratio,
)
from quotebot.uniswap.v3_types import (
    SqrtPriceX96,
    SwapStatus,
    TradeSpecification,
    UniswapV3PoolSimulationResult,
    UniswapV3PoolState,
)


@dataclasses.dataclass(slots=True, eq=False)
class SwapState:
    amount_specified_remaining: int
    amount_calculated: int
    sqrt_price_x96: int
    tick: int
    liquidity: int

    def __post_init__(self) -> None:
        assert self.liquidity >= 0


@dataclasses.dataclass(slots=True, eq=False)
class StepComputations:
    sqrt_price_start_x96: int = 0
    sqrt_price_next_x96: int = 0
    tick_next: int = 0
    initialized: bool = False
    amount_in: int = 0
    amount_out: int = 0
    fee_amount: int = 0


def default_sqrt_price_limit(zero_for_one: bool) -> SqrtPriceX96:
    """
    The price limit that allows a swap to move the price as far as possible in its direction.
    """

    return MIN_SQRT_RATIO + 1 if zero_for_one else MAX_SQRT_RATIO - 1


def _check_price_limit(
    zero_for_one: bool,
    sqrt_price_limit_x96: int,
    sqrt_price_x96_start: int,
) -> None:
    # A limit equal to the starting price is accepted, and results in a swap that cannot move
    if zero_for_one and not (MIN_SQRT_RATIO < sqrt_price_limit_x96 <= sqrt_price_x96_start):
        raise InvalidPriceLimit(sqrt_price_limit_x96)
    if not zero_for_one and not (sqrt_price_x96_start <= sqrt_price_limit_x96 < MAX_SQRT_RATIO):
        raise InvalidPriceLimit(sqrt_price_limit_x96)


def _initialized_tick_ahead(sorted_ticks: list[int], tick: int, zero_for_one: bool) -> bool:
    """
    Check if any initialized tick can still be crossed from the current tick. Moving down, ticks
    at or below the current tick are ahead. Moving up, ticks above the current tick are ahead.
    """

    if zero_for_one:
        return bisect.bisect_right(sorted_ticks, tick) > 0
    return bisect.bisect_right(sorted_ticks, tick) < len(sorted_ticks)


def simulate_swap(
    state: UniswapV3PoolState,
    trade: TradeSpecification,
    *,
    zero_for_one: bool,
    sqrt_price_limit_x96: int | None = None,
    allow_partial_fill: bool = True,
    max_steps: int | None = None,
) -> UniswapV3PoolSimulationResult:
    """
    Simulate a swap against a snapshot of pool state by stepping along the liquidity curve, without
    modifying the snapshot.

    The walk is a port of `swap` in the UniswapV3Pool.sol contract at
    https://github.com/Uniswap/v3-core/blob/main/contracts/UniswapV3Pool.sol

    The walk ends when the specified amount is filled, when the price limit is reached, or when the
    pool has no in-range liquidity and no initialized ticks remain ahead. If the swap could not
    move at all because liquidity is exhausted, `NoProgress` is raised. If some amount remains
    unfilled, the result has status `PARTIAL_FILL`, or `IncompleteSwap` is raised when
    `allow_partial_fill` is False.

    Returned deltas follow the pool convention: positive amounts are deposited by the swapper and
    negative amounts are sent to the swapper.
    """

    if sqrt_price_limit_x96 is None:
        sqrt_price_limit_x96 = default_sqrt_price_limit(zero_for_one)
    if max_steps is None:
        max_steps = settings.max_swap_steps

    _check_price_limit(zero_for_one, sqrt_price_limit_x96, state.sqrt_price_x96)

    amount_specified = trade.amount_specified
    exact_input = trade.exact_input_mode

    try:
        swap_state, initialized_ticks_crossed, steps, liquidity_exhausted = _walk(
            state=state,
            zero_for_one=zero_for_one,
            exact_input=exact_input,
            amount_specified=amount_specified,
            sqrt_price_limit_x96=sqrt_price_limit_x96,
            max_steps=max_steps,
        )
    except ArithmeticOverflow:
        raise
    except EVMRevertError as exc:
        raise LiquidityPoolError(message=f"Simulated execution reverted: {exc}") from exc

    amount_filled = amount_specified - swap_state.amount_specified_remaining
    amount0, amount1 = (
        (amount_filled, swap_state.amount_calculated)
        if zero_for_one == exact_input
        else (swap_state.amount_calculated, amount_filled)
    )

    status = SwapStatus.COMPLETE
    if swap_state.amount_specified_remaining != 0:
        if liquidity_exhausted and amount_filled == 0:
            raise NoProgress

        amount_in, amount_out = (amount0, -amount1) if zero_for_one else (amount1, -amount0)
        if not allow_partial_fill:
            raise IncompleteSwap(amount_in=amount_in, amount_out=amount_out)

        status = SwapStatus.PARTIAL_FILL
        logger.debug(
            f"Partial fill on pool {state.address}: {abs(amount_filled)} of {trade.amount} "
            f"({'liquidity exhausted' if liquidity_exhausted else 'price limit reached'})"
        )

    return UniswapV3PoolSimulationResult(
        amount0_delta=amount0,
        amount1_delta=amount1,
        initial_state=state,
        final_state=dataclasses.replace(
            state.copy(),
            liquidity=swap_state.liquidity,
            sqrt_price_x96=swap_state.sqrt_price_x96,
            tick=swap_state.tick,
        ),
        status=status,
        initialized_ticks_crossed=initialized_ticks_crossed,
        steps=steps,
    )


def _walk(
    *,
    state: UniswapV3PoolState,
    zero_for_one: bool,
    exact_input: bool,
    amount_specified: int,
    sqrt_price_limit_x96: int,
    max_steps: int,
) -> tuple[SwapState, int, int, bool]:
    """
    Step the price along the curve. Returns the final swap state, the number of initialized ticks
    crossed, the number of steps taken, and a flag set if the walk stopped because no liquidity
    remained ahead.
    """

    tick_data = state.tick_data
    tick_bitmap = state.tick_bitmap
    sorted_ticks = sorted(tick_data)

    swap_state = SwapState(
        amount_specified_remaining=amount_specified,
        amount_calculated=0,
        sqrt_price_x96=state.sqrt_price_x96,
        tick=state.tick,
        liquidity=state.liquidity,
    )

    ticks_along_swap_path: Iterator[tuple[int, bool]] | None = None
    if tick_bitmap is None:
        # The liquidity mapping is complete. Optimize loop by building a generator that yields
        # ticks and initialization status along the swap path
        ticks_along_swap_path = gen_ticks(
            initialized_ticks=sorted_ticks,
            starting_tick=state.tick,
            tick_spacing=state.tick_spacing,
            less_than_or_equal=zero_for_one,
        )

    step = StepComputations()
    steps = 0
    initialized_ticks_crossed = 0

    while (
        swap_state.amount_specified_remaining != 0
        and swap_state.sqrt_price_x96 != sqrt_price_limit_x96
    ):
        if (
            ticks_along_swap_path is not None
            and swap_state.liquidity == 0
            and not _initialized_tick_ahead(sorted_ticks, swap_state.tick, zero_for_one)
        ):
            return swap_state, initialized_ticks_crossed, steps, True

        if steps == max_steps:
            raise SwapStepLimitExceeded(max_steps)
        steps += 1

        step.sqrt_price_start_x96 = swap_state.sqrt_price_x96

        if ticks_along_swap_path is not None:
            step.tick_next, step.initialized = next(ticks_along_swap_path)
        else:
            assert tick_bitmap is not None
            step.tick_next, step.initialized = next_initialized_tick_within_one_word(
                tick_bitmap=tick_bitmap,
                sorted_ticks=sorted_ticks,
                tick=swap_state.tick,
                tick_spacing=state.tick_spacing,
                less_than_or_equal=zero_for_one,
            )

        # Ensure that we do not overshoot the min/max tick, as the tick bitmap is not aware of
        # these bounds
        step.tick_next = (
            max(MIN_TICK, step.tick_next)  # descending ticks
            if zero_for_one
            else min(MAX_TICK, step.tick_next)  # ascending ticks
        )

        step.sqrt_price_next_x96 = get_sqrt_ratio_at_tick(step.tick_next)

        # compute values to swap to the target tick, price limit, or point where the input/output
        # amount is exhausted
        limit_is_nearer = (
            step.sqrt_price_next_x96 < sqrt_price_limit_x96
            if zero_for_one
            else step.sqrt_price_next_x96 > sqrt_price_limit_x96
        )
        swap_state.sqrt_price_x96, step.amount_in, step.amount_out, step.fee_amount = (
            compute_swap_step(
                sqrt_ratio_x96_current=swap_state.sqrt_price_x96,
                sqrt_ratio_x96_target=(
                    sqrt_price_limit_x96 if limit_is_nearer else step.sqrt_price_next_x96
                ),
                liquidity=swap_state.liquidity,
                amount_remaining=swap_state.amount_specified_remaining,
                fee_pips=state.fee,
            )
        )

        if exact_input:
            swap_state.amount_specified_remaining -= to_int256(step.amount_in + step.fee_amount)
            swap_state.amount_calculated -= to_int256(step.amount_out)
        else:
            swap_state.amount_specified_remaining += to_int256(step.amount_out)
            swap_state.amount_calculated += to_int256(step.amount_in + step.fee_amount)

        if swap_state.sqrt_price_x96 == step.sqrt_price_next_x96:
            # If the next tick is initialized, adjust the in-range liquidity
            if step.initialized:
                liquidity_net = tick_data[step.tick_next].liquidity_net
                swap_state.liquidity = add_delta(
                    swap_state.liquidity,
                    -liquidity_net if zero_for_one else liquidity_net,
                )
                initialized_ticks_crossed += 1
            swap_state.tick = step.tick_next - 1 if zero_for_one else step.tick_next

        elif swap_state.sqrt_price_x96 != step.sqrt_price_start_x96:
            # Recompute unless we're on a lower tick boundary (i.e. already transitioned ticks),
            # and haven't moved
            swap_state.tick = get_tick_at_sqrt_ratio(swap_state.sqrt_price_x96)

    return swap_state, initialized_ticks_crossed, steps, False
