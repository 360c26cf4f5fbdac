import bisect
from collections.abc import Generator, Iterable, Sequence
from functools import cache
from itertools import count

from quotebot.exceptions import LiquidityMapWordMissing
from quotebot.uniswap.v3_types import UniswapV3BitmapAtWord

# ref: https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/TickBitmap.sol


@cache
def position(tick: int) -> tuple[int, int]:
    """
    Computes the position in the tick initialization bitmap for the given tick.

    This function does not account for tick spacing, and ticks must be compressed. For a higher
    level function that accounts for tick spacing, use `v3_functions.get_tick_word_and_bit_position`
    """
    return (
        tick >> 8,  # word_pos
        tick % 256,  # bit_pos
    )


def gen_ticks(
    initialized_ticks: Iterable[int],
    starting_tick: int,
    tick_spacing: int,
    less_than_or_equal: bool,
) -> Generator[tuple[int, bool], None, None]:
    """
    Yields ticks from the set of all possible ticks at 32 byte (256 bit) word boundaries and
    the provided initialized ticks. The ticks are yielded in descending order when
    `less_than_or_equal` is True, else ascending.

    This matches the sequence of (tick, initialized) values that repeated calls to
    `nextInitializedTickWithinOneWord` produce on a complete bitmap.
    """

    # Python rounds down to negative infinity, so use it directly instead of the abs and modulo
    # implementation of the Solidity contract
    word_pos, _ = position(starting_tick // tick_spacing)

    # The boundary ticks for each word are at the 0th and 255th bits.
    # On the way down (less_than_or_equal=True), start at the 0th bit.
    # On the way up (less_than_or_equal=False), start at the 255th bit.
    if less_than_or_equal:
        step_distance = -256 * tick_spacing
        first_boundary_tick = tick_spacing * 256 * word_pos
        initialized = sorted(
            (tick for tick in initialized_ticks if tick <= starting_tick),
            reverse=True,
        )
    else:
        step_distance = 256 * tick_spacing
        first_boundary_tick = tick_spacing * (256 * word_pos + 255)
        if starting_tick >= first_boundary_tick:
            # Special case: starting tick on the first word boundary, begin at the next word
            first_boundary_tick += 256 * tick_spacing
        initialized = sorted(tick for tick in initialized_ticks if tick > starting_tick)

    boundary_ticks = count(start=first_boundary_tick, step=step_distance)

    def _is_nearer(a: int, b: int) -> bool:
        return a > b if less_than_or_equal else a < b

    next_boundary_tick = next(boundary_ticks)
    for next_initialized_tick in initialized:
        # Emit the uninitialized word boundaries passed on the way to this initialized tick
        while _is_nearer(next_boundary_tick, next_initialized_tick):
            yield (next_boundary_tick, False)
            next_boundary_tick = next(boundary_ticks)
        yield (next_initialized_tick, True)
        if next_boundary_tick == next_initialized_tick:
            # The initialized tick lies on a boundary, which has now been visited
            next_boundary_tick = next(boundary_ticks)

    # Then yield uninitialized boundary ticks forever
    while True:
        yield (next_boundary_tick, False)
        next_boundary_tick = next(boundary_ticks)


def next_initialized_tick_within_one_word(
    tick_bitmap: dict[int, UniswapV3BitmapAtWord],
    sorted_ticks: Sequence[int],
    tick: int,
    tick_spacing: int,
    less_than_or_equal: bool,
) -> tuple[int, bool]:
    """
    Return the next initialized tick contained in the same word (or adjacent word) as the tick
    that is either to the left (less than or equal to) or right (greater than) of the given tick,
    and a flag indicating if that tick is initialized.

    Initialized ticks are taken from `sorted_ticks`, which must hold every initialized tick inside
    the words listed in `tick_bitmap`. A word not present in the bitmap is unknown and raises
    `LiquidityMapWordMissing`.
    """

    compressed = tick // tick_spacing

    if less_than_or_equal:
        word_pos, _ = position(compressed)
        if word_pos not in tick_bitmap:
            raise LiquidityMapWordMissing(word_pos)

        lowest_tick_in_word = tick_spacing * (256 * word_pos)
        tick_index = bisect.bisect_right(sorted_ticks, tick)
        next_tick = (
            lowest_tick_in_word
            if tick_index == 0
            else max(lowest_tick_in_word, sorted_ticks[tick_index - 1])
        )
    else:
        # start from the word of the next tick, since the current tick state doesn't matter
        word_pos, _ = position(compressed + 1)
        if word_pos not in tick_bitmap:
            raise LiquidityMapWordMissing(word_pos)

        highest_tick_in_word = tick_spacing * (256 * word_pos + 255)
        tick_index = bisect.bisect_right(sorted_ticks, tick)
        next_tick = (
            highest_tick_in_word
            if tick_index == len(sorted_ticks)
            else min(highest_tick_in_word, sorted_ticks[tick_index])
        )

    found_index = bisect.bisect_left(sorted_ticks, next_tick)
    return next_tick, found_index < len(sorted_ticks) and sorted_ticks[found_index] == next_tick
