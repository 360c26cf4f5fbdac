import functools

from quotebot.constants import MAX_UINT128, MAX_UINT256
from quotebot.exceptions import EVMRevertError
from quotebot.uniswap.v3_libraries._config import V3_LIB_CACHE_SIZE

# ref: https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/TickMath.sol

MIN_TICK = -887272
MAX_TICK = -MIN_TICK
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Magic number represents the minimum value of the error when approximating log_sqrt10001(x),
# when sqrtPrice is from the range (2^-64, 2^64). This is safe as MIN_SQRT_PRICE is more than
# 2^-64. If MIN_SQRT_PRICE is changed, this may need to be changed too
MIN_ERROR = 291339464771989622907027621153398088495

# Magic number represents the ceiling of the maximum value of the error when
# approximating log_sqrt10001(x)
MAX_ERROR = 3402992956809132418596140100660247210

# Q128.128 multipliers for 1/sqrt(1.0001)^(2^i), applied for each set bit i of the absolute tick
_TICK_RATIO_MULTIPLIERS = (
    (0x2, 340248342086729790484326174814286782778),
    (0x4, 340214320654664324051920982716015181260),
    (0x8, 340146287995602323631171512101879684304),
    (0x10, 340010263488231146823593991679159461444),
    (0x20, 339738377640345403697157401104375502016),
    (0x40, 339195258003219555707034227454543997025),
    (0x80, 338111622100601834656805679988414885971),
    (0x100, 335954724994790223023589805789778977700),
    (0x200, 331682121138379247127172139078559817300),
    (0x400, 323299236684853023288211250268160618739),
    (0x800, 307163716377032989948697243942600083929),
    (0x1000, 277268403626896220162999269216087595045),
    (0x2000, 225923453940442621947126027127485391333),
    (0x4000, 149997214084966997727330242082538205943),
    (0x8000, 66119101136024775622716233608466517926),
    (0x10000, 12847376061809297530290974190478138313),
    (0x20000, 485053260817066172746253684029974020),
    (0x40000, 691415978906521570653435304214168),
    (0x80000, 1404880482679654955896180642),
)


@functools.lru_cache(maxsize=V3_LIB_CACHE_SIZE)
def get_sqrt_ratio_at_tick(tick: int) -> int:
    """
    Find the square root ratio in Q64.96 form for the given tick.
    """

    abs_tick = abs(tick)
    if not (abs_tick <= MAX_TICK):
        raise EVMRevertError(error="required: abs_tick <= MAX_TICK")

    ratio = 340265354078544963557816517032075149313 if abs_tick & 0x1 != 0 else MAX_UINT128 + 1

    for tick_mask, ratio_multiplier in _TICK_RATIO_MULTIPLIERS:
        if abs_tick & tick_mask != 0:
            ratio = (ratio * ratio_multiplier) >> 128

    if tick > 0:
        ratio = MAX_UINT256 // ratio

    # Divide by 1<<32, rounding up, to go from a Q128.128 to a Q128.96. The result always fits
    # within 160 bits due to the tick input constraint. Rounding up keeps get_tick_at_sqrt_ratio
    # of the output consistent.
    return (ratio >> 32) + (0 if (ratio % (1 << 32) == 0) else 1)


@functools.lru_cache(maxsize=V3_LIB_CACHE_SIZE)
def get_tick_at_sqrt_ratio(sqrt_price_x96: int) -> int:
    """
    Calculates the greatest tick value such that get_sqrt_ratio_at_tick(tick) <= sqrt_price_x96
    """

    if not (MIN_SQRT_RATIO <= sqrt_price_x96 < MAX_SQRT_RATIO):
        raise EVMRevertError(error="R")

    ratio = sqrt_price_x96 << 32

    msb = ratio.bit_length() - 1
    r = ratio >> (msb - 127) if msb >= 128 else ratio << (127 - msb)  # noqa: PLR2004

    log_2 = (msb - 128) << 64

    # Iteratively square the normalized mantissa to extract 14 fractional bits of log2(ratio)
    for factor in range(63, 49, -1):
        r = (r * r) >> 127
        f = r >> 128
        log_2 |= f << factor
        r >>= f

    log_sqrt10001 = log_2 * 255738958999603826347141  # 128.128 number

    tick_low = (log_sqrt10001 - MAX_ERROR) >> 128
    tick_high = (log_sqrt10001 + MIN_ERROR) >> 128

    if tick_low == tick_high:
        return tick_low
    return tick_high if get_sqrt_ratio_at_tick(tick_high) <= sqrt_price_x96 else tick_low
