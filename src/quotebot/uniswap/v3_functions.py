from typing import TypeAlias
from collections.abc import Iterable
from fractions import Fraction

import eth_abi.abi
from eth_typing import ChecksumAddress
from eth_utils.crypto import keccak
from hexbytes import HexBytes

from quotebot.checksum_cache import get_checksum_address
from quotebot.exceptions import QuotebotValueError
from quotebot.uniswap.v3_libraries.liquidity_math import add_delta
from quotebot.uniswap.v3_libraries.tick_math import (
    MAX_TICK,
    MIN_TICK,
    get_tick_at_sqrt_ratio,
)
from quotebot.uniswap.v3_types import (
    LiquidityMap,
    Pip,
    SqrtPriceX96,
    Tick,
    UniswapV3LiquidityAtTick,
    UniswapV3PoolState,
)

# Fee tiers enabled by the Uniswap V3 factory and their tick spacing
FEE_TICK_SPACINGS: dict[Pip, int] = {
    100: 1,
    500: 10,
    3000: 60,
    10000: 200,
}

LiquidityPosition: TypeAlias = tuple[Tick, Tick, int]  # (tick_lower, tick_upper, liquidity)


def exchange_rate_from_sqrt_price_x96(sqrt_price_x96: int) -> Fraction:
    # ref: https://blog.uniswap.org/uniswap-v3-math-primer
    return Fraction(sqrt_price_x96**2, 2**192)


def generate_v3_pool_address(
    token_addresses: Iterable[str],
    fee: int,
    deployer_address: str,
    init_hash: str,
) -> ChecksumAddress:
    """
    Generate the deterministic pool address from the token addresses and fee.

    Adapted from https://github.com/Uniswap/v3-periphery/blob/main/contracts/libraries/PoolAddress.sol
    """

    token0, token1 = sorted(address.lower() for address in token_addresses)

    salt = keccak(
        eth_abi.abi.encode(
            types=("address", "address", "uint24"),
            args=(token0, token1, fee),
        )
    )

    # last 20 bytes of the keccak hash becomes the pool address
    pool_address = keccak(
        HexBytes(0xFF) + HexBytes(deployer_address) + salt + HexBytes(init_hash)
    )[-20:]
    return get_checksum_address(HexBytes(pool_address).to_0x_hex())


def get_tick_word_and_bit_position(
    tick: int,
    tick_spacing: int,
) -> tuple[int, int]:
    """
    Retrieves the word and bit position (in the tick bitmap) for an uncompressed tick.
    """

    if tick % tick_spacing != 0:
        raise QuotebotValueError(message=f"Tick {tick} is not a multiple of spacing {tick_spacing}")

    compressed = tick // tick_spacing
    return compressed >> 8, compressed % 256


def tick_spacing_for_fee(fee: Pip) -> int:
    try:
        return FEE_TICK_SPACINGS[fee]
    except KeyError:
        raise QuotebotValueError(message=f"No tick spacing is known for fee {fee}") from None


def build_liquidity_map(
    positions: Iterable[LiquidityPosition],
    tick_spacing: int,
) -> LiquidityMap:
    """
    Build the initialized tick mapping for a set of liquidity positions, accumulating net and gross
    liquidity at each position boundary the same way the pool contract does when minting.
    """

    liquidity_net: dict[Tick, int] = {}
    liquidity_gross: dict[Tick, int] = {}

    for tick_lower, tick_upper, liquidity in positions:
        if not (MIN_TICK <= tick_lower < tick_upper <= MAX_TICK):
            raise QuotebotValueError(
                message=f"Invalid position range ({tick_lower}, {tick_upper})"
            )
        if tick_lower % tick_spacing != 0 or tick_upper % tick_spacing != 0:
            raise QuotebotValueError(
                message=f"Position ({tick_lower}, {tick_upper}) not aligned to spacing {tick_spacing}"  # noqa: E501
            )
        if liquidity <= 0:
            raise QuotebotValueError(message="Position liquidity must be positive")

        for tick, net_delta in ((tick_lower, liquidity), (tick_upper, -liquidity)):
            liquidity_gross[tick] = add_delta(liquidity_gross.get(tick, 0), liquidity)
            liquidity_net[tick] = liquidity_net.get(tick, 0) + net_delta

    return {
        tick: UniswapV3LiquidityAtTick(
            liquidity_net=liquidity_net[tick],
            liquidity_gross=liquidity_gross[tick],
        )
        for tick in sorted(liquidity_gross)
    }


def pool_state_from_positions(
    address: str,
    fee: Pip,
    sqrt_price_x96: SqrtPriceX96,
    positions: Iterable[LiquidityPosition],
    tick_spacing: int | None = None,
) -> UniswapV3PoolState:
    """
    Build a complete pool state from a price and a set of liquidity positions. The in-range
    liquidity is the sum of all positions where tick_lower <= current tick < tick_upper.
    """

    if tick_spacing is None:
        tick_spacing = tick_spacing_for_fee(fee)

    tick = get_tick_at_sqrt_ratio(sqrt_price_x96)
    tick_data = build_liquidity_map(positions, tick_spacing)

    in_range_liquidity = 0
    for initialized_tick in tick_data:
        if initialized_tick > tick:
            break
        in_range_liquidity = add_delta(
            in_range_liquidity, tick_data[initialized_tick].liquidity_net
        )

    return UniswapV3PoolState(
        address=get_checksum_address(address),
        fee=fee,
        tick_spacing=tick_spacing,
        liquidity=in_range_liquidity,
        sqrt_price_x96=sqrt_price_x96,
        tick=tick,
        tick_data=tick_data,
    )
