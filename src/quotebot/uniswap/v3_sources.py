import dataclasses
import pathlib
from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

import pydantic_core
from eth_abi.exceptions import DecodingError
from eth_typing import BlockIdentifier, ChecksumAddress
from web3 import Web3
from web3.exceptions import ContractLogicError

from quotebot.checksum_cache import get_checksum_address
from quotebot.config import settings
from quotebot.exceptions import QuotebotValueError, UnresolvedPool
from quotebot.functions import encode_function_calldata, raw_call
from quotebot.logging import logger
from quotebot.uniswap.v3_functions import generate_v3_pool_address
from quotebot.uniswap.v3_libraries.bit_math import least_significant_bit
from quotebot.uniswap.v3_libraries.tick_math import MAX_TICK, MIN_TICK
from quotebot.uniswap.v3_types import (
    BlockNumber,
    InitializedTickMap,
    LiquidityMap,
    Pip,
    UniswapV3BitmapAtWord,
    UniswapV3LiquidityAtTick,
    UniswapV3PoolState,
)

UNISWAP_V3_FACTORY_ADDRESS = get_checksum_address("0x1F98431c8aD98523631AE4a59f267346ea31F984")
UNISWAP_V3_POOL_INIT_HASH = "0xe34f199b19b2b4f47f68442619d555527d244f78a3297ea89325f843f87b8b54"


class PoolLocator(Protocol):
    """
    Resolves the pool address for a token pair and fee tier.
    """

    def get_pool_address(self, token_a: str, token_b: str, fee: Pip) -> ChecksumAddress: ...


class PoolStateSource(Protocol):
    """
    A minimal protocol allowing the quoter to retrieve pool state from a generic source.

    Implementations raise `UnresolvedPool` if no state is available for the address.
    """

    def get_pool_state(self, address: ChecksumAddress) -> UniswapV3PoolState: ...


@runtime_checkable
class SparsePoolStateSource(PoolStateSource, Protocol):
    """
    A pool state source returning sparse liquidity maps, which can fill in bitmap words that a
    swap needs but the state does not hold.
    """

    def extend_pool_state(self, state: UniswapV3PoolState, word: int) -> UniswapV3PoolState: ...


class UniswapV3PoolLocator:
    """
    Locates pools deployed by a V3 factory using the deterministic CREATE2 address.
    """

    def __init__(
        self,
        deployer_address: str = UNISWAP_V3_FACTORY_ADDRESS,
        init_hash: str = UNISWAP_V3_POOL_INIT_HASH,
    ) -> None:
        self.deployer_address = get_checksum_address(deployer_address)
        self.init_hash = init_hash

    def get_pool_address(self, token_a: str, token_b: str, fee: Pip) -> ChecksumAddress:
        return generate_v3_pool_address(
            token_addresses=(token_a, token_b),
            fee=fee,
            deployer_address=self.deployer_address,
            init_hash=self.init_hash,
        )


class InMemoryPoolStateSource:
    """
    A pool state source backed by a dictionary of states keyed by pool address.
    """

    def __init__(self, states: Iterable[UniswapV3PoolState] = ()) -> None:
        self._states: dict[ChecksumAddress, UniswapV3PoolState] = {}
        for state in states:
            self.add_pool_state(state)

    def __contains__(self, address: str) -> bool:
        return get_checksum_address(address) in self._states

    def add_pool_state(self, state: UniswapV3PoolState) -> None:
        self._states[get_checksum_address(state.address)] = state

    def get_pool_state(self, address: ChecksumAddress) -> UniswapV3PoolState:
        try:
            return self._states[get_checksum_address(address)]
        except KeyError:
            raise UnresolvedPool(pool=address) from None


class JsonFilePoolStateSource:
    """
    A pool state source backed by a single JSON file with this structure:
    {
        "snapshot_block": int,
        "0xPoolAddress1": {
            "fee": int,
            "tick_spacing": int,
            "liquidity": int,
            "sqrt_price_x96": int,
            "tick": int,
            "tick_data": {
                <tick>: {
                    'liquidity_gross: <value>,
                    'liquidity_net': <value>,
                },
                ...
            },
            "tick_bitmap": {
                <word>: {
                    'bitmap': <value>,
                },
                ...
            }
        },
        "0xPoolAddress2": { ... },
        ...
    }

    The "tick_bitmap" key is optional. If absent, the tick data is treated as the complete
    liquidity map for the pool.
    """

    def __init__(self, path: pathlib.Path | str) -> None:
        path = pathlib.Path(path).expanduser().absolute()
        self._path = path
        file_snapshot: dict[str, Any] = pydantic_core.from_json(path.read_bytes())

        newest_block = file_snapshot.pop("snapshot_block", None)
        self.snapshot_block: BlockNumber | None = (
            int(newest_block) if newest_block is not None else None
        )
        self._file_snapshot = {
            get_checksum_address(pool_address): pool_data
            for pool_address, pool_data in file_snapshot.items()
        }
        logger.debug(f"Read {len(self._file_snapshot)} pool states from {path}")

    def get_pools(self) -> set[ChecksumAddress]:
        return set(self._file_snapshot)

    def get_pool_state(self, address: ChecksumAddress) -> UniswapV3PoolState:
        address = get_checksum_address(address)
        try:
            pool_data = self._file_snapshot[address]
        except KeyError:
            raise UnresolvedPool(pool=address) from None

        tick_bitmap: InitializedTickMap | None = None
        if (bitmap_data := pool_data.get("tick_bitmap")) is not None:
            tick_bitmap = {
                int(word): UniswapV3BitmapAtWord(**value) for word, value in bitmap_data.items()
            }

        return UniswapV3PoolState(
            address=address,
            fee=int(pool_data["fee"]),
            tick_spacing=int(pool_data["tick_spacing"]),
            liquidity=int(pool_data["liquidity"]),
            sqrt_price_x96=int(pool_data["sqrt_price_x96"]),
            tick=int(pool_data["tick"]),
            tick_data=dict(
                sorted(
                    (int(tick), UniswapV3LiquidityAtTick(**value))
                    for tick, value in pool_data["tick_data"].items()
                )
            ),
            tick_bitmap=tick_bitmap,
            block=self.snapshot_block,
        )


class Web3PoolStateSource:
    """
    A pool state source that reads pool values with `eth_call` against a live node.

    Only the bitmap words within `word_radius` of the current tick's word are fetched, so the
    resulting state holds a sparse liquidity map. A swap that walks beyond the fetched words raises
    `LiquidityMapWordMissing`, and `extend_pool_state` reads the missing word at the block the
    state was fetched at.
    """

    def __init__(
        self,
        w3: Web3,
        word_radius: int | None = None,
        block_identifier: BlockIdentifier | None = None,
    ) -> None:
        if word_radius is None:
            word_radius = settings.state_word_radius
        if word_radius < 0:
            raise QuotebotValueError(message="word_radius must be non-negative")

        self.w3 = w3
        self.word_radius = word_radius
        self.block_identifier = block_identifier

    def _call(
        self,
        address: ChecksumAddress,
        function_prototype: str,
        return_types: list[str],
        block_identifier: BlockIdentifier,
        function_arguments: list[Any] | None = None,
    ) -> tuple[Any, ...]:
        return raw_call(
            w3=self.w3,
            address=address,
            calldata=encode_function_calldata(
                function_prototype=function_prototype,
                function_arguments=function_arguments,
            ),
            return_types=return_types,
            block_identifier=block_identifier,
        )

    def _get_block_identifier(self) -> BlockIdentifier:
        return (
            self.block_identifier
            if self.block_identifier is not None
            else self.w3.eth.get_block_number()
        )

    def get_pool_state(self, address: ChecksumAddress) -> UniswapV3PoolState:
        address = get_checksum_address(address)
        block_identifier = self._get_block_identifier()

        try:
            sqrt_price_x96, tick, *_ = self._call(
                address,
                "slot0()",
                ["uint160", "int24", "uint16", "uint16", "uint16", "uint8", "bool"],
                block_identifier,
            )
            (liquidity,) = self._call(address, "liquidity()", ["uint128"], block_identifier)
            (fee,) = self._call(address, "fee()", ["uint24"], block_identifier)
            (tick_spacing,) = self._call(address, "tickSpacing()", ["int24"], block_identifier)

            if sqrt_price_x96 == 0:
                raise UnresolvedPool(pool=address)

            tick_bitmap, tick_data = self._fetch_liquidity_map(
                address=address,
                tick=tick,
                tick_spacing=tick_spacing,
                block_identifier=block_identifier,
            )
        except (ContractLogicError, DecodingError) as exc:
            raise UnresolvedPool(pool=address) from exc

        block = block_identifier if isinstance(block_identifier, int) else None
        logger.debug(
            f"Fetched state for pool {address} @ block {block_identifier}: "
            f"{len(tick_bitmap)} words, {len(tick_data)} initialized ticks"
        )

        return UniswapV3PoolState(
            address=address,
            fee=fee,
            tick_spacing=tick_spacing,
            liquidity=liquidity,
            sqrt_price_x96=sqrt_price_x96,
            tick=tick,
            tick_data=tick_data,
            tick_bitmap=tick_bitmap,
            block=block,
        )

    def extend_pool_state(self, state: UniswapV3PoolState, word: int) -> UniswapV3PoolState:
        """
        Return a copy of `state` with the bitmap at `word` and the initialized ticks inside it.

        The word is read at the state's block if it has one, so the extended map stays consistent
        with the price and liquidity already held by the state.
        """

        address = get_checksum_address(state.address)
        block_identifier = state.block if state.block is not None else self._get_block_identifier()

        try:
            bitmap_at_word, word_tick_data = self._fetch_word(
                address=address,
                word=word,
                tick_spacing=state.tick_spacing,
                block_identifier=block_identifier,
            )
        except (ContractLogicError, DecodingError) as exc:
            raise UnresolvedPool(pool=address) from exc

        logger.debug(
            f"Fetched word {word} for pool {address} @ block {block_identifier}: "
            f"{len(word_tick_data)} initialized ticks"
        )

        tick_bitmap = dict(state.tick_bitmap) if state.tick_bitmap is not None else {}
        tick_bitmap[word] = bitmap_at_word
        return dataclasses.replace(
            state,
            tick_data=dict(sorted((state.tick_data | word_tick_data).items())),
            tick_bitmap=tick_bitmap,
        )

    def _fetch_liquidity_map(
        self,
        address: ChecksumAddress,
        tick: int,
        tick_spacing: int,
        block_identifier: BlockIdentifier,
    ) -> tuple[InitializedTickMap, LiquidityMap]:
        current_word = (tick // tick_spacing) >> 8
        min_word = (MIN_TICK // tick_spacing) >> 8
        max_word = (MAX_TICK // tick_spacing) >> 8

        tick_bitmap: InitializedTickMap = {}
        tick_data: LiquidityMap = {}

        for word in range(
            max(min_word, current_word - self.word_radius),
            min(max_word, current_word + self.word_radius) + 1,
        ):
            tick_bitmap[word], word_tick_data = self._fetch_word(
                address=address,
                word=word,
                tick_spacing=tick_spacing,
                block_identifier=block_identifier,
            )
            tick_data.update(word_tick_data)

        return tick_bitmap, dict(sorted(tick_data.items()))

    def _fetch_word(
        self,
        address: ChecksumAddress,
        word: int,
        tick_spacing: int,
        block_identifier: BlockIdentifier,
    ) -> tuple[UniswapV3BitmapAtWord, LiquidityMap]:
        block = block_identifier if isinstance(block_identifier, int) else None

        (bitmap,) = self._call(address, "tickBitmap(int16)", ["uint256"], block_identifier, [word])

        tick_data: LiquidityMap = {}
        remaining = bitmap
        while remaining:
            bit_position = least_significant_bit(remaining)
            remaining &= remaining - 1

            initialized_tick = ((word << 8) + bit_position) * tick_spacing
            liquidity_gross, liquidity_net, *_ = self._call(
                address,
                "ticks(int24)",
                [
                    "uint128",
                    "int128",
                    "uint256",
                    "uint256",
                    "int56",
                    "uint160",
                    "uint32",
                    "bool",
                ],
                block_identifier,
                [initialized_tick],
            )
            tick_data[initialized_tick] = UniswapV3LiquidityAtTick(
                liquidity_net=liquidity_net,
                liquidity_gross=liquidity_gross,
                block=block,
            )

        return UniswapV3BitmapAtWord(bitmap=bitmap, block=block), tick_data
