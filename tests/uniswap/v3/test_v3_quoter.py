import pytest
from eth_typing import ChecksumAddress

from quotebot.config import PartialFillPolicy
from quotebot.exceptions import (
    AddressMismatch,
    IncompleteSwap,
    InvalidSwapInputAmount,
    MalformedRoute,
    StateShapeMismatch,
    UnresolvedPool,
)
from quotebot.uniswap.v3_path import encode_v3_path
from quotebot.uniswap.v3_quoter import UniswapV3Quoter
from quotebot.uniswap.v3_sources import InMemoryPoolStateSource
from quotebot.uniswap.v3_types import SwapStatus, UniswapV3PoolState

TOKEN_A = "0x1111111111111111111111111111111111111111"
TOKEN_B = "0x2222222222222222222222222222222222222222"
TOKEN_C = "0x3333333333333333333333333333333333333333"
TOKEN_D = "0x4444444444444444444444444444444444444444"

FEE_AB = 3000
FEE_BC = 500


class RecordingStateSource(InMemoryPoolStateSource):
    def __init__(self, states):
        super().__init__(states)
        self.requested: list[ChecksumAddress] = []

    def get_pool_state(self, address: ChecksumAddress) -> UniswapV3PoolState:
        self.requested.append(address)
        return super().get_pool_state(address)


def fee_tolerance(amount: int, *fees: int) -> int:
    # the fee is charged once in each direction on every hop, plus rounding
    return sum(2 * amount * fee // 1_000_000 for fee in fees) + 10


@pytest.fixture
def pool_ab(build_pool) -> UniswapV3PoolState:
    return build_pool(TOKEN_A, TOKEN_B, fee=FEE_AB)


@pytest.fixture
def pool_bc(build_pool) -> UniswapV3PoolState:
    return build_pool(TOKEN_B, TOKEN_C, fee=FEE_BC, liquidity=2 * 10**18)


@pytest.fixture
def state_source(pool_ab, pool_bc) -> RecordingStateSource:
    return RecordingStateSource([pool_ab, pool_bc])


@pytest.fixture
def quoter(state_source, pool_locator) -> UniswapV3Quoter:
    return UniswapV3Quoter(state_source, pool_locator)


@pytest.fixture
def path():
    return encode_v3_path([TOKEN_A, TOKEN_B, TOKEN_C], [FEE_AB, FEE_BC])


def test_single_hop_exact_input(quoter: UniswapV3Quoter, pool_ab: UniswapV3PoolState):
    hop_quote = quoter.quote_exact_input_single(TOKEN_A, TOKEN_B, FEE_AB, 1000)

    assert hop_quote.pool == pool_ab.address
    assert hop_quote.amount_in == 1000
    assert hop_quote.amount_out == 996
    assert hop_quote.status is SwapStatus.COMPLETE
    assert hop_quote.sqrt_price_x96_after < pool_ab.sqrt_price_x96

    reverse_quote = quoter.quote_exact_input_single(TOKEN_B, TOKEN_A, FEE_AB, 1000)
    assert reverse_quote.pool == pool_ab.address
    assert reverse_quote.amount_out == 996
    assert reverse_quote.sqrt_price_x96_after > pool_ab.sqrt_price_x96


def test_single_hop_override_state(quoter: UniswapV3Quoter, pool_ab: UniswapV3PoolState):
    moved = quoter.quote_exact_input_stateful(
        encode_v3_path([TOKEN_A, TOKEN_B], [FEE_AB]), 10**17
    ).final_states[0]

    fresh_quote = quoter.quote_exact_input_single(TOKEN_A, TOKEN_B, FEE_AB, 10**15)
    moved_quote = quoter.quote_exact_input_single(
        TOKEN_A, TOKEN_B, FEE_AB, 10**15, override_state=moved
    )
    assert moved_quote.amount_out < fresh_quote.amount_out

    with pytest.raises(AddressMismatch):
        quoter.quote_exact_input_single(TOKEN_B, TOKEN_C, FEE_BC, 1000, override_state=pool_ab)


def test_price_limit_at_current_price(quoter: UniswapV3Quoter, pool_ab: UniswapV3PoolState):
    hop_quote = quoter.quote_exact_input_single(
        TOKEN_A,
        TOKEN_B,
        FEE_AB,
        1000,
        sqrt_price_limit_x96=pool_ab.sqrt_price_x96,
    )

    assert hop_quote.status is SwapStatus.PARTIAL_FILL
    assert hop_quote.amount_in == 0
    assert hop_quote.amount_out == 0
    assert hop_quote.sqrt_price_x96_after == pool_ab.sqrt_price_x96

    with pytest.raises(IncompleteSwap):
        quoter.quote_exact_input_single(
            TOKEN_A,
            TOKEN_B,
            FEE_AB,
            1000,
            sqrt_price_limit_x96=pool_ab.sqrt_price_x96,
            allow_partial_fill=False,
        )


def test_chaining_exact_input(quoter: UniswapV3Quoter, path):
    amount_in = 10**15

    multi_hop_quote = quoter.quote_exact_input_stateful(path, amount_in)

    first_hop = quoter.quote_exact_input_single(TOKEN_A, TOKEN_B, FEE_AB, amount_in)
    second_hop = quoter.quote_exact_input_single(TOKEN_B, TOKEN_C, FEE_BC, first_hop.amount_out)

    assert multi_hop_quote.amounts == (amount_in, first_hop.amount_out, second_hop.amount_out)
    assert multi_hop_quote.hop_quotes == (first_hop, second_hop)
    assert multi_hop_quote.amount_in == amount_in
    assert multi_hop_quote.amount_out == second_hop.amount_out
    assert not multi_hop_quote.partial_fill


def test_chaining_exact_output(quoter: UniswapV3Quoter, path):
    amount_out = 10**15

    multi_hop_quote = quoter.quote_exact_output_stateful(path, amount_out)

    second_hop = quoter.quote_exact_output_single(TOKEN_B, TOKEN_C, FEE_BC, amount_out)
    first_hop = quoter.quote_exact_output_single(TOKEN_A, TOKEN_B, FEE_AB, second_hop.amount_in)

    assert second_hop.amount_out == amount_out
    assert multi_hop_quote.amounts == (first_hop.amount_in, second_hop.amount_in, amount_out)
    assert multi_hop_quote.hop_quotes == (first_hop, second_hop)
    assert multi_hop_quote.final_states[0].address == first_hop.pool
    assert multi_hop_quote.final_states[1].address == second_hop.pool
    assert quoter.quote_exact_output(path, amount_out) == first_hop.amount_in


@pytest.mark.parametrize("amount", [10**6, 10**15, 10**17])
def test_direction_symmetry(quoter: UniswapV3Quoter, path, amount: int):
    amount_out = quoter.quote_exact_input(path, amount)
    assert abs(quoter.quote_exact_output(path, amount_out) - amount) <= fee_tolerance(
        amount, FEE_AB, FEE_BC
    )

    amount_in = quoter.quote_exact_output(path, amount)
    assert abs(quoter.quote_exact_input(path, amount_in) - amount) <= fee_tolerance(
        amount, FEE_AB, FEE_BC
    )


def test_stateless_and_stateful_quotes_match(
    quoter: UniswapV3Quoter,
    path,
    pool_ab: UniswapV3PoolState,
    pool_bc: UniswapV3PoolState,
):
    amount_in = 10**16

    stateless = quoter.quote_exact_input(path, amount_in)
    assert quoter.quote_exact_input_stateful(path, amount_in).amount_out == stateless
    assert (
        quoter.quote_exact_input_stateful(path, amount_in, states=(pool_ab, pool_bc)).amount_out
        == stateless
    )

    stateless = quoter.quote_exact_output(path, amount_in)
    assert quoter.quote_exact_output_stateful(path, amount_in).amount_in == stateless
    assert (
        quoter.quote_exact_output_stateful(path, amount_in, states=(pool_ab, pool_bc)).amount_in
        == stateless
    )


def test_repeated_quotes_are_identical(quoter: UniswapV3Quoter, path):
    assert quoter.quote_exact_input_stateful(path, 10**16) == quoter.quote_exact_input_stateful(
        path, 10**16
    )
    assert quoter.quote_exact_output_stateful(
        path, 10**16
    ) == quoter.quote_exact_output_stateful(path, 10**16)


def test_carried_states(
    quoter: UniswapV3Quoter,
    state_source: RecordingStateSource,
    path,
    pool_ab: UniswapV3PoolState,
    pool_bc: UniswapV3PoolState,
):
    first = quoter.quote_exact_input_stateful(path, 10**16)
    assert len(state_source.requested) == 2
    assert [state.address for state in first.final_states] == [pool_ab.address, pool_bc.address]

    # continuing from the final states, the same trade gets a worse price
    second = quoter.quote_exact_input_stateful(path, 10**16, states=first.final_states)
    assert second.amount_out < first.amount_out
    assert len(state_source.requested) == 2

    # the source states are untouched
    assert state_source.get_pool_state(pool_ab.address) is pool_ab
    assert pool_ab.sqrt_price_x96 == 2**96
    assert pool_bc.sqrt_price_x96 == 2**96


def test_state_shape_mismatch(
    quoter: UniswapV3Quoter,
    state_source: RecordingStateSource,
    pool_ab: UniswapV3PoolState,
    pool_bc: UniswapV3PoolState,
):
    three_hop_path = encode_v3_path(
        [TOKEN_A, TOKEN_B, TOKEN_C, TOKEN_D], [FEE_AB, FEE_BC, FEE_AB]
    )

    with pytest.raises(StateShapeMismatch) as exc_info:
        quoter.quote_exact_input_stateful(three_hop_path, 10**16, states=(pool_ab, pool_bc))
    assert exc_info.value.expected == 3
    assert exc_info.value.received == 2

    with pytest.raises(StateShapeMismatch):
        quoter.quote_exact_output_stateful(three_hop_path, 10**16, states=(pool_ab, pool_bc))

    assert state_source.requested == []


def test_carried_state_for_wrong_pool(
    quoter: UniswapV3Quoter,
    path,
    pool_ab: UniswapV3PoolState,
    pool_bc: UniswapV3PoolState,
):
    with pytest.raises(AddressMismatch) as exc_info:
        quoter.quote_exact_input_stateful(path, 10**16, states=(pool_bc, pool_ab))
    assert exc_info.value.expected == pool_ab.address
    assert exc_info.value.received == pool_bc.address


def test_unresolved_pool(quoter: UniswapV3Quoter):
    with pytest.raises(UnresolvedPool):
        quoter.quote_exact_input(encode_v3_path([TOKEN_C, TOKEN_D], [FEE_AB]), 10**16)

    # the fee tier is part of the pool identity
    with pytest.raises(UnresolvedPool):
        quoter.quote_exact_input(encode_v3_path([TOKEN_A, TOKEN_B], [FEE_BC]), 10**16)


def test_malformed_route(quoter: UniswapV3Quoter, path):
    trailing_partial_hop = bytes(path) + FEE_AB.to_bytes(length=3, byteorder="big")

    with pytest.raises(MalformedRoute):
        quoter.quote_exact_input(trailing_partial_hop, 10**16)

    with pytest.raises(MalformedRoute):
        quoter.quote_exact_output(trailing_partial_hop, 10**16)


def test_invalid_amount(quoter: UniswapV3Quoter, path):
    with pytest.raises(InvalidSwapInputAmount):
        quoter.quote_exact_input(path, 0)

    with pytest.raises(InvalidSwapInputAmount):
        quoter.quote_exact_output(path, -1)


def test_pool_visited_twice_uses_updated_state(
    quoter: UniswapV3Quoter, pool_ab: UniswapV3PoolState
):
    round_trip = encode_v3_path([TOKEN_A, TOKEN_B, TOKEN_A], [FEE_AB, FEE_AB])
    amount_in = 10**17

    updated = quoter.quote_exact_input_stateful(round_trip, amount_in)
    assert updated.hop_quotes[0].pool == updated.hop_quotes[1].pool == pool_ab.address
    assert updated.amount_out < amount_in

    # carried states are used exactly as supplied, so both hops start from the original state
    independent = quoter.quote_exact_input_stateful(
        round_trip, amount_in, states=(pool_ab, pool_ab)
    )
    assert updated.amount_out > independent.amount_out


class TestPartialFillPolicy:
    @pytest.fixture
    def shallow_pool_bc(self, build_pool) -> UniswapV3PoolState:
        return build_pool(TOKEN_B, TOKEN_C, fee=FEE_BC, positions=[(-100, 100, 10**18)])

    @pytest.fixture
    def shallow_source(self, pool_ab, shallow_pool_bc) -> InMemoryPoolStateSource:
        return InMemoryPoolStateSource([pool_ab, shallow_pool_bc])

    def test_abort(self, shallow_source, path):
        quoter = UniswapV3Quoter(shallow_source, partial_fill_policy=PartialFillPolicy.ABORT)

        with pytest.raises(IncompleteSwap):
            quoter.quote_exact_input(path, 10**17)

        with pytest.raises(IncompleteSwap):
            quoter.quote_exact_output(path, 10**17)

    def test_propagate_exact_input(self, shallow_source, path):
        quoter = UniswapV3Quoter(shallow_source, partial_fill_policy=PartialFillPolicy.PROPAGATE)

        multi_hop_quote = quoter.quote_exact_input_stateful(path, 10**17)

        first_hop, second_hop = multi_hop_quote.hop_quotes
        assert multi_hop_quote.partial_fill
        assert first_hop.status is SwapStatus.COMPLETE
        assert second_hop.status is SwapStatus.PARTIAL_FILL
        assert second_hop.amount_in < first_hop.amount_out
        assert multi_hop_quote.amounts == (10**17, first_hop.amount_out, second_hop.amount_out)
        # the second hop could not consume everything the first hop delivered
        assert multi_hop_quote.unconsumed_amounts == (
            0,
            first_hop.amount_out - second_hop.amount_in,
        )
        assert multi_hop_quote.unconsumed_amounts[1] > 0
        assert multi_hop_quote.final_states[1].liquidity == 0

    def test_propagate_exact_output(self, shallow_source, path):
        quoter = UniswapV3Quoter(shallow_source, partial_fill_policy=PartialFillPolicy.PROPAGATE)

        multi_hop_quote = quoter.quote_exact_output_stateful(path, 10**17)

        first_hop, second_hop = multi_hop_quote.hop_quotes
        assert multi_hop_quote.partial_fill
        assert first_hop.status is SwapStatus.COMPLETE
        assert second_hop.status is SwapStatus.PARTIAL_FILL
        assert second_hop.amount_out < 10**17
        # the smaller requirement of the last hop is passed back to the first hop
        assert first_hop.amount_out == second_hop.amount_in
        # the overall output is what the last hop delivered, not the requested amount
        assert multi_hop_quote.amounts == (
            first_hop.amount_in,
            first_hop.amount_out,
            second_hop.amount_out,
        )
        assert multi_hop_quote.amount_out == second_hop.amount_out
        assert multi_hop_quote.unconsumed_amounts == (0, 0)

    def test_propagate_exact_output_partial_first_hop(self, build_pool, pool_bc, path):
        shallow_pool_ab = build_pool(TOKEN_A, TOKEN_B, fee=FEE_AB, positions=[(-120, 120, 10**18)])
        quoter = UniswapV3Quoter(
            InMemoryPoolStateSource([shallow_pool_ab, pool_bc]),
            partial_fill_policy=PartialFillPolicy.PROPAGATE,
        )

        multi_hop_quote = quoter.quote_exact_output_stateful(path, 10**17)

        first_hop, second_hop = multi_hop_quote.hop_quotes
        assert first_hop.status is SwapStatus.PARTIAL_FILL
        assert second_hop.status is SwapStatus.COMPLETE

        # the second hop is priced again from the amount the first hop actually delivered
        assert second_hop.amount_in == first_hop.amount_out
        assert second_hop == quoter.quote_exact_input_single(
            TOKEN_B, TOKEN_C, FEE_BC, first_hop.amount_out
        )
        assert multi_hop_quote.amounts == (
            first_hop.amount_in,
            first_hop.amount_out,
            second_hop.amount_out,
        )
        assert multi_hop_quote.amount_out < 10**17
        assert multi_hop_quote.final_states[0].liquidity == 0

    def test_propagate_stateless_quotes_raise(self, shallow_source, path):
        quoter = UniswapV3Quoter(shallow_source, partial_fill_policy=PartialFillPolicy.PROPAGATE)

        exact_input_quote = quoter.quote_exact_input_stateful(path, 10**17)
        with pytest.raises(IncompleteSwap) as exc_info:
            quoter.quote_exact_input(path, 10**17)
        assert exc_info.value.amount_in == exact_input_quote.amount_in
        assert exc_info.value.amount_out == exact_input_quote.amount_out

        exact_output_quote = quoter.quote_exact_output_stateful(path, 10**17)
        with pytest.raises(IncompleteSwap) as exc_info:
            quoter.quote_exact_output(path, 10**17)
        assert exc_info.value.amount_in == exact_output_quote.amount_in
        assert exc_info.value.amount_out == exact_output_quote.amount_out

    def test_propagate_complete_fill_returns_amount(self, shallow_source, path):
        quoter = UniswapV3Quoter(shallow_source, partial_fill_policy=PartialFillPolicy.PROPAGATE)

        amount_out = quoter.quote_exact_input(path, 10**15)
        assert amount_out == quoter.quote_exact_input_stateful(path, 10**15).amount_out
