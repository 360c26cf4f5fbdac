from collections.abc import Sequence

from eth_typing import ChecksumAddress

from quotebot.checksum_cache import get_checksum_address
from quotebot.config import PartialFillPolicy, settings
from quotebot.exceptions import (
    AddressMismatch,
    IncompleteSwap,
    LiquidityMapWordMissing,
    StateShapeMismatch,
)
from quotebot.logging import logger
from quotebot.uniswap.v3_path import V3Path
from quotebot.uniswap.v3_sources import (
    PoolLocator,
    PoolStateSource,
    SparsePoolStateSource,
    UniswapV3PoolLocator,
)
from quotebot.uniswap.v3_swap import simulate_swap
from quotebot.uniswap.v3_types import (
    Hop,
    HopQuote,
    MultiHopQuote,
    Pip,
    SqrtPriceX96,
    SwapStatus,
    TradeSpecification,
    UniswapV3PoolState,
)


class UniswapV3Quoter:
    """
    Off-chain equivalent of the Uniswap V3 QuoterV2 contract at
    https://github.com/Uniswap/v3-periphery/blob/main/contracts/lens/QuoterV2.sol

    Quotes are calculated by simulating each swap along a route against pool states retrieved from
    `state_source`, or against states supplied by the caller. Pool states are never modified, and
    the stateful methods return the post-swap state of every pool so a later quote can continue
    from it.
    """

    def __init__(
        self,
        state_source: PoolStateSource,
        locator: PoolLocator | None = None,
        *,
        partial_fill_policy: PartialFillPolicy | None = None,
        max_steps: int | None = None,
    ) -> None:
        self.state_source = state_source
        self.locator: PoolLocator = locator if locator is not None else UniswapV3PoolLocator()
        self.partial_fill_policy = (
            partial_fill_policy
            if partial_fill_policy is not None
            else settings.partial_fill_policy
        )
        self.max_steps = max_steps

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(state_source={self.state_source!r}, "
            f"partial_fill_policy={self.partial_fill_policy})"
        )

    @staticmethod
    def _decode_route(
        path: V3Path | bytes | str,
        states: Sequence[UniswapV3PoolState],
    ) -> tuple[Hop, ...]:
        if not isinstance(path, V3Path):
            path = V3Path(path)

        num_pools = path.num_pools()
        if len(states) not in (0, num_pools):
            raise StateShapeMismatch(expected=num_pools, received=len(states))

        return path.hops()

    def _resolve_state(
        self,
        hop: Hop,
        carried_state: UniswapV3PoolState | None,
        updated_states: dict[ChecksumAddress, UniswapV3PoolState] | None = None,
    ) -> UniswapV3PoolState:
        pool_address = self.locator.get_pool_address(hop.token_in, hop.token_out, hop.fee)

        if carried_state is not None:
            if get_checksum_address(carried_state.address) != pool_address:
                raise AddressMismatch(expected=pool_address, received=carried_state.address)
            return carried_state

        # A pool visited twice along one route is priced from the state left by the earlier hop
        if updated_states is not None and pool_address in updated_states:
            return updated_states[pool_address]

        return self.state_source.get_pool_state(pool_address)

    def _quote_hop(
        self,
        hop: Hop,
        trade: TradeSpecification,
        state: UniswapV3PoolState,
        sqrt_price_limit_x96: SqrtPriceX96 | None,
        allow_partial_fill: bool,
    ) -> tuple[HopQuote, UniswapV3PoolState]:
        """
        Simulate one hop and translate the pool deltas into input and output amounts.

        If the state's liquidity map is sparse and the source can extend it, bitmap words missing
        from the map are fetched and the swap is simulated again from the extended state.
        """

        zero_for_one = hop.zero_for_one
        while True:
            try:
                result = simulate_swap(
                    state,
                    trade,
                    zero_for_one=zero_for_one,
                    sqrt_price_limit_x96=sqrt_price_limit_x96,
                    allow_partial_fill=allow_partial_fill,
                    max_steps=self.max_steps,
                )
            except LiquidityMapWordMissing as exc:
                if not isinstance(self.state_source, SparsePoolStateSource):
                    raise
                logger.debug(f"Fetching word {exc.word} for pool {state.address}")
                state = self.state_source.extend_pool_state(state, exc.word)
                continue
            break

        amount_in, amount_out = (
            (result.amount0_delta, -result.amount1_delta)
            if zero_for_one
            else (result.amount1_delta, -result.amount0_delta)
        )

        hop_quote = HopQuote(
            hop=hop,
            pool=state.address,
            amount_in=amount_in,
            amount_out=amount_out,
            sqrt_price_x96_after=result.final_state.sqrt_price_x96,
            initialized_ticks_crossed=result.initialized_ticks_crossed,
            status=result.status,
        )
        logger.debug(
            f"Quoted {hop.token_in} -> {hop.token_out} ({hop.fee}) on pool {state.address}: "
            f"{amount_in} in, {amount_out} out, {result.steps} steps, {result.status.name}"
        )
        return hop_quote, result.final_state

    @staticmethod
    def _warn_partial_fill(hop_quote: HopQuote) -> None:
        # Only reachable with the PROPAGATE policy, the simulator raises IncompleteSwap otherwise
        if hop_quote.status is not SwapStatus.PARTIAL_FILL:
            return

        logger.warning(
            f"Hop {hop_quote.hop.token_in} -> {hop_quote.hop.token_out} on pool {hop_quote.pool} "
            f"was partially filled ({hop_quote.amount_in} in, {hop_quote.amount_out} out), "
            "continuing with the filled amount"
        )

    def _quote_hops_in_route_order(
        self,
        hops: Sequence[Hop],
        amount_in: int,
        states: Sequence[UniswapV3PoolState],
        updated_states: dict[ChecksumAddress, UniswapV3PoolState],
        allow_partial_fill: bool,
    ) -> tuple[list[HopQuote], list[UniswapV3PoolState]]:
        """
        Simulate `hops` in route order, each taking the output of the previous hop as its exact
        input. `states` is empty or holds one carried state per hop.
        """

        amount = amount_in
        hop_quotes: list[HopQuote] = []
        final_states: list[UniswapV3PoolState] = []

        for hop_index, hop in enumerate(hops):
            if amount == 0:
                # A partial fill upstream delivered nothing to this hop
                raise IncompleteSwap(amount_in=amount_in, amount_out=0)

            hop_quote, final_state = self._quote_hop(
                hop=hop,
                trade=TradeSpecification.exact_input(amount),
                state=self._resolve_state(
                    hop,
                    states[hop_index] if states else None,
                    updated_states,
                ),
                sqrt_price_limit_x96=None,
                allow_partial_fill=allow_partial_fill,
            )
            self._warn_partial_fill(hop_quote)

            updated_states[final_state.address] = final_state
            hop_quotes.append(hop_quote)
            final_states.append(final_state)
            amount = hop_quote.amount_out

        return hop_quotes, final_states

    def quote_exact_input(self, path: V3Path | bytes | str, amount_in: int) -> int:
        """
        Return the amount of the last token received for `amount_in` of the first token.

        The amount is only returned for a complete fill. If a hop is partially filled under the
        PROPAGATE policy, `IncompleteSwap` is raised with the amounts actually consumed and
        delivered, and `quote_exact_input_stateful` gives the per-hop detail.
        """

        multi_hop_quote = self.quote_exact_input_stateful(path, amount_in)
        if multi_hop_quote.partial_fill:
            raise IncompleteSwap(
                amount_in=multi_hop_quote.amount_in,
                amount_out=multi_hop_quote.amount_out,
            )
        return multi_hop_quote.amount_out

    def quote_exact_input_stateful(
        self,
        path: V3Path | bytes | str,
        amount_in: int,
        states: Sequence[UniswapV3PoolState] = (),
    ) -> MultiHopQuote:
        """
        Quote an exact input swap along the path, with hops simulated in route order. Each hop
        receives the output of the previous hop as its exact input.

        If `states` is non-empty it must hold one pool state per hop, and hop k is simulated from
        `states[k]` instead of a state fetched from the source.
        """

        TradeSpecification.exact_input(amount_in)
        hops = self._decode_route(path, states)

        hop_quotes, final_states = self._quote_hops_in_route_order(
            hops=hops,
            amount_in=amount_in,
            states=states,
            updated_states={},
            allow_partial_fill=self.partial_fill_policy is PartialFillPolicy.PROPAGATE,
        )

        return MultiHopQuote(
            amounts=(hop_quotes[0].amount_in, *(quote.amount_out for quote in hop_quotes)),
            hop_quotes=tuple(hop_quotes),
            final_states=tuple(final_states),
        )

    def quote_exact_output(self, path: V3Path | bytes | str, amount_out: int) -> int:
        """
        Return the amount of the first token required to receive `amount_out` of the last token.
        The path is given in swap order.

        The amount is only returned for a complete fill. If a hop is partially filled under the
        PROPAGATE policy, `IncompleteSwap` is raised with the amounts actually consumed and
        delivered, and `quote_exact_output_stateful` gives the per-hop detail.
        """

        multi_hop_quote = self.quote_exact_output_stateful(path, amount_out)
        if multi_hop_quote.partial_fill:
            raise IncompleteSwap(
                amount_in=multi_hop_quote.amount_in,
                amount_out=multi_hop_quote.amount_out,
            )
        return multi_hop_quote.amount_in

    def quote_exact_output_stateful(
        self,
        path: V3Path | bytes | str,
        amount_out: int,
        states: Sequence[UniswapV3PoolState] = (),
    ) -> MultiHopQuote:
        """
        Quote an exact output swap along the path, with hops simulated in reverse order. Each hop
        is asked for the input required by the hop after it, and the required input of the first
        hop is the overall input.

        If a hop other than the last is partially filled, it delivers less than the hops after it
        were priced for. Those hops are then simulated again in route order as exact input swaps of
        the amount actually delivered, from the same states they were first priced from.

        The path, `states`, and the returned amounts, hop quotes and final states are all in
        swap order.
        """

        TradeSpecification.exact_output(amount_out)
        hops = self._decode_route(path, states)

        allow_partial_fill = self.partial_fill_policy is PartialFillPolicy.PROPAGATE
        updated_states: dict[ChecksumAddress, UniswapV3PoolState] = {}
        initial_states: dict[int, UniswapV3PoolState] = {}
        hop_quotes: dict[int, HopQuote] = {}
        final_states: dict[int, UniswapV3PoolState] = {}

        amount = amount_out
        for hop_index in reversed(range(len(hops))):
            hop = hops[hop_index]
            initial_states[hop_index] = self._resolve_state(
                hop,
                states[hop_index] if states else None,
                updated_states,
            )
            hop_quote, final_state = self._quote_hop(
                hop=hop,
                trade=TradeSpecification.exact_output(amount),
                state=initial_states[hop_index],
                sqrt_price_limit_x96=None,
                allow_partial_fill=allow_partial_fill,
            )
            self._warn_partial_fill(hop_quote)

            if hop_quote.amount_in == 0:
                raise IncompleteSwap(amount_in=0, amount_out=hop_quote.amount_out)

            updated_states[final_state.address] = final_state
            hop_quotes[hop_index] = hop_quote
            final_states[hop_index] = final_state
            amount = hop_quote.amount_in

        partially_filled = [
            hop_index
            for hop_index in range(len(hops) - 1)
            if hop_quotes[hop_index].status is SwapStatus.PARTIAL_FILL
        ]
        if partially_filled:
            first_partial = partially_filled[0]
            downstream_quotes, downstream_states = self._quote_hops_in_route_order(
                hops=hops[first_partial + 1 :],
                amount_in=hop_quotes[first_partial].amount_out,
                states=[initial_states[i] for i in range(first_partial + 1, len(hops))],
                updated_states={},
                allow_partial_fill=allow_partial_fill,
            )
            for offset, (hop_quote, final_state) in enumerate(
                zip(downstream_quotes, downstream_states, strict=True),
                start=first_partial + 1,
            ):
                hop_quotes[offset] = hop_quote
                final_states[offset] = final_state

        ordered_quotes = [hop_quotes[hop_index] for hop_index in range(len(hops))]
        return MultiHopQuote(
            amounts=(ordered_quotes[0].amount_in, *(quote.amount_out for quote in ordered_quotes)),
            hop_quotes=tuple(ordered_quotes),
            final_states=tuple(final_states[hop_index] for hop_index in range(len(hops))),
        )

    def quote_exact_input_single(
        self,
        token_in: str,
        token_out: str,
        fee: Pip,
        amount_in: int,
        sqrt_price_limit_x96: SqrtPriceX96 | None = None,
        *,
        allow_partial_fill: bool | None = None,
        override_state: UniswapV3PoolState | None = None,
    ) -> HopQuote:
        """
        Quote an exact input swap through a single pool.

        Supplying a price limit allows the swap to stop early at the limit, so the quote is a
        partial fill instead of an error unless `allow_partial_fill` is set to False.
        """

        if allow_partial_fill is None:
            allow_partial_fill = sqrt_price_limit_x96 is not None

        hop = Hop(
            token_in=get_checksum_address(token_in),
            token_out=get_checksum_address(token_out),
            fee=fee,
        )
        hop_quote, _ = self._quote_hop(
            hop=hop,
            trade=TradeSpecification.exact_input(amount_in),
            state=self._resolve_state(hop, override_state),
            sqrt_price_limit_x96=sqrt_price_limit_x96,
            allow_partial_fill=allow_partial_fill,
        )
        return hop_quote

    def quote_exact_output_single(
        self,
        token_in: str,
        token_out: str,
        fee: Pip,
        amount_out: int,
        sqrt_price_limit_x96: SqrtPriceX96 | None = None,
        *,
        allow_partial_fill: bool | None = None,
        override_state: UniswapV3PoolState | None = None,
    ) -> HopQuote:
        """
        Quote an exact output swap through a single pool.
        """

        if allow_partial_fill is None:
            allow_partial_fill = sqrt_price_limit_x96 is not None

        hop = Hop(
            token_in=get_checksum_address(token_in),
            token_out=get_checksum_address(token_out),
            fee=fee,
        )
        hop_quote, _ = self._quote_hop(
            hop=hop,
            trade=TradeSpecification.exact_output(amount_out),
            state=self._resolve_state(hop, override_state),
            sqrt_price_limit_x96=sqrt_price_limit_x96,
            allow_partial_fill=allow_partial_fill,
        )
        return hop_quote
