from collections.abc import Iterable, Sequence

from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from quotebot.checksum_cache import get_checksum_address
from quotebot.exceptions import MalformedRoute
from quotebot.uniswap.v3_types import Hop, Pip

# ref: https://github.com/Uniswap/v3-periphery/blob/main/contracts/libraries/Path.sol

ADDRESS_BYTES = 20
FEE_BYTES = 3
NEXT_OFFSET = ADDRESS_BYTES + FEE_BYTES
POP_OFFSET = NEXT_OFFSET + ADDRESS_BYTES
MULTIPLE_POOLS_MIN_LENGTH = POP_OFFSET + NEXT_OFFSET


class V3Path:
    """
    A read-only view of the path bytes used by the Uniswap V3 Router and Quoter contracts. `path`
    is a close-packed encoding of 20 byte token addresses, interleaved with 3 byte fees:

        token0 | fee0 | token1 | fee1 | token2 ...

    The path is validated on construction, so a path ending part way through a hop is rejected
    before anything is decoded.
    """

    __slots__ = ("_path",)

    def __init__(self, path: bytes | str) -> None:
        try:
            path = HexBytes(path)
        except (TypeError, ValueError) as exc:
            raise MalformedRoute(message=f"Path could not be read as bytes: {exc}") from exc

        if len(path) < POP_OFFSET:
            raise MalformedRoute(message=f"Path of {len(path)} bytes does not hold a complete hop.")
        if (len(path) - ADDRESS_BYTES) % NEXT_OFFSET != 0:
            raise MalformedRoute(message=f"Path of {len(path)} bytes ends with a partial hop.")

        self._path = bytes(path)

    def __bytes__(self) -> bytes:
        return self._path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, V3Path):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash(self._path)

    def __len__(self) -> int:
        return len(self._path)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({HexBytes(self._path).to_0x_hex()})"

    def has_multiple_pools(self) -> bool:
        return len(self._path) >= MULTIPLE_POOLS_MIN_LENGTH

    def num_pools(self) -> int:
        return (len(self._path) - ADDRESS_BYTES) // NEXT_OFFSET

    def decode_first_pool(self) -> tuple[ChecksumAddress, ChecksumAddress, Pip]:
        """
        Decode the first pool in the path, returning (token_a, token_b, fee).
        """

        token_a = get_checksum_address(HexBytes(self._path[:ADDRESS_BYTES]).to_0x_hex())
        fee = int.from_bytes(self._path[ADDRESS_BYTES:NEXT_OFFSET], byteorder="big")
        token_b = get_checksum_address(HexBytes(self._path[NEXT_OFFSET:POP_OFFSET]).to_0x_hex())
        return token_a, token_b, fee

    def get_first_pool(self) -> "V3Path":
        """
        Return the segment of the path holding only the first pool.
        """

        return V3Path(self._path[:POP_OFFSET])

    def skip_token(self) -> "V3Path":
        """
        Return the path with the first token and fee removed.
        """

        if not self.has_multiple_pools():
            raise MalformedRoute(message="Cannot skip the last token of a single pool path.")
        return V3Path(self._path[NEXT_OFFSET:])

    def hops(self) -> tuple[Hop, ...]:
        """
        Decode every hop in the path, in swap order.
        """

        path = self
        hops: list[Hop] = []
        for hop_index in range(self.num_pools()):
            if hop_index != 0:
                path = path.skip_token()
            token_in, token_out, fee = path.decode_first_pool()
            hops.append(Hop(token_in=token_in, token_out=token_out, fee=fee))
        return tuple(hops)


def encode_v3_path(tokens: Sequence[str], fees: Iterable[Pip]) -> V3Path:
    """
    Encode a sequence of N token addresses and N-1 fees into a V3 path.
    """

    fees = list(fees)
    if len(tokens) != len(fees) + 1:
        raise MalformedRoute(
            message=f"A path with {len(tokens)} tokens requires {len(tokens) - 1} fees."
        )

    encoded = HexBytes(tokens[0])
    for fee, token in zip(fees, tokens[1:], strict=True):
        encoded += fee.to_bytes(length=FEE_BYTES, byteorder="big") + HexBytes(token)
    return V3Path(encoded)
