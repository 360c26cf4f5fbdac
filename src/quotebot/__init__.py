from .checksum_cache import get_checksum_address
from .config import PartialFillPolicy, settings
from .logging import logger
from .version import __version__

# isort: split

from . import exceptions
from .uniswap import (
    Hop,
    HopQuote,
    InMemoryPoolStateSource,
    JsonFilePoolStateSource,
    MultiHopQuote,
    SwapMode,
    SwapStatus,
    TradeSpecification,
    UniswapV3PoolLocator,
    UniswapV3PoolSimulationResult,
    UniswapV3PoolState,
    UniswapV3Quoter,
    V3Path,
    Web3PoolStateSource,
    encode_v3_path,
    simulate_swap,
)

__all__ = (
    "Hop",
    "HopQuote",
    "InMemoryPoolStateSource",
    "JsonFilePoolStateSource",
    "MultiHopQuote",
    "PartialFillPolicy",
    "SwapMode",
    "SwapStatus",
    "TradeSpecification",
    "UniswapV3PoolLocator",
    "UniswapV3PoolSimulationResult",
    "UniswapV3PoolState",
    "UniswapV3Quoter",
    "V3Path",
    "Web3PoolStateSource",
    "__version__",
    "encode_v3_path",
    "exceptions",
    "get_checksum_address",
    "logger",
    "settings",
    "simulate_swap",
)
