from . import v3_libraries as v3_libraries
from .v3_path import V3Path, encode_v3_path
from .v3_quoter import UniswapV3Quoter
from .v3_sources import (
    InMemoryPoolStateSource,
    JsonFilePoolStateSource,
    PoolLocator,
    PoolStateSource,
    SparsePoolStateSource,
    UniswapV3PoolLocator,
    Web3PoolStateSource,
)
from .v3_swap import simulate_swap
from .v3_types import (
    Hop,
    HopQuote,
    MultiHopQuote,
    SwapMode,
    SwapStatus,
    TradeSpecification,
    UniswapV3BitmapAtWord,
    UniswapV3LiquidityAtTick,
    UniswapV3PoolSimulationResult,
    UniswapV3PoolState,
)

__all__ = (
    "Hop",
    "HopQuote",
    "InMemoryPoolStateSource",
    "JsonFilePoolStateSource",
    "MultiHopQuote",
    "PoolLocator",
    "PoolStateSource",
    "SparsePoolStateSource",
    "SwapMode",
    "SwapStatus",
    "TradeSpecification",
    "UniswapV3BitmapAtWord",
    "UniswapV3LiquidityAtTick",
    "UniswapV3PoolLocator",
    "UniswapV3PoolSimulationResult",
    "UniswapV3PoolState",
    "UniswapV3Quoter",
    "V3Path",
    "Web3PoolStateSource",
    "encode_v3_path",
    "simulate_swap",
)
