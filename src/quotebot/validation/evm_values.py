from typing import Annotated, TypeAlias

from pydantic import Field

from quotebot.constants import (
    MAX_INT128,
    MAX_UINT128,
    MAX_UINT256,
    MIN_INT128,
    MIN_UINT128,
    MIN_UINT256,
)

ValidatedInt128: TypeAlias = Annotated[int, Field(strict=True, ge=MIN_INT128, le=MAX_INT128)]
ValidatedUint128: TypeAlias = Annotated[int, Field(strict=True, ge=MIN_UINT128, le=MAX_UINT128)]
ValidatedUint256: TypeAlias = Annotated[int, Field(strict=True, ge=MIN_UINT256, le=MAX_UINT256)]
