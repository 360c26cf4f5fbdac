import enum
import tomllib
from pathlib import Path

import tomlkit
from pydantic import PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

from quotebot.logging import logger

CONFIG_DIR = Path.home() / ".config" / "quotebot"
CONFIG_FILE = CONFIG_DIR / "config.toml"


class PartialFillPolicy(enum.StrEnum):
    """
    Controls how a multi-hop quote treats a hop that cannot be completely filled.

    ABORT raises `IncompleteSwap` for the hop. PROPAGATE passes the partially filled amount to the
    next hop and marks the hop quote as a partial fill. The stateless multi-hop quotes still raise
    `IncompleteSwap` for a partial fill, since a bare amount cannot show it.
    """

    ABORT = "abort"
    PROPAGATE = "propagate"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="QUOTEBOT_")

    # Safety valve for the curve walk. A walk through zero-liquidity regions at tick spacing 1
    # visits one word boundary per 256 ticks, roughly 7,000 steps across the full tick range.
    max_swap_steps: PositiveInt = 10_000
    partial_fill_policy: PartialFillPolicy = PartialFillPolicy.ABORT
    lib_cache_size: PositiveInt = 1024
    # Number of bitmap words on each side of the current word fetched by live state sources
    state_word_radius: int = 2


def load_config_from_file(config_path: Path) -> Settings:
    # Keyword arguments take priority over environment values
    return Settings(
        **tomllib.loads(
            config_path.read_text(),
        ),
    )


def save_config_to_file(config: Settings, config_path: Path = CONFIG_FILE) -> None:
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        tomlkit.dumps(
            config.model_dump(mode="json"),
        ),
    )
    logger.info(f"Saved configuration to {config_path}.")


if CONFIG_FILE.exists():
    settings = load_config_from_file(CONFIG_FILE)
    logger.debug(f"Loaded configuration from {CONFIG_FILE}.")
else:
    settings = Settings()
