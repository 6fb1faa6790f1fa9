"""
Configuration parameters for the liquidation auction engine.

Two layers:
- AuctionConfig: owner-mutable auction shape (duration, floor factor, bonus)
- EngineParameters: protocol constants for commit-reveal timing, protection
  heuristics and cleanup incentives

Both can be loaded from LIQAUCTION_* environment variables, optionally
sourced from a .env file.
"""

import os
from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional, Tuple

from dotenv import load_dotenv

from liqauction.core.errors import InvalidConfig


BASIS_POINTS = 10_000
PRICE_SCALE = 10**18

ENV_PREFIX = "LIQAUCTION_"


class FlashloanScope(str, Enum):
    """Whether a flashloan detection blocks every auction or only its own."""
    GLOBAL = "global"
    PER_AUCTION = "per_auction"


@dataclass
class AuctionConfig:
    """Owner-mutable auction configuration"""

    duration: int = 3600                 # Decay window in seconds
    min_price_factor: int = 5000         # Floor as bps of start price (50%)
    liquidation_bonus: int = 500         # Bonus in bps, reported to the position ledger

    def validate(self, require_nonzero: bool = False) -> None:
        """
        Check bounds.

        Args:
            require_nonzero: Apply the stricter rule used on owner updates,
                where every field must be nonzero.

        Raises:
            InvalidConfig
        """
        if self.duration <= 0:
            raise InvalidConfig(f"duration must be > 0, got {self.duration}")
        if not 0 < self.min_price_factor <= BASIS_POINTS:
            raise InvalidConfig(
                f"min_price_factor must be in (0, {BASIS_POINTS}], got {self.min_price_factor}"
            )
        if not 0 <= self.liquidation_bonus <= BASIS_POINTS:
            raise InvalidConfig(
                f"liquidation_bonus must be in [0, {BASIS_POINTS}], got {self.liquidation_bonus}"
            )
        if require_nonzero and self.liquidation_bonus == 0:
            raise InvalidConfig("liquidation_bonus must be nonzero")


@dataclass
class EngineParameters:
    """Protocol constants"""

    # Pricing
    price_scale: int = PRICE_SCALE
    max_price_age: int = 3600               # Oldest acceptable oracle quote (s)

    # Commit-reveal
    commit_duration: int = 120              # Mandatory blind window (s)
    reveal_duration: int = 600              # Reveal deadline after commit (s)

    # Protection
    min_bid_delay: int = 12                 # Cadence per auction and per bidder (s)
    max_price_impact: int = 500             # bps
    flashloan_threshold: int = 1_000_000 * PRICE_SCALE
    flashloan_cooldown_blocks: int = 5
    flashloan_scope: FlashloanScope = FlashloanScope.GLOBAL

    # Cleanup
    incentive_per_cleanup: int = 10**15
    max_cleanup_batch: int = 256

    def validate(self) -> None:
        if self.price_scale <= 0:
            raise InvalidConfig("price_scale must be > 0")
        if self.commit_duration < 0:
            raise InvalidConfig("commit_duration must be >= 0")
        if self.reveal_duration <= self.commit_duration:
            raise InvalidConfig("reveal_duration must exceed commit_duration")
        if not 0 <= self.max_price_impact <= BASIS_POINTS:
            raise InvalidConfig(f"max_price_impact must be in [0, {BASIS_POINTS}]")
        if self.min_bid_delay < 0 or self.flashloan_cooldown_blocks < 0:
            raise InvalidConfig("delays must be >= 0")
        if self.max_cleanup_batch <= 0:
            raise InvalidConfig("max_cleanup_batch must be > 0")


def _read_env(cls) -> dict:
    values = {}
    for f in fields(cls):
        raw = os.environ.get(ENV_PREFIX + f.name.upper())
        if raw is None:
            continue
        if f.name == "flashloan_scope":
            try:
                values[f.name] = FlashloanScope(raw.strip().lower())
            except ValueError:
                raise InvalidConfig(f"Unknown flashloan scope: {raw}") from None
        else:
            try:
                values[f.name] = int(raw.replace("_", ""))
            except ValueError:
                raise InvalidConfig(f"{ENV_PREFIX}{f.name.upper()} must be an integer, got {raw!r}") from None
    return values


def load_config(env_file: Optional[str] = None) -> Tuple[AuctionConfig, EngineParameters]:
    """
    Load configuration from the environment.

    Args:
        env_file: Optional .env file; existing environment variables win.

    Returns:
        (AuctionConfig, EngineParameters), both validated
    """
    if env_file:
        load_dotenv(env_file, override=False)

    auction_config = AuctionConfig(**_read_env(AuctionConfig))
    params = EngineParameters(**_read_env(EngineParameters))

    auction_config.validate()
    params.validate()
    return auction_config, params
