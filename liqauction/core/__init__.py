"""
liqauction core: auction components, collaborators and the engine facade.
"""

from liqauction.core.config import (
    AuctionConfig,
    EngineParameters,
    FlashloanScope,
    load_config,
    BASIS_POINTS,
    PRICE_SCALE,
)
from liqauction.core.clock import ManualClock, SystemClock
from liqauction.core.interfaces import (
    NATIVE,
    Asset,
    AssetTransfer,
    CollateralCustody,
    FungibleAsset,
    NativeAsset,
    PriceOracle,
    PriceQuote,
)
from liqauction.core.bank import InMemoryAssetBank
from liqauction.core.events import EventLog
from liqauction.core.engine import LiquidationAuctionEngine, NonReentrantLock

__all__ = [
    "AuctionConfig",
    "EngineParameters",
    "FlashloanScope",
    "load_config",
    "BASIS_POINTS",
    "PRICE_SCALE",
    "ManualClock",
    "SystemClock",
    "NATIVE",
    "Asset",
    "AssetTransfer",
    "CollateralCustody",
    "FungibleAsset",
    "NativeAsset",
    "PriceOracle",
    "PriceQuote",
    "InMemoryAssetBank",
    "EventLog",
    "LiquidationAuctionEngine",
    "NonReentrantLock",
]
