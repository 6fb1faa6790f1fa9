"""
Liquidation Auction Module.

This module provides the descending-price auction components:
- Price curve (linear decay with a floor)
- Auction ledger and lifecycle
- Commit-reveal sealed bidding
- MEV / flashloan protection guard
- Settlement and cleanup incentives
"""

from liqauction.core.auction.price_curve import (
    compute_price,
    compute_floor_price,
    price_schedule,
)

from liqauction.core.auction.ledger import (
    Auction,
    AuctionLedger,
    AuctionStatus,
)

from liqauction.core.auction.commit_reveal import (
    CommitRecord,
    CommitRegistry,
)

from liqauction.core.auction.protection import (
    FlashloanState,
    MevProtectionRecord,
    ProtectionGuard,
)

from liqauction.core.auction.settlement import (
    Settlement,
    SettlementExecutor,
)

from liqauction.core.auction.cleanup import CleanupIncentive

__all__ = [
    # Pricing
    "compute_price",
    "compute_floor_price",
    "price_schedule",
    # Ledger
    "Auction",
    "AuctionLedger",
    "AuctionStatus",
    # Commit-Reveal
    "CommitRecord",
    "CommitRegistry",
    # Protection
    "FlashloanState",
    "MevProtectionRecord",
    "ProtectionGuard",
    # Settlement
    "Settlement",
    "SettlementExecutor",
    "CleanupIncentive",
]
