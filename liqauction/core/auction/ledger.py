"""
Auction Ledger - Canonical auction records and lifecycle transitions.

Lifecycle:
---------
    Created -> Active -> {Settled | Expired}

An auction is created active. The `active` flag flips to False exactly once,
either when a bid settles or when cleanup closes an expired auction. There
are no transitions out of Settled or Expired.

Expiry is structural: once elapsed time passes the duration the curve
returns zero and every bid fails. The record stays `active` until cleanup
flips it.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

from liqauction.core.auction.price_curve import compute_floor_price, compute_price
from liqauction.core.config import AuctionConfig
from liqauction.core.errors import (
    AuctionAlreadyActive,
    AuctionInactiveOrExpired,
    InvalidParameters,
    NoCollateral,
)
from liqauction.core.events import AuctionOpened, EventLog
from liqauction.core.interfaces import Asset
from liqauction.crypto import bytes_to_hex
from liqauction.utils.logger import get_logger

logger = get_logger("ledger")


class AuctionStatus(IntEnum):
    """Derived lifecycle state of an auction."""
    ACTIVE = 0            # Accepting bids
    EXPIRED_PENDING = 1   # Past its window, awaiting cleanup
    SETTLED = 2           # Won by a bidder
    EXPIRED = 3           # Closed by cleanup


@dataclass
class Auction:
    """
    A single descending-price auction.

    Every field except `active` is a snapshot taken at open time.

    Attributes:
        auction_id: Monotonically increasing identifier
        debtor: Address of the liquidated position
        asset: Collateral being sold
        debt_amount: Debt covered by the sale
        collateral_amount: Units of collateral for sale
        start_time: Decay window start (seconds)
        duration: Decay window length (seconds)
        start_price: Per-unit price at start_time
        floor_price: Per-unit price at start_time + duration
        active: Cleared once on settlement or expiry
    """
    auction_id: int
    debtor: bytes
    asset: Asset
    debt_amount: int
    collateral_amount: int
    start_time: int
    duration: int
    start_price: int
    floor_price: int
    active: bool = True
    settled: bool = False

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration


class AuctionLedger:
    """
    Owns every auction record.

    Attributes:
        auctions: auction_id -> Auction
        user_auctions: (debtor, asset) -> latest auction_id
    """

    def __init__(self, clock, event_log: Optional[EventLog] = None):
        self.clock = clock
        self.event_log = event_log or EventLog()

        self.auctions: Dict[int, Auction] = {}
        self.user_auctions: Dict[Tuple[bytes, Asset], int] = {}
        self._next_id = 1

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(
        self,
        debtor: bytes,
        asset: Asset,
        debt_amount: int,
        collateral_amount: int,
        start_price: int,
        cfg: AuctionConfig,
    ) -> int:
        """
        Open an auction for a seized position.

        Args:
            debtor: Position owner
            asset: Collateral asset
            debt_amount: Outstanding debt snapshot
            collateral_amount: Seized collateral snapshot
            start_price: Starting per-unit price
            cfg: Current auction configuration

        Returns:
            The new auction id

        Raises:
            InvalidParameters: zero debt or zero start price
            NoCollateral: zero collateral
            AuctionAlreadyActive: debtor already has a live auction for asset
        """
        if debt_amount == 0 or start_price == 0:
            raise InvalidParameters("debt_amount and start_price must be nonzero")
        if collateral_amount == 0:
            raise NoCollateral("No collateral to auction")

        existing = self.user_auctions.get((debtor, asset))
        if existing is not None and self.auctions[existing].active:
            raise AuctionAlreadyActive(
                f"Auction {existing} already active for this position", existing
            )

        auction_id = self._next_id
        self._next_id += 1

        now = self.clock.timestamp()
        floor_price = compute_floor_price(start_price, cfg.min_price_factor)

        self.auctions[auction_id] = Auction(
            auction_id=auction_id,
            debtor=debtor,
            asset=asset,
            debt_amount=debt_amount,
            collateral_amount=collateral_amount,
            start_time=now,
            duration=cfg.duration,
            start_price=start_price,
            floor_price=floor_price,
        )
        self.user_auctions[(debtor, asset)] = auction_id

        self.event_log.emit(AuctionOpened(
            block_number=self.clock.block_number(),
            timestamp=now,
            auction_id=auction_id,
            debtor=debtor,
            asset=str(asset),
            debt_amount=debt_amount,
            collateral_amount=collateral_amount,
            start_price=start_price,
            floor_price=floor_price,
        ))
        logger.info(f"Auction {auction_id} opened for {bytes_to_hex(debtor)[:10]}: "
                    f"{collateral_amount} {asset} from {start_price} down to {floor_price}")
        return auction_id

    def close(self, auction_id: int, settled: bool = False) -> Auction:
        """
        Flip an auction to inactive.

        Raises:
            AuctionInactiveOrExpired: unknown or already closed
        """
        auction = self.auctions.get(auction_id)
        if auction is None or not auction.active:
            raise AuctionInactiveOrExpired(f"Auction {auction_id} is not active", auction_id)

        auction.active = False
        auction.settled = settled
        logger.debug(f"Auction {auction_id} closed ({'settled' if settled else 'expired'})")
        return auction

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, auction_id: int) -> Optional[Auction]:
        return self.auctions.get(auction_id)

    def current_price(self, auction_id: int) -> int:
        """Price right now; 0 for unknown or inactive auctions."""
        auction = self.auctions.get(auction_id)
        if auction is None or not auction.active:
            return 0
        elapsed = self.clock.timestamp() - auction.start_time
        return compute_price(elapsed, auction.start_price, auction.floor_price, auction.duration)

    def is_expired(self, auction_id: int) -> bool:
        """True once the decay window has fully elapsed, regardless of `active`."""
        auction = self.auctions.get(auction_id)
        if auction is None:
            return False
        return self.clock.timestamp() >= auction.end_time

    def status(self, auction_id: int) -> Optional[AuctionStatus]:
        auction = self.auctions.get(auction_id)
        if auction is None:
            return None
        if auction.active:
            return AuctionStatus.EXPIRED_PENDING if self.is_expired(auction_id) else AuctionStatus.ACTIVE
        return AuctionStatus.SETTLED if auction.settled else AuctionStatus.EXPIRED

    def active_ids(self) -> List[int]:
        """Ids whose `active` flag is still set, including ones awaiting cleanup."""
        return [a.auction_id for a in self.auctions.values() if a.active]

    def auction_for(self, debtor: bytes, asset: Asset) -> Optional[int]:
        """Latest auction opened for a (debtor, asset) position."""
        return self.user_auctions.get((debtor, asset))

    def __len__(self) -> int:
        return len(self.auctions)
