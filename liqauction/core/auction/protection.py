"""
Protection Guard - Anti-manipulation heuristics for bid execution.

Wraps both the direct-bid and the reveal-bid paths. Checks run in order:

1. Same block: one protected bid per auction per block
2. Liveness: a closed auction, or one whose price has decayed to 0, is
   refused with AuctionInactiveOrExpired
3. Cadence: at least MIN_BID_DELAY seconds between protected bids
4. Stored impact: if the *previous* protected bid moved the price more than
   MAX_PRICE_IMPACT, the next attempt is refused (lagged gate)
5. Flashloan: a bidder holding more than FLASHLOAN_THRESHOLD of native
   balance, not counting the value attached to the bid, triggers a detection;
   every bid in the scope is then refused for FLASHLOAN_COOLDOWN_BLOCKS
6. Rate limit: MIN_BID_DELAY seconds between attempts by the same bidder

After a bid settles, record_settlement() updates cadence, price impact and
the bidder's reputation. Reputation is advisory and never gates execution.

Flashloan state is keyed by FlashloanScope: GLOBAL shares one detection slot
across every auction, PER_AUCTION keeps one slot per auction.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Optional

from liqauction.core.auction.ledger import Auction
from liqauction.core.auction.price_curve import compute_price
from liqauction.core.config import BASIS_POINTS, EngineParameters, FlashloanScope
from liqauction.core.errors import (
    AuctionInactiveOrExpired,
    BidTooFrequent,
    ExcessiveImpact,
    FlashloanCooldown,
    FlashloanSuspected,
    ProtectionRejection,
    RateLimited,
    SameBlockBid,
)
from liqauction.core.events import EventLog, FlashloanDetected, MevAttemptDetected
from liqauction.core.interfaces import NATIVE, AssetTransfer
from liqauction.crypto import bytes_to_hex
from liqauction.utils.logger import get_logger

logger = get_logger("protection")

GLOBAL_FLASHLOAN_KEY = 0


@dataclass
class MevProtectionRecord:
    """Cadence and impact tracking for one auction."""
    last_bid_time: Optional[int] = None
    last_bid_block: Optional[int] = None
    last_price: Optional[int] = None
    price_impact: int = 0          # bps

    @property
    def has_prior_bid(self) -> bool:
        return self.last_bid_block is not None


@dataclass
class FlashloanState:
    flashloan_block: Optional[int] = None

    def in_cooldown(self, block: int, cooldown_blocks: int) -> bool:
        return self.flashloan_block is not None and block <= self.flashloan_block + cooldown_blocks


class ProtectionGuard:
    """
    Gate run before settlement.

    Attributes:
        records: auction_id -> MevProtectionRecord
        flashloan: scope key -> FlashloanState
        last_activity: bidder -> last passing attempt timestamp
        reputation: bidder -> advisory score
    """

    def __init__(
        self,
        clock,
        bank: AssetTransfer,
        params: Optional[EngineParameters] = None,
        event_log: Optional[EventLog] = None,
    ):
        self.clock = clock
        self.bank = bank
        self.params = params or EngineParameters()
        self.event_log = event_log or EventLog()

        self.records: Dict[int, MevProtectionRecord] = {}
        self.flashloan: Dict[int, FlashloanState] = defaultdict(FlashloanState)
        self.last_activity: Dict[bytes, int] = {}
        self.reputation: Dict[bytes, int] = defaultdict(int)

    # =========================================================================
    # Gate
    # =========================================================================

    def check(self, auction: Auction, bidder: bytes, attached_value: int = 0, price: int = 0) -> None:
        """
        Run every heuristic for a bid attempt.

        Args:
            auction: Target auction
            bidder: Bidder address
            attached_value: Native value sent with the bid, excluded from the
                flashloan balance check
            price: Current price, reported in rejection events

        Raises:
            AuctionInactiveOrExpired: closed auction or price already 0
            ProtectionRejection subclass on the first failing heuristic
        """
        try:
            self._check_same_block(auction.auction_id)
            self._check_live(auction)
            self._check_cadence(auction.auction_id)
            self._check_stored_impact(auction.auction_id)
            self._check_flashloan(auction.auction_id, bidder, attached_value)
            self._check_rate_limit(bidder)
        except ProtectionRejection as e:
            self.event_log.emit(MevAttemptDetected(
                block_number=self.clock.block_number(),
                timestamp=self.clock.timestamp(),
                auction_id=auction.auction_id,
                bidder=bidder,
                reason=type(e).__name__,
                price=price,
            ))
            logger.warning(f"Bid on auction {auction.auction_id} from {bytes_to_hex(bidder)[:10]} "
                           f"rejected: {e}")
            raise

        self.last_activity[bidder] = self.clock.timestamp()

    def _check_same_block(self, auction_id: int) -> None:
        # A same-block repeat also breaks cadence; report the narrower reason
        record = self.records.get(auction_id)
        if record is not None and record.has_prior_bid and self.clock.block_number() == record.last_bid_block:
            raise SameBlockBid(f"Auction {auction_id} already bid in block {record.last_bid_block}", auction_id)

    def _check_live(self, auction: Auction) -> None:
        elapsed = self.clock.timestamp() - auction.start_time
        if not auction.active or compute_price(elapsed, auction.start_price, auction.floor_price, auction.duration) == 0:
            raise AuctionInactiveOrExpired(f"Auction {auction.auction_id} is not active", auction.auction_id)

    def _check_cadence(self, auction_id: int) -> None:
        record = self.records.get(auction_id)
        if record is None or not record.has_prior_bid:
            return

        earliest = record.last_bid_time + self.params.min_bid_delay
        if self.clock.timestamp() < earliest:
            raise BidTooFrequent(f"Next bid on auction {auction_id} allowed at {earliest}", auction_id)

    def _check_stored_impact(self, auction_id: int) -> None:
        record = self.records.get(auction_id)
        if record is not None and record.price_impact > self.params.max_price_impact:
            raise ExcessiveImpact(
                f"Previous bid moved price {record.price_impact} bps "
                f"(max {self.params.max_price_impact})",
                auction_id,
            )

    def _check_flashloan(self, auction_id: int, bidder: bytes, attached_value: int) -> None:
        block = self.clock.block_number()
        state = self.flashloan[self._flashloan_key(auction_id)]

        if state.in_cooldown(block, self.params.flashloan_cooldown_blocks):
            raise FlashloanCooldown(
                f"Flashloan detected at block {state.flashloan_block}, "
                f"cooldown until {state.flashloan_block + self.params.flashloan_cooldown_blocks}",
                auction_id,
            )

        balance = self.bank.balance_of(NATIVE, bidder) - attached_value
        if balance > self.params.flashloan_threshold:
            state.flashloan_block = block
            self.event_log.emit(FlashloanDetected(
                block_number=block,
                timestamp=self.clock.timestamp(),
                auction_id=auction_id,
                bidder=bidder,
                balance=balance,
            ))
            raise FlashloanSuspected(f"Balance spike {balance} above threshold", auction_id)

    def _check_rate_limit(self, bidder: bytes) -> None:
        last = self.last_activity.get(bidder)
        if last is not None and self.clock.timestamp() < last + self.params.min_bid_delay:
            raise RateLimited(f"Bidder may act again at {last + self.params.min_bid_delay}")

    def _flashloan_key(self, auction_id: int) -> int:
        if self.params.flashloan_scope == FlashloanScope.PER_AUCTION:
            return auction_id
        return GLOBAL_FLASHLOAN_KEY

    # =========================================================================
    # Post-settlement
    # =========================================================================

    def record_settlement(self, auction: Auction, bidder: bytes, price_paid: int) -> MevProtectionRecord:
        """
        Update tracking after a protected bid settled.

        Impact is the bps drop from the previous protected bid's price (or
        the start price for the first one) to the price just paid.
        """
        record = self.records.setdefault(auction.auction_id, MevProtectionRecord())
        previous = record.last_price if record.last_price is not None else auction.start_price

        if previous > 0 and price_paid < previous:
            impact = (previous - price_paid) * BASIS_POINTS // previous
        else:
            impact = 0

        record.last_bid_time = self.clock.timestamp()
        record.last_bid_block = self.clock.block_number()
        record.last_price = price_paid
        record.price_impact = impact

        if impact < self.params.max_price_impact // 2:
            self.reputation[bidder] += 1
        else:
            self.reputation[bidder] = max(0, self.reputation[bidder] - 1)

        logger.debug(f"Auction {auction.auction_id}: impact {impact} bps, "
                     f"reputation of {bytes_to_hex(bidder)[:10]} now {self.reputation[bidder]}")
        return record

    # =========================================================================
    # Queries
    # =========================================================================

    def get_record(self, auction_id: int) -> MevProtectionRecord:
        return self.records.get(auction_id, MevProtectionRecord())

    def get_reputation(self, bidder: bytes) -> int:
        return self.reputation.get(bidder, 0)

    def flashloan_block(self, auction_id: int = GLOBAL_FLASHLOAN_KEY) -> Optional[int]:
        return self.flashloan[self._flashloan_key(auction_id)].flashloan_block
