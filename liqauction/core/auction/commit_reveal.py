"""
Commit-Reveal Registry - Sealed bids for descending-price auctions.

This module implements the two-phase bidding path:
1. Commit: a bidder stores keccak256(bidder, auction_id, max_price, nonce)
2. Reveal: after a mandatory blind window the bidder discloses max_price and
   nonce; a matching reveal is consumed exactly once and turns into a bid

Timing per record:

    commit_time ........ commit_time + COMMIT_DURATION ........ reveal_deadline
         |  RevealTooEarly  |            reveal window              | RevealExpired

Benefits:
- Bid intent stays hidden until the blind window has passed
- Watchers cannot copy a ceiling price out of the pending pool

Commit identifiers bind a monotonically increasing sequence number, so two
commits from the same bidder for the same auction in the same second get
distinct identifiers instead of overwriting each other.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from liqauction.core.auction.ledger import AuctionLedger
from liqauction.core.config import EngineParameters
from liqauction.core.errors import (
    HashMismatch,
    InvalidCommit,
    RevealExpired,
    RevealTooEarly,
)
from liqauction.core.events import BidCommitted, BidRevealed, EventLog
from liqauction.crypto import (
    ZERO_HASH,
    bytes_to_hex,
    create_bid_commitment,
    derive_commit_id,
)
from liqauction.utils.logger import get_logger

logger = get_logger("commit_reveal")


@dataclass
class CommitRecord:
    """A stored sealed bid."""
    commit_id: bytes
    commit_hash: bytes
    bidder: bytes
    auction_id: int
    commit_time: int
    reveal_deadline: int
    revealed: bool = False

    def reveal_opens_at(self, commit_duration: int) -> int:
        return self.commit_time + commit_duration


class CommitRegistry:
    """Stores commitments and verifies reveals."""

    def __init__(
        self,
        ledger: AuctionLedger,
        params: Optional[EngineParameters] = None,
        event_log: Optional[EventLog] = None,
    ):
        self.ledger = ledger
        self.clock = ledger.clock
        self.params = params or EngineParameters()
        self.event_log = event_log or ledger.event_log

        self.commits: Dict[bytes, CommitRecord] = {}
        self._sequence = 0

    # =========================================================================
    # Commit Phase
    # =========================================================================

    def commit(self, bidder: bytes, auction_id: int, commit_hash: bytes) -> bytes:
        """
        Store a sealed bid.

        Args:
            bidder: Bidder address
            auction_id: Target auction
            commit_hash: 32-byte commitment from create_bid_commitment

        Returns:
            The commit identifier needed for the reveal

        Raises:
            InvalidCommit: zero hash or inactive auction
        """
        if commit_hash == ZERO_HASH:
            raise InvalidCommit("Commitment must be nonzero", auction_id)

        auction = self.ledger.get(auction_id)
        if auction is None or not auction.active:
            raise InvalidCommit(f"Auction {auction_id} is not active", auction_id)

        now = self.clock.timestamp()
        self._sequence += 1
        commit_id = derive_commit_id(bidder, auction_id, now, self._sequence)

        record = CommitRecord(
            commit_id=commit_id,
            commit_hash=commit_hash,
            bidder=bidder,
            auction_id=auction_id,
            commit_time=now,
            reveal_deadline=now + self.params.reveal_duration,
        )
        self.commits[commit_id] = record

        self.event_log.emit(BidCommitted(
            block_number=self.clock.block_number(),
            timestamp=self.clock.timestamp(),
            auction_id=auction_id,
            bidder=bidder,
            commit_id=commit_id,
            reveal_deadline=record.reveal_deadline,
        ))
        logger.debug(f"Commit {bytes_to_hex(commit_id)[:10]} from {bytes_to_hex(bidder)[:10]} "
                     f"on auction {auction_id}, reveal until {record.reveal_deadline}")
        return commit_id

    # =========================================================================
    # Reveal Phase
    # =========================================================================

    def check_reveal_window(self, commit_id: bytes, auction_id: int) -> CommitRecord:
        """
        Check that a commitment can be revealed right now, without consuming it.

        Raises:
            InvalidCommit: unknown or already revealed
            RevealTooEarly: blind window still running
            RevealExpired: past the reveal deadline
        """
        record = self.commits.get(commit_id)
        if record is None:
            raise InvalidCommit("No commitment found", auction_id)
        if record.revealed:
            raise InvalidCommit("Commitment already revealed", auction_id)

        now = self.clock.timestamp()
        opens = record.reveal_opens_at(self.params.commit_duration)
        if now < opens:
            raise RevealTooEarly(f"Reveal opens at {opens}, now {now}", auction_id)
        if now > record.reveal_deadline:
            raise RevealExpired(f"Reveal deadline {record.reveal_deadline} passed", auction_id)
        return record

    def verify_and_consume_reveal(
        self,
        commit_id: bytes,
        bidder: bytes,
        auction_id: int,
        max_price: int,
        nonce: int,
    ) -> bool:
        """
        Check a reveal against its commitment and consume it.

        Returns True at most once per record; every later call raises.

        Raises:
            InvalidCommit, RevealTooEarly, RevealExpired: see check_reveal_window
            HashMismatch: disclosed values (including bidder and auction)
                do not match the commitment
        """
        record = self.check_reveal_window(commit_id, auction_id)

        expected = create_bid_commitment(bidder, auction_id, max_price, nonce)
        if expected != record.commit_hash:
            logger.warning(f"Reveal mismatch for commit {bytes_to_hex(commit_id)[:10]} "
                           f"from {bytes_to_hex(bidder)[:10]}")
            raise HashMismatch("Reveal does not match commitment", auction_id)

        record.revealed = True

        self.event_log.emit(BidRevealed(
            block_number=self.clock.block_number(),
            timestamp=self.clock.timestamp(),
            auction_id=auction_id,
            bidder=bidder,
            commit_id=commit_id,
            max_price=max_price,
        ))
        logger.debug(f"Valid reveal from {bytes_to_hex(bidder)[:10]}: max_price={max_price}")
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, commit_id: bytes) -> Optional[CommitRecord]:
        return self.commits.get(commit_id)

    def commits_for(self, auction_id: int) -> List[CommitRecord]:
        return [r for r in self.commits.values() if r.auction_id == auction_id]

    def unrevealed(self, auction_id: int) -> List[CommitRecord]:
        """Commitments never disclosed."""
        return [r for r in self.commits_for(auction_id) if not r.revealed]
