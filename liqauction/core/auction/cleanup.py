"""
Cleanup Incentive - Paid closure of expired auctions.

Expired auctions stay `active` until someone closes them. Anyone may do so
and is paid INCENTIVE_PER_CLEANUP per auction from a dedicated native
reserve. The reserve is kept apart from auction collateral held by the
engine, so incentives can never be paid out of collateral. A cleanup that
cannot pay the caller in full closes nothing.
"""

from typing import Iterable, List, Optional, Tuple

from liqauction.core.auction.ledger import AuctionLedger
from liqauction.core.config import EngineParameters
from liqauction.core.errors import (
    AuctionError,
    AuctionInactiveOrExpired,
    AuctionNotExpired,
    InvalidParameters,
    TransferFailed,
)
from liqauction.core.events import AuctionExpired, EventLog
from liqauction.core.interfaces import NATIVE, AssetTransfer
from liqauction.crypto import bytes_to_hex
from liqauction.utils.logger import get_logger

logger = get_logger("cleanup")


class CleanupIncentive:
    """Closes expired auctions and pays the caller."""

    def __init__(
        self,
        ledger: AuctionLedger,
        bank: AssetTransfer,
        params: Optional[EngineParameters] = None,
        event_log: Optional[EventLog] = None,
    ):
        self.ledger = ledger
        self.clock = ledger.clock
        self.bank = bank
        self.params = params or EngineParameters()
        self.event_log = event_log or ledger.event_log

        self.reserve: int = 0
        self.total_paid: int = 0
        self.total_cleaned: int = 0

    # =========================================================================
    # Reserve
    # =========================================================================

    def fund(self, frm: bytes, amount: int) -> int:
        """Move native funds from `frm` into the incentive reserve."""
        if amount <= 0:
            raise InvalidParameters("Funding amount must be > 0")
        if not self.bank.pull_in(NATIVE, frm, amount):
            raise TransferFailed(f"Could not pull {amount} into the incentive reserve")
        self.reserve += amount
        logger.info(f"Incentive reserve funded with {amount} by {bytes_to_hex(frm)[:10]}, now {self.reserve}")
        return self.reserve

    def _pay(self, caller: bytes, owed: int) -> int:
        """
        Pay exactly `owed` from the reserve.

        Raises:
            TransferFailed: reserve short of `owed`, or the transfer failed
        """
        if owed == 0:
            return 0
        if self.reserve < owed:
            raise TransferFailed(f"Incentive reserve {self.reserve} cannot cover {owed}")

        # Debited before the transfer; restored if it fails
        self.reserve -= owed
        try:
            ok = self.bank.transfer_out(NATIVE, caller, owed)
        except AuctionError:
            self.reserve += owed
            raise
        except Exception as e:
            self.reserve += owed
            raise TransferFailed(f"Incentive payment of {owed} to {bytes_to_hex(caller)[:10]} raised: {e}") from e
        if not ok:
            self.reserve += owed
            raise TransferFailed(f"Incentive payment of {owed} to {bytes_to_hex(caller)[:10]} failed")

        self.total_paid += owed
        return owed

    # =========================================================================
    # Cleanup
    # =========================================================================

    def _is_eligible(self, auction_id: int) -> bool:
        auction = self.ledger.get(auction_id)
        return auction is not None and auction.active and self.ledger.is_expired(auction_id)

    def _expire_and_pay(self, caller: bytes, auction_ids: List[int]) -> int:
        """
        Close `auction_ids`, pay the caller, then announce the closures.

        All or nothing: if the payout fails the auctions are reopened and no
        AuctionExpired event is emitted.
        """
        incentive = self.params.incentive_per_cleanup
        owed = len(auction_ids) * incentive
        if self.reserve < owed:
            raise TransferFailed(f"Incentive reserve {self.reserve} cannot cover {owed}")

        closed = [self.ledger.close(auction_id, settled=False) for auction_id in auction_ids]
        try:
            paid = self._pay(caller, owed)
        except AuctionError:
            for auction in closed:
                auction.active = True
            raise

        for auction_id in auction_ids:
            self.event_log.emit(AuctionExpired(
                block_number=self.clock.block_number(),
                timestamp=self.clock.timestamp(),
                auction_id=auction_id,
                cleaner=caller,
                incentive=incentive,
            ))
        self.total_cleaned += len(auction_ids)
        return paid

    def clean_expired(self, caller: bytes, auction_ids: Iterable[int]) -> Tuple[int, int]:
        """
        Close every active-and-expired auction in the batch.

        Unknown, inactive and still-running auctions are skipped. Duplicate
        ids count once.

        Returns:
            (cleaned_count, incentive_paid)

        Raises:
            InvalidParameters: batch longer than max_cleanup_batch
            TransferFailed: the incentive could not be paid; nothing is closed
        """
        auction_ids = list(auction_ids)
        if len(auction_ids) > self.params.max_cleanup_batch:
            raise InvalidParameters(
                f"Batch of {len(auction_ids)} exceeds max {self.params.max_cleanup_batch}"
            )

        eligible = [a for a in dict.fromkeys(auction_ids) if self._is_eligible(a)]
        if not eligible:
            return 0, 0

        paid = self._expire_and_pay(caller, eligible)
        logger.info(f"{bytes_to_hex(caller)[:10]} cleaned {len(eligible)} expired auction(s), paid {paid}")
        return len(eligible), paid

    def cancel_expired(self, caller: bytes, auction_id: int) -> int:
        """
        Close one expired auction.

        Returns:
            Incentive paid

        Raises:
            AuctionInactiveOrExpired: unknown or already closed
            AuctionNotExpired: still inside its decay window
            TransferFailed: the incentive could not be paid; the auction stays active
        """
        auction = self.ledger.get(auction_id)
        if auction is None or not auction.active:
            raise AuctionInactiveOrExpired(f"Auction {auction_id} is not active", auction_id)
        if not self.ledger.is_expired(auction_id):
            raise AuctionNotExpired(f"Auction {auction_id} runs until {auction.end_time}", auction_id)

        paid = self._expire_and_pay(caller, [auction_id])
        logger.info(f"Auction {auction_id} cancelled after expiry by {bytes_to_hex(caller)[:10]}, paid {paid}")
        return paid
