"""
Settlement Executor - Payment, collateral transfer and auction closure.

Ordering for a winning bid:
1. Validate: auction live, price within ceiling, payment sufficient
2. Accept payment (native value or exact token pull)
3. Close the auction
4. Refund any excess native payment
5. Transfer the collateral to the bidder

A failure in step 2 leaves the auction untouched. Anything failing after
step 2 raises SettlementIncomplete: payment has moved, the auction stays
closed, and the custody ledger reconciles by hand. No rollback is attempted.
"""

from dataclasses import dataclass
from typing import Optional

from liqauction.core.auction.ledger import AuctionLedger
from liqauction.core.config import EngineParameters
from liqauction.core.errors import (
    AuctionError,
    AuctionInactiveOrExpired,
    InsufficientPayment,
    PriceTooHigh,
    SettlementIncomplete,
    TransferFailed,
)
from liqauction.core.events import BidSettled, EventLog
from liqauction.core.interfaces import NATIVE, Asset, AssetTransfer
from liqauction.crypto import bytes_to_hex
from liqauction.utils.logger import get_logger

logger = get_logger("settlement")


@dataclass(frozen=True)
class Settlement:
    """Terms of a winning bid."""
    auction_id: int
    bidder: bytes
    asset: Asset
    price: int
    total_cost: int
    collateral_amount: int
    refund: int
    block_number: int
    timestamp: int


class SettlementExecutor:
    """Executes winning bids against the ledger."""

    def __init__(
        self,
        ledger: AuctionLedger,
        bank: AssetTransfer,
        params: Optional[EngineParameters] = None,
        event_log: Optional[EventLog] = None,
        payment_asset: Asset = NATIVE,
    ):
        """
        Args:
            ledger: Auction records
            bank: Transfer collaborator
            params: Protocol constants
            event_log: Event sink (defaults to the ledger's)
            payment_asset: What token-collateral auctions are paid in,
                typically the debt asset. Native auctions are always paid
                with attached native value.
        """
        self.ledger = ledger
        self.clock = ledger.clock
        self.bank = bank
        self.params = params or EngineParameters()
        self.event_log = event_log or ledger.event_log
        self.payment_asset = payment_asset

    def total_cost(self, price: int, collateral_amount: int) -> int:
        return price * collateral_amount // self.params.price_scale

    def execute_bid(
        self,
        auction_id: int,
        bidder: bytes,
        ceiling_price: int,
        payment_offered: int = 0,
    ) -> Settlement:
        """
        Settle an auction at the current price.

        Args:
            auction_id: Auction to buy
            bidder: Buyer address
            ceiling_price: Highest per-unit price the bidder accepts
            payment_offered: Native value attached; must be 0 for token auctions

        Returns:
            Settlement record

        Raises:
            AuctionInactiveOrExpired: closed, unknown, or price already zero
            PriceTooHigh: current price above ceiling
            InsufficientPayment: native payment short, or value attached to a
                token auction
            TransferFailed: payment could not be accepted (auction untouched)
            SettlementIncomplete: a transfer failed after payment was accepted
        """
        auction = self.ledger.get(auction_id)
        price = self.ledger.current_price(auction_id)
        if auction is None or not auction.active or price == 0:
            raise AuctionInactiveOrExpired(f"Auction {auction_id} is inactive or expired", auction_id)

        if price > ceiling_price:
            raise PriceTooHigh(price, ceiling_price, auction_id)

        cost = self.total_cost(price, auction.collateral_amount)

        if auction.asset.is_native:
            if payment_offered < cost:
                raise InsufficientPayment(cost, payment_offered, auction_id)
            pay_with, accepted, refund = NATIVE, payment_offered, payment_offered - cost
        else:
            if payment_offered != 0:
                raise InsufficientPayment(cost, payment_offered, auction_id)
            pay_with, accepted, refund = self.payment_asset, cost, 0

        if not self._safe(self.bank.pull_in, pay_with, bidder, accepted, auction_id):
            raise TransferFailed(f"Could not collect payment of {accepted} {pay_with}", auction_id)

        self.ledger.close(auction_id, settled=True)

        settlement = Settlement(
            auction_id=auction_id,
            bidder=bidder,
            asset=auction.asset,
            price=price,
            total_cost=cost,
            collateral_amount=auction.collateral_amount,
            refund=refund,
            block_number=self.clock.block_number(),
            timestamp=self.clock.timestamp(),
        )

        self._deliver(settlement)

        self.event_log.emit(BidSettled(
            block_number=settlement.block_number,
            timestamp=settlement.timestamp,
            auction_id=auction_id,
            bidder=bidder,
            price=price,
            total_cost=cost,
            collateral_amount=auction.collateral_amount,
            refund=refund,
        ))
        logger.info(f"Auction {auction_id} settled: {bytes_to_hex(bidder)[:10]} bought "
                    f"{auction.collateral_amount} {auction.asset} at {price} (cost {cost})")
        return settlement

    @staticmethod
    def _safe(transfer, asset: Asset, account: bytes, amount: int, auction_id: Optional[int] = None) -> bool:
        """
        Run a transfer and report whether it went through.

        A collaborator that raises surfaces as TransferFailed chained to the
        original error.
        """
        try:
            return bool(transfer(asset, account, amount))
        except AuctionError:
            raise
        except Exception as e:
            logger.error(f"Transfer of {amount} {asset} raised: {e}")
            raise TransferFailed(f"Transfer of {amount} {asset} raised {type(e).__name__}: {e}", auction_id) from e

    def _deliver(self, settlement: Settlement) -> None:
        """Refund and collateral legs; every failure here is post-payment."""
        try:
            if settlement.refund > 0 and not self._safe(
                self.bank.transfer_out, NATIVE, settlement.bidder, settlement.refund
            ):
                raise SettlementIncomplete("Refund transfer failed", settlement, settlement.auction_id)

            if not self._safe(
                self.bank.transfer_out, settlement.asset, settlement.bidder, settlement.collateral_amount
            ):
                raise SettlementIncomplete("Collateral transfer failed", settlement, settlement.auction_id)
        except SettlementIncomplete as e:
            logger.error(f"Auction {settlement.auction_id}: {e} after payment of "
                         f"{settlement.total_cost} from {bytes_to_hex(settlement.bidder)[:10]}")
            raise
        except AuctionError as e:
            logger.error(f"Auction {settlement.auction_id}: delivery aborted by {type(e).__name__} after payment")
            raise SettlementIncomplete(str(e), settlement, settlement.auction_id) from e
