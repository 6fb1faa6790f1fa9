"""
Liquidation Auction Engine - Facade over the auction components.

Exposes every external operation:
- Lifecycle: open_auction, start_liquidation
- Bidding: bid, commit_bid, reveal_bid
- Cleanup: clean_expired, cancel_expired, fund_incentive_reserve
- Reads: get_auction, get_current_price, is_expired, get_active_auctions,
  get_user_token_auction, get_mev_protection, get_bidder_reputation
- Admin: update_config, emergency_withdraw

Every state-mutating entry point runs under a non-reentrant lock: a
transfer collaborator that calls back into the engine mid-operation gets
ReentrantCall. Bids pass through ProtectionGuard before SettlementExecutor.
"""

from typing import Iterable, List, Optional, Tuple

from liqauction.core.auction.cleanup import CleanupIncentive
from liqauction.core.auction.commit_reveal import CommitRecord, CommitRegistry
from liqauction.core.auction.ledger import Auction, AuctionLedger, AuctionStatus
from liqauction.core.auction.protection import MevProtectionRecord, ProtectionGuard
from liqauction.core.auction.settlement import Settlement, SettlementExecutor
from liqauction.core.clock import SystemClock
from liqauction.core.config import AuctionConfig, EngineParameters
from liqauction.core.errors import (
    AuctionInactiveOrExpired,
    InvalidParameters,
    PriceUnavailable,
    ReentrantCall,
    TransferFailed,
    Unauthorized,
)
from liqauction.core.events import ConfigUpdated, EmergencyWithdrawal, EventLog
from liqauction.core.interfaces import (
    NATIVE,
    Asset,
    AssetTransfer,
    CollateralCustody,
    FungibleAsset,
    NativeAsset,
    PriceOracle,
)
from liqauction.crypto import bytes_to_hex
from liqauction.utils.logger import get_logger
from liqauction.utils.validation import (
    validate_address,
    validate_amount,
    validate_array,
    validate_hash,
    validate_integer,
)

logger = get_logger("engine")


class NonReentrantLock:
    """Scoped lock that refuses nested entry instead of blocking."""

    def __init__(self):
        self._entered = False

    @property
    def locked(self) -> bool:
        return self._entered

    def __enter__(self):
        if self._entered:
            raise ReentrantCall("Reentrant call into the auction engine")
        self._entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self._entered = False
        return False


def _require(result: Tuple[bool, str]) -> None:
    valid, error = result
    if not valid:
        raise InvalidParameters(error)


class LiquidationAuctionEngine:
    """
    Descending-price, commit-reveal liquidation auctions.

    Attributes:
        ledger: Auction records
        commits: Sealed-bid registry
        guard: Protection heuristics
        executor: Settlement
        cleanup: Expiry cleanup and incentive reserve
        config: Owner-mutable auction configuration
    """

    def __init__(
        self,
        owner: bytes,
        bank: AssetTransfer,
        clock=None,
        config: Optional[AuctionConfig] = None,
        params: Optional[EngineParameters] = None,
        oracle: Optional[PriceOracle] = None,
        custody: Optional[CollateralCustody] = None,
        account: Optional[bytes] = None,
        payment_asset: Asset = NATIVE,
        event_log: Optional[EventLog] = None,
    ):
        """
        Args:
            owner: Address allowed to run admin operations
            bank: Asset transfer collaborator
            clock: Time source; SystemClock when omitted
            config: Initial auction configuration
            params: Protocol constants
            oracle: Reference price source for start_liquidation
            custody: Collateral custody ledger for start_liquidation
            account: The engine's own account in `bank`; defaults to
                bank.engine_account
            payment_asset: What token-collateral auctions are paid in
            event_log: Event sink
        """
        _require(validate_address(owner, "owner"))

        self.owner = owner
        self.bank = bank
        self.clock = clock or SystemClock()
        self.config = config or AuctionConfig()
        self.params = params or EngineParameters()
        self.oracle = oracle
        self.custody = custody
        self.account = account if account is not None else getattr(bank, "engine_account", None)
        self.event_log = event_log or EventLog()

        self.config.validate()
        self.params.validate()

        self.ledger = AuctionLedger(self.clock, self.event_log)
        self.commits = CommitRegistry(self.ledger, self.params, self.event_log)
        self.guard = ProtectionGuard(self.clock, self.bank, self.params, self.event_log)
        self.executor = SettlementExecutor(
            self.ledger, self.bank, self.params, self.event_log, payment_asset=payment_asset
        )
        self.cleanup = CleanupIncentive(self.ledger, self.bank, self.params, self.event_log)

        self._lock = NonReentrantLock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open_auction(
        self,
        debtor: bytes,
        asset: Asset,
        debt_amount: int,
        collateral_amount: int,
        start_price: int,
    ) -> int:
        """Open an auction from explicit snapshots. Returns the auction id."""
        _require(validate_address(debtor, "debtor"))
        if not isinstance(asset, (NativeAsset, FungibleAsset)):
            raise InvalidParameters(f"Unsupported asset {asset!r}")
        _require(validate_amount(debt_amount, "debt_amount"))
        _require(validate_amount(collateral_amount, "collateral_amount"))
        _require(validate_amount(start_price, "start_price"))

        with self._lock:
            return self.ledger.open(debtor, asset, debt_amount, collateral_amount, start_price, self.config)

    def start_liquidation(self, debtor: bytes, asset: Asset, debt_amount: int) -> int:
        """
        Open an auction using the custody ledger and the price oracle.

        Both collaborators are read exactly once.

        Raises:
            PriceUnavailable: oracle failed, returned zero, or returned a
                quote older than max_price_age
        """
        if self.oracle is None or self.custody is None:
            raise InvalidParameters("start_liquidation needs both an oracle and a custody ledger")

        collateral_amount = self.custody.get_held_amount(debtor, asset)

        try:
            quote = self.oracle.get_reference_price(asset)
        except Exception as e:
            raise PriceUnavailable(f"Reference price for {asset} unavailable: {e}") from e

        if quote.price <= 0:
            raise PriceUnavailable(f"Reference price for {asset} is zero")
        age = self.clock.timestamp() - quote.updated_at
        if age > self.params.max_price_age:
            raise PriceUnavailable(f"Reference price for {asset} is {age}s old (max {self.params.max_price_age})")

        return self.open_auction(debtor, asset, debt_amount, collateral_amount, quote.price)

    # =========================================================================
    # Bidding
    # =========================================================================

    def _live_auction(self, auction_id: int) -> Auction:
        auction = self.ledger.get(auction_id)
        if auction is None:
            raise AuctionInactiveOrExpired(f"Auction {auction_id} does not exist", auction_id)
        return auction

    def _settle(self, auction: Auction, bidder: bytes, ceiling_price: int, payment: int) -> Settlement:
        settlement = self.executor.execute_bid(auction.auction_id, bidder, ceiling_price, payment)
        self.guard.record_settlement(auction, bidder, settlement.price)
        return settlement

    def bid(self, auction_id: int, bidder: bytes, ceiling_price: int, payment: int = 0) -> Settlement:
        """
        Buy the auction at the current price if it is at or below the ceiling.

        Args:
            auction_id: Target auction
            bidder: Buyer address
            ceiling_price: Highest acceptable per-unit price
            payment: Native value attached (native auctions only)
        """
        _require(validate_address(bidder, "bidder"))
        _require(validate_amount(ceiling_price, "ceiling_price"))
        _require(validate_amount(payment, "payment"))

        with self._lock:
            auction = self._live_auction(auction_id)
            self.guard.check(auction, bidder, payment, self.ledger.current_price(auction_id))
            return self._settle(auction, bidder, ceiling_price, payment)

    def commit_bid(self, bidder: bytes, auction_id: int, commit_hash: bytes) -> bytes:
        """Store a sealed bid. Returns the commit id needed for the reveal."""
        _require(validate_address(bidder, "bidder"))
        _require(validate_hash(commit_hash, "commit_hash"))

        with self._lock:
            return self.commits.commit(bidder, auction_id, commit_hash)

    def reveal_bid(
        self,
        commit_id: bytes,
        bidder: bytes,
        auction_id: int,
        max_price: int,
        nonce: int,
        payment: int = 0,
    ) -> Settlement:
        """
        Disclose a sealed bid and settle with max_price as the ceiling.

        An early or late reveal is rejected before the protection guard runs
        and does not count against the bidder's rate limit. A
        reveal that passes verification is consumed even if settlement then
        fails: the disclosed ceiling is public from that point on.
        """
        _require(validate_address(bidder, "bidder"))
        _require(validate_hash(commit_id, "commit_id"))
        _require(validate_amount(max_price, "max_price"))
        _require(validate_amount(nonce, "nonce"))
        _require(validate_amount(payment, "payment"))

        with self._lock:
            auction = self._live_auction(auction_id)
            self.commits.check_reveal_window(commit_id, auction_id)
            self.guard.check(auction, bidder, payment, self.ledger.current_price(auction_id))
            self.commits.verify_and_consume_reveal(commit_id, bidder, auction_id, max_price, nonce)
            return self._settle(auction, bidder, max_price, payment)

    # =========================================================================
    # Cleanup
    # =========================================================================

    def clean_expired(self, caller: bytes, auction_ids: Iterable[int]) -> Tuple[int, int]:
        """Close expired auctions in bulk. Returns (cleaned_count, incentive_paid)."""
        _require(validate_address(caller, "caller"))
        auction_ids = list(auction_ids)
        _require(validate_array(auction_ids, "auction_ids", self.params.max_cleanup_batch))

        with self._lock:
            return self.cleanup.clean_expired(caller, auction_ids)

    def cancel_expired(self, caller: bytes, auction_id: int) -> int:
        """Close a single expired auction. Returns the incentive paid."""
        _require(validate_address(caller, "caller"))

        with self._lock:
            return self.cleanup.cancel_expired(caller, auction_id)

    def fund_incentive_reserve(self, frm: bytes, amount: int) -> int:
        _require(validate_address(frm, "frm"))
        _require(validate_amount(amount))

        with self._lock:
            return self.cleanup.fund(frm, amount)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_auction(self, auction_id: int) -> Optional[Auction]:
        return self.ledger.get(auction_id)

    def get_current_price(self, auction_id: int) -> int:
        return self.ledger.current_price(auction_id)

    def is_expired(self, auction_id: int) -> bool:
        return self.ledger.is_expired(auction_id)

    def get_auction_status(self, auction_id: int) -> Optional[AuctionStatus]:
        return self.ledger.status(auction_id)

    def get_active_auctions(self) -> List[int]:
        return self.ledger.active_ids()

    def get_user_token_auction(self, debtor: bytes, asset: Asset) -> Optional[int]:
        return self.ledger.auction_for(debtor, asset)

    def get_mev_protection(self, auction_id: int) -> MevProtectionRecord:
        return self.guard.get_record(auction_id)

    def get_bidder_reputation(self, bidder: bytes) -> int:
        return self.guard.get_reputation(bidder)

    def get_commit(self, commit_id: bytes) -> Optional[CommitRecord]:
        return self.commits.get(commit_id)

    def quote_total_cost(self, auction_id: int) -> int:
        """What a bid placed now would cost in total."""
        auction = self.ledger.get(auction_id)
        if auction is None:
            return 0
        return self.executor.total_cost(self.ledger.current_price(auction_id), auction.collateral_amount)

    # =========================================================================
    # Admin
    # =========================================================================

    def _only_owner(self, caller: bytes) -> None:
        if caller != self.owner:
            raise Unauthorized(f"{bytes_to_hex(caller)} is not the owner")

    def update_config(
        self,
        caller: bytes,
        duration: int,
        min_price_factor: int,
        liquidation_bonus: int,
    ) -> AuctionConfig:
        """
        Replace the auction configuration. Running auctions keep their snapshot.

        Raises:
            Unauthorized: caller is not the owner
            InvalidConfig: a field is zero or a factor exceeds 10000
        """
        self._only_owner(caller)
        _require(validate_integer(duration, "duration"))
        _require(validate_integer(min_price_factor, "min_price_factor"))
        _require(validate_integer(liquidation_bonus, "liquidation_bonus"))

        with self._lock:
            new_config = AuctionConfig(
                duration=duration,
                min_price_factor=min_price_factor,
                liquidation_bonus=liquidation_bonus,
            )
            new_config.validate(require_nonzero=True)
            self.config = new_config

            self.event_log.emit(ConfigUpdated(
                block_number=self.clock.block_number(),
                timestamp=self.clock.timestamp(),
                actor=caller,
                duration=duration,
                min_price_factor=min_price_factor,
                liquidation_bonus=liquidation_bonus,
            ))
            logger.info(f"Config updated: duration={duration}, min_price_factor={min_price_factor}, "
                        f"liquidation_bonus={liquidation_bonus}")
            return new_config

    def emergency_withdraw(self, caller: bytes, asset: Asset, amount: int) -> int:
        """
        Move engine-held funds to the owner.

        Bounded by what the engine actually holds. Native withdrawals draw
        down the incentive reserve if they reach into it.
        """
        self._only_owner(caller)
        _require(validate_integer(amount, "amount", min_val=1))
        if self.account is None:
            raise InvalidParameters("Engine account unknown; cannot check held balance")

        with self._lock:
            held = self.bank.balance_of(asset, self.account)
            if amount > held:
                raise InvalidParameters(f"Withdrawal of {amount} exceeds held balance {held}")

            if not self.bank.transfer_out(asset, caller, amount):
                raise TransferFailed(f"Emergency withdrawal of {amount} {asset} failed")

            if asset.is_native:
                self.cleanup.reserve = min(self.cleanup.reserve, held - amount)

            self.event_log.emit(EmergencyWithdrawal(
                block_number=self.clock.block_number(),
                timestamp=self.clock.timestamp(),
                actor=caller,
                asset=str(asset),
                amount=amount,
            ))
            logger.warning(f"Emergency withdrawal of {amount} {asset} by owner")
            return amount
