"""
Integration tests for the liquidation auction engine.

Tests cover:
1. Direct bidding end to end
2. Commit-reveal bidding end to end
3. Expiry and keeper cleanup
4. Oracle-driven liquidation start
5. Owner administration
"""

import pytest

from liqauction.core import (
    NATIVE,
    PRICE_SCALE,
    AuctionConfig,
    FungibleAsset,
    InMemoryAssetBank,
    LiquidationAuctionEngine,
    ManualClock,
    PriceQuote,
)
from liqauction.core.auction import AuctionStatus
from liqauction.core.errors import (
    AuctionInactiveOrExpired,
    AuctionNotExpired,
    InvalidCommit,
    InvalidConfig,
    InvalidParameters,
    NoCollateral,
    PriceTooHigh,
    PriceUnavailable,
    RevealTooEarly,
    TransferFailed,
    Unauthorized,
)
from liqauction.core.events import (
    AuctionExpired,
    AuctionOpened,
    BidRevealed,
    BidSettled,
    ConfigUpdated,
    EmergencyWithdrawal,
    MevAttemptDetected,
)
from liqauction.crypto import create_bid_commitment


ENGINE = b"\xee" * 20
OWNER = b"\x01" * 20
DEBTOR = b"\xd0" * 20
ALICE = b"\xa1" * 20
BOB = b"\xb0" * 20
KEEPER = b"\xcc" * 20

TOKEN = FungibleAsset(b"\x70" * 20)
USD = FungibleAsset(b"\x55" * 20)

COLLATERAL = 2 * PRICE_SCALE
INCENTIVE = 10**15


# =============================================================================
# Fixtures
# =============================================================================


class FixedOracle:
    def __init__(self, clock, price, age=0, fail=False):
        self.clock = clock
        self.price = price
        self.age = age
        self.fail = fail
        self.calls = 0

    def get_reference_price(self, asset):
        self.calls += 1
        if self.fail:
            raise ConnectionError("oracle offline")
        return PriceQuote(price=self.price, updated_at=self.clock.timestamp() - self.age)


class FixedCustody:
    def __init__(self, amount):
        self.amount = amount

    def get_held_amount(self, debtor, asset):
        return self.amount


@pytest.fixture
def clock():
    return ManualClock(timestamp=1_700_000_000, block_number=100)


@pytest.fixture
def bank():
    bank = InMemoryAssetBank(ENGINE)
    for account in (ALICE, BOB, OWNER):
        bank.mint(NATIVE, account, 10**21)
    bank.mint(USD, ALICE, 10**21)
    return bank


@pytest.fixture
def engine(bank, clock):
    engine = LiquidationAuctionEngine(
        owner=OWNER,
        bank=bank,
        clock=clock,
        config=AuctionConfig(duration=3600, min_price_factor=5000, liquidation_bonus=500),
        payment_asset=USD,
    )
    engine.fund_incentive_reserve(OWNER, 10 * INCENTIVE)
    return engine


@pytest.fixture
def open_native(engine, bank):
    """Open a native-collateral auction at start price 1000 with its collateral in custody."""
    def _open(debtor=DEBTOR, collateral=COLLATERAL):
        bank.mint(NATIVE, ENGINE, collateral)
        return engine.open_auction(debtor, NATIVE, 1000, collateral, 1000)
    return _open


# =============================================================================
# Direct Bidding
# =============================================================================


class TestDirectBid:
    """End-to-end direct bids."""

    def test_half_time_settlement(self, engine, bank, clock, open_native):
        auction_id = open_native()
        clock.advance(seconds=1800)

        assert engine.get_current_price(auction_id) == 750
        assert engine.quote_total_cost(auction_id) == 1500

        before = bank.balance_of(NATIVE, ALICE)
        settlement = engine.bid(auction_id, ALICE, ceiling_price=800, payment=2000)

        assert settlement.price == 750
        assert settlement.refund == 500
        assert bank.balance_of(NATIVE, ALICE) == before - 1500 + COLLATERAL
        assert engine.get_auction_status(auction_id) == AuctionStatus.SETTLED
        assert engine.get_active_auctions() == []
        assert len(engine.event_log.of_type(BidSettled, auction_id)) == 1

    def test_ceiling_below_price(self, engine, clock, open_native):
        auction_id = open_native()
        clock.advance(seconds=1800)

        with pytest.raises(PriceTooHigh):
            engine.bid(auction_id, ALICE, ceiling_price=700, payment=2000)

        assert engine.get_auction(auction_id).active

    def test_settle_at_floor_second(self, engine, clock, open_native):
        auction_id = open_native()
        clock.advance(seconds=3600)

        settlement = engine.bid(auction_id, ALICE, ceiling_price=500, payment=1000)
        assert settlement.price == 500

    def test_no_bid_after_expiry(self, engine, clock, open_native):
        auction_id = open_native()
        clock.advance(seconds=3601)

        with pytest.raises(AuctionInactiveOrExpired):
            engine.bid(auction_id, ALICE, ceiling_price=1000, payment=2000)

    def test_unknown_auction(self, engine):
        with pytest.raises(AuctionInactiveOrExpired):
            engine.bid(99, ALICE, ceiling_price=1000, payment=2000)

    def test_single_settlement(self, engine, clock, open_native):
        """A settled auction refuses every later attempt."""
        auction_id = open_native()
        clock.advance(seconds=60)
        engine.bid(auction_id, ALICE, ceiling_price=1000, payment=2000)

        clock.advance(seconds=12)
        with pytest.raises(AuctionInactiveOrExpired):
            engine.bid(auction_id, BOB, ceiling_price=1000, payment=2000)

        assert len(engine.event_log.of_type(BidSettled)) == 1

    def test_later_bid_after_steep_settlement(self, engine, clock, open_native):
        """A 25% price drop on the winning bid still reports the auction as closed."""
        auction_id = open_native()
        clock.advance(seconds=1800)
        engine.bid(auction_id, ALICE, ceiling_price=800, payment=1500)
        assert engine.get_mev_protection(auction_id).price_impact == 2500

        clock.advance(seconds=600, blocks=50)
        with pytest.raises(AuctionInactiveOrExpired):
            engine.bid(auction_id, BOB, ceiling_price=1000, payment=2000)

        assert len(engine.event_log.of_type(BidSettled)) == 1
        assert engine.event_log.of_type(MevAttemptDetected, auction_id) == []

    def test_token_auction(self, engine, bank, clock):
        bank.mint(TOKEN, ENGINE, COLLATERAL)
        auction_id = engine.open_auction(DEBTOR, TOKEN, 1000, COLLATERAL, 1000)
        clock.advance(seconds=1800)

        engine.bid(auction_id, ALICE, ceiling_price=750)

        assert bank.balance_of(TOKEN, ALICE) == COLLATERAL
        assert bank.balance_of(USD, ENGINE) == 1500

    def test_reputation_after_gentle_bid(self, engine, clock, open_native):
        auction_id = open_native()
        clock.advance(seconds=60)
        engine.bid(auction_id, ALICE, ceiling_price=1000, payment=2000)

        assert engine.get_bidder_reputation(ALICE) == 1
        record = engine.get_mev_protection(auction_id)
        assert record.last_price == 992
        assert record.price_impact == 80

    @pytest.mark.parametrize("bidder,ceiling,payment", [
        (b"\xa1" * 19, 1000, 0),
        (bytes(20), 1000, 0),
        (ALICE, -1, 0),
        (ALICE, 1000, -5),
        (ALICE, True, 0),
    ])
    def test_malformed_input(self, engine, open_native, bidder, ceiling, payment):
        auction_id = open_native()

        with pytest.raises(InvalidParameters):
            engine.bid(auction_id, bidder, ceiling_price=ceiling, payment=payment)


# =============================================================================
# Commit-Reveal
# =============================================================================


class TestCommitReveal:
    """End-to-end sealed bids."""

    def test_commit_and_reveal(self, engine, bank, clock, open_native):
        auction_id = open_native()
        commit_id = engine.commit_bid(ALICE, auction_id, create_bid_commitment(ALICE, auction_id, 990, 7))

        clock.advance(seconds=119)
        with pytest.raises(RevealTooEarly):
            engine.reveal_bid(commit_id, ALICE, auction_id, 990, 7, payment=2000)

        clock.advance(seconds=1)
        settlement = engine.reveal_bid(commit_id, ALICE, auction_id, 990, 7, payment=2000)

        # 1000 - 500 * 120 // 3600
        assert settlement.price == 984
        assert settlement.refund == 2000 - 1968
        assert engine.get_commit(commit_id).revealed
        assert len(engine.event_log.of_type(BidRevealed, auction_id)) == 1

        with pytest.raises(InvalidCommit):
            engine.reveal_bid(commit_id, ALICE, auction_id, 990, 7, payment=2000)

    def test_reveal_above_max_price(self, engine, clock, open_native):
        """A disclosed ceiling is consumed even when the price is still above it."""
        auction_id = open_native()
        commit_id = engine.commit_bid(ALICE, auction_id, create_bid_commitment(ALICE, auction_id, 900, 7))
        clock.advance(seconds=120)

        with pytest.raises(PriceTooHigh):
            engine.reveal_bid(commit_id, ALICE, auction_id, 900, 7, payment=2000)

        assert engine.get_commit(commit_id).revealed
        assert engine.get_auction(auction_id).active

    def test_commit_on_closed_auction(self, engine, clock, open_native):
        auction_id = open_native()
        clock.advance(seconds=4000)
        engine.cancel_expired(KEEPER, auction_id)

        with pytest.raises(InvalidCommit):
            engine.commit_bid(ALICE, auction_id, b"\x01" * 32)

    def test_bad_commit_hash(self, engine, open_native):
        auction_id = open_native()

        with pytest.raises(InvalidParameters):
            engine.commit_bid(ALICE, auction_id, b"\x01" * 31)


# =============================================================================
# Cleanup
# =============================================================================


class TestCleanup:
    """Keeper cleanup through the engine."""

    def test_clean_expired_batch(self, engine, bank, clock, open_native):
        expired = [open_native(bytes([0xd0 + i]) * 20) for i in range(3)]
        clock.advance(seconds=1000)
        running = open_native(b"\xdf" * 20)
        clock.advance(seconds=2600)

        cleaned, paid = engine.clean_expired(KEEPER, expired + [running, 1234])

        assert (cleaned, paid) == (3, 3 * INCENTIVE)
        assert bank.balance_of(NATIVE, KEEPER) == 3 * INCENTIVE
        assert engine.get_active_auctions() == [running]
        assert len(engine.event_log.of_type(AuctionExpired)) == 3

    def test_cancel_before_expiry(self, engine, clock, open_native):
        auction_id = open_native()
        clock.advance(seconds=100)

        with pytest.raises(AuctionNotExpired):
            engine.cancel_expired(KEEPER, auction_id)

    def test_expired_pending_listed_as_active(self, engine, clock, open_native):
        auction_id = open_native()
        clock.advance(seconds=5000)

        assert engine.is_expired(auction_id)
        assert engine.get_active_auctions() == [auction_id]
        assert engine.get_auction_status(auction_id) == AuctionStatus.EXPIRED_PENDING

    def test_batch_limit(self, engine):
        with pytest.raises(InvalidParameters):
            engine.clean_expired(KEEPER, list(range(257)))

    def test_drained_reserve_closes_nothing(self, engine, bank, clock, open_native):
        engine.emergency_withdraw(OWNER, NATIVE, 10 * INCENTIVE)
        auction_id = open_native()
        clock.advance(seconds=3600)

        with pytest.raises(TransferFailed):
            engine.clean_expired(KEEPER, [auction_id])

        assert engine.get_auction_status(auction_id) == AuctionStatus.EXPIRED_PENDING
        assert engine.event_log.of_type(AuctionExpired) == []
        assert bank.balance_of(NATIVE, KEEPER) == 0
        assert not engine._lock.locked


# =============================================================================
# Oracle-driven Start
# =============================================================================


class TestStartLiquidation:
    """Tests for start_liquidation with oracle and custody collaborators."""

    def make_engine(self, bank, clock, oracle, custody):
        return LiquidationAuctionEngine(OWNER, bank, clock, oracle=oracle, custody=custody)

    def test_opens_from_collaborators(self, bank, clock):
        oracle = FixedOracle(clock, 2000 * PRICE_SCALE, age=60)
        engine = self.make_engine(bank, clock, oracle, FixedCustody(COLLATERAL))

        auction_id = engine.start_liquidation(DEBTOR, NATIVE, 5000)
        auction = engine.get_auction(auction_id)

        assert auction.start_price == 2000 * PRICE_SCALE
        assert auction.floor_price == 1000 * PRICE_SCALE
        assert auction.collateral_amount == COLLATERAL
        assert oracle.calls == 1
        assert engine.get_user_token_auction(DEBTOR, NATIVE) == auction_id
        assert len(engine.event_log.of_type(AuctionOpened)) == 1

    def test_stale_price(self, bank, clock):
        oracle = FixedOracle(clock, 2000, age=3601)
        engine = self.make_engine(bank, clock, oracle, FixedCustody(COLLATERAL))

        with pytest.raises(PriceUnavailable):
            engine.start_liquidation(DEBTOR, NATIVE, 5000)

    def test_zero_price(self, bank, clock):
        engine = self.make_engine(bank, clock, FixedOracle(clock, 0), FixedCustody(COLLATERAL))

        with pytest.raises(PriceUnavailable):
            engine.start_liquidation(DEBTOR, NATIVE, 5000)

    def test_oracle_failure(self, bank, clock):
        engine = self.make_engine(bank, clock, FixedOracle(clock, 2000, fail=True), FixedCustody(COLLATERAL))

        with pytest.raises(PriceUnavailable):
            engine.start_liquidation(DEBTOR, NATIVE, 5000)

    def test_nothing_held(self, bank, clock):
        engine = self.make_engine(bank, clock, FixedOracle(clock, 2000), FixedCustody(0))

        with pytest.raises(NoCollateral):
            engine.start_liquidation(DEBTOR, NATIVE, 5000)

    def test_collaborators_required(self, engine):
        with pytest.raises(InvalidParameters):
            engine.start_liquidation(DEBTOR, NATIVE, 5000)


# =============================================================================
# Administration
# =============================================================================


class TestAdmin:
    """Owner-only operations."""

    def test_update_config(self, engine, clock, open_native):
        before = open_native()
        engine.update_config(OWNER, duration=600, min_price_factor=8000, liquidation_bonus=300)
        after = open_native(b"\xd9" * 20)

        assert engine.get_auction(before).duration == 3600
        assert engine.get_auction(after).duration == 600
        assert engine.get_auction(after).floor_price == 800
        assert engine.event_log.of_type(ConfigUpdated)[0].liquidation_bonus == 300

    def test_update_config_unauthorized(self, engine):
        with pytest.raises(Unauthorized):
            engine.update_config(ALICE, duration=600, min_price_factor=8000, liquidation_bonus=300)

    @pytest.mark.parametrize("duration,factor,bonus", [
        (0, 5000, 500),
        (3600, 0, 500),
        (3600, 10_001, 500),
        (3600, 5000, 0),
    ])
    def test_update_config_invalid(self, engine, duration, factor, bonus):
        with pytest.raises(InvalidConfig):
            engine.update_config(OWNER, duration=duration, min_price_factor=factor, liquidation_bonus=bonus)

        assert engine.config.duration == 3600

    def test_emergency_withdraw(self, engine, bank):
        bank.mint(TOKEN, ENGINE, 500)
        before = bank.balance_of(TOKEN, OWNER)

        assert engine.emergency_withdraw(OWNER, TOKEN, 200) == 200
        assert bank.balance_of(TOKEN, OWNER) == before + 200
        assert engine.event_log.of_type(EmergencyWithdrawal)[0].amount == 200

    def test_emergency_withdraw_bounded(self, engine, bank):
        with pytest.raises(InvalidParameters):
            engine.emergency_withdraw(OWNER, TOKEN, 1)

    def test_emergency_withdraw_draws_down_reserve(self, engine, bank):
        engine.emergency_withdraw(OWNER, NATIVE, 4 * INCENTIVE)

        assert engine.cleanup.reserve == 6 * INCENTIVE

    def test_emergency_withdraw_unauthorized(self, engine):
        with pytest.raises(Unauthorized):
            engine.emergency_withdraw(ALICE, NATIVE, 1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
