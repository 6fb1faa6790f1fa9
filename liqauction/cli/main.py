"""
liqauction CLI - Command Line Interface for the liquidation auction engine

Main entry point for all CLI commands.
"""

import click

from liqauction.utils.logger import setup_logging


def _parse_address(value: str) -> bytes:
    from liqauction.crypto import hex_to_bytes, is_valid_address

    if not is_valid_address(value):
        raise click.BadParameter(f"Not a 0x-prefixed 20-byte address: {value}")
    return hex_to_bytes(value)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-dir", default=None, help="Write logs to this directory")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, log_dir):
    """Descending-price, commit-reveal liquidation auctions"""
    import logging

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(level=level, log_dir=log_dir, log_to_file=log_dir is not None)

    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


# =============================================================================
# Pricing
# =============================================================================


@cli.command("curve")
@click.option("--start-price", type=int, required=True, help="Start price (scaled)")
@click.option("--min-price-factor", type=int, default=5000, show_default=True, help="Floor in bps")
@click.option("--duration", type=int, default=3600, show_default=True, help="Decay window (s)")
@click.option("--steps", type=int, default=10, show_default=True, help="Sample points")
def curve(start_price, min_price_factor, duration, steps):
    """Print the price decay schedule"""
    from liqauction.core.auction import compute_floor_price, price_schedule

    if not 0 < min_price_factor <= 10_000:
        raise click.BadParameter("min-price-factor must be in (0, 10000]")
    if duration <= 0 or steps <= 0:
        raise click.BadParameter("duration and steps must be > 0")

    floor = compute_floor_price(start_price, min_price_factor)
    click.echo(f"Start {start_price}, floor {floor}, duration {duration}s")
    click.echo(f"{'elapsed':>10}  {'price':>24}")
    for elapsed, price in price_schedule(start_price, floor, duration, steps):
        click.echo(f"{elapsed:>10}  {price:>24}")


# =============================================================================
# Bidding Helpers
# =============================================================================


@cli.command("commitment")
@click.option("--bidder", required=True, help="Bidder address (0x...)")
@click.option("--auction-id", type=int, required=True)
@click.option("--max-price", type=int, required=True, help="Ceiling price (scaled)")
@click.option("--nonce", type=int, default=None, help="Blinding nonce (random if omitted)")
def commitment(bidder, auction_id, max_price, nonce):
    """Compute a sealed-bid commitment"""
    from liqauction.crypto import bytes_to_hex, create_bid_commitment, random_nonce

    bidder_bytes = _parse_address(bidder)
    if nonce is None:
        nonce = random_nonce()

    commit_hash = create_bid_commitment(bidder_bytes, auction_id, max_price, nonce)
    click.echo(f"Commitment: {bytes_to_hex(commit_hash)}")
    click.echo(f"Nonce:      {nonce}")
    click.echo("  Keep the nonce secret until the reveal window opens.")


@cli.command("keygen")
def keygen():
    """Generate a bidder keypair"""
    from liqauction.crypto import bytes_to_hex, generate_keypair

    kp = generate_keypair()
    click.echo(f"Address:     {kp.address_hex}")
    click.echo(f"Public key:  {bytes_to_hex(kp.public_key)}")
    click.echo(f"Private key: {bytes_to_hex(kp.private_key)}")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--env-file", default=None, help="Optional .env with LIQAUCTION_* settings")
def demo(env_file):
    """Run a scripted auction scenario on an in-memory engine"""
    from liqauction.core import (
        NATIVE,
        InMemoryAssetBank,
        LiquidationAuctionEngine,
        ManualClock,
        PRICE_SCALE,
        load_config,
    )
    from liqauction.core.errors import AuctionError
    from liqauction.crypto import bytes_to_hex, create_bid_commitment, generate_keypair, random_nonce

    config, params = load_config(env_file)

    owner, engine_kp, debtor, alice, bob, keeper = (generate_keypair() for _ in range(6))
    clock = ManualClock()
    bank = InMemoryAssetBank(engine_account=engine_kp.address)
    engine = LiquidationAuctionEngine(
        owner=owner.address, bank=bank, clock=clock, config=config, params=params
    )

    click.echo("=" * 60)
    click.echo("  LIQUIDATION AUCTION - DEMO")
    click.echo("=" * 60)

    collateral = 10 * PRICE_SCALE
    start_price = 2_000 * PRICE_SCALE
    for kp in (alice, bob, owner):
        bank.mint(NATIVE, kp.address, 50_000 * PRICE_SCALE)
    bank.mint(NATIVE, engine.account, 2 * collateral)
    engine.fund_incentive_reserve(owner.address, 10 * params.incentive_per_cleanup)

    # 1. Direct bid halfway down the curve
    click.echo("\n[1] Direct bid")
    first = engine.open_auction(debtor.address, NATIVE, 15_000 * PRICE_SCALE, collateral, start_price)
    clock.advance(seconds=config.duration // 2)
    price = engine.get_current_price(first)
    click.echo(f"  Auction {first}: price at half-time {price}")

    try:
        engine.bid(first, alice.address, ceiling_price=price - 1, payment=engine.quote_total_cost(first))
    except AuctionError as e:
        click.echo(f"  Alice below price -> {type(e).__name__}")

    clock.advance(seconds=params.min_bid_delay)
    settlement = engine.bid(first, alice.address, ceiling_price=price, payment=engine.quote_total_cost(first))
    click.echo(f"  Alice won at {settlement.price}, paid {settlement.total_cost}, refund {settlement.refund}")

    # 2. Sealed bid
    click.echo("\n[2] Commit-reveal")
    second_debtor = generate_keypair()
    second = engine.open_auction(second_debtor.address, NATIVE, 15_000 * PRICE_SCALE, collateral, start_price)
    nonce = random_nonce()
    max_price = start_price * 97 // 100
    commit_id = engine.commit_bid(bob.address, second, create_bid_commitment(bob.address, second, max_price, nonce))
    click.echo(f"  Bob committed {bytes_to_hex(commit_id)[:18]}...")

    clock.advance(seconds=params.commit_duration)
    while engine.get_current_price(second) > max_price:
        clock.advance(seconds=60)
    settlement = engine.reveal_bid(
        commit_id, bob.address, second, max_price, nonce,
        payment=engine.quote_total_cost(second),
    )
    click.echo(f"  Bob revealed and won at {settlement.price}")
    click.echo(f"  Bob's reputation: {engine.get_bidder_reputation(bob.address)}")

    # 3. Expiry and cleanup
    click.echo("\n[3] Cleanup")
    third = engine.open_auction(debtor.address, NATIVE, 1_000 * PRICE_SCALE, collateral, start_price)
    clock.advance(seconds=config.duration + 1)
    cleaned, paid = engine.clean_expired(keeper.address, [first, second, third])
    click.echo(f"  Keeper cleaned {cleaned} auction(s), earned {paid}")

    click.echo(f"\n  {len(engine.event_log)} events emitted")


if __name__ == "__main__":
    cli()
