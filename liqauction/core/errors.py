"""
Error taxonomy for the liquidation auction engine.

Four families, each surfaced distinctly so callers and monitoring can tell
"malformed request" from "try later" from "reconcile by hand":

- InputError: rejected before any state mutation; fix the input and retry.
- StateError: a lifecycle precondition does not hold (inactive auction,
  reveal window violated, ...).
- ProtectionRejection: an anti-manipulation heuristic refused the bid.
  Expected and frequent; `retryable` is always True.
- TransferFailed: an asset movement failed. Fatal for the current call.

No error is retried by the engine itself.
"""

from typing import Optional


class AuctionError(Exception):
    """Base class for every error raised by the engine."""

    retryable = False

    def __init__(self, message: str = "", auction_id: Optional[int] = None):
        super().__init__(message or self.__class__.__name__)
        self.auction_id = auction_id


# =============================================================================
# Input Validation
# =============================================================================


class InputError(AuctionError):
    """Malformed request."""


class InvalidParameters(InputError):
    pass


class NoCollateral(InputError):
    pass


class InvalidConfig(InputError):
    pass


class Unauthorized(InputError):
    pass


class PriceUnavailable(InputError):
    """Reference price could not be obtained, was zero, or was stale."""


# =============================================================================
# State Preconditions
# =============================================================================


class StateError(AuctionError):
    """Lifecycle precondition violated."""


class AuctionInactiveOrExpired(StateError):
    pass


class AuctionNotExpired(StateError):
    pass


class AuctionAlreadyActive(StateError):
    pass


class PriceTooHigh(StateError):
    def __init__(self, current_price: int, ceiling_price: int, auction_id: Optional[int] = None):
        super().__init__(
            f"Current price {current_price} exceeds ceiling {ceiling_price}",
            auction_id,
        )
        self.current_price = current_price
        self.ceiling_price = ceiling_price


class InsufficientPayment(StateError):
    def __init__(self, required: int, offered: int, auction_id: Optional[int] = None):
        super().__init__(f"Payment {offered} does not cover cost {required}", auction_id)
        self.required = required
        self.offered = offered


class InvalidCommit(StateError):
    pass


class RevealTooEarly(StateError):
    pass


class RevealExpired(StateError):
    pass


class HashMismatch(StateError):
    pass


class ReentrantCall(StateError):
    pass


# =============================================================================
# Protection Heuristics
# =============================================================================


class ProtectionRejection(AuctionError):
    """Bid refused by an anti-manipulation heuristic; try again later."""

    retryable = True


class BidTooFrequent(ProtectionRejection):
    pass


class SameBlockBid(ProtectionRejection):
    pass


class ExcessiveImpact(ProtectionRejection):
    pass


class FlashloanSuspected(ProtectionRejection):
    pass


class FlashloanCooldown(ProtectionRejection):
    pass


class RateLimited(ProtectionRejection):
    pass


# =============================================================================
# Transfers
# =============================================================================


class TransferFailed(AuctionError):
    """An asset movement failed."""


class SettlementIncomplete(TransferFailed):
    """
    Payment was accepted but a later transfer failed.

    The auction stays closed. `settlement` carries the accepted terms so the
    custody ledger can reconcile by hand.
    """

    def __init__(self, message: str, settlement=None, auction_id: Optional[int] = None):
        super().__init__(message, auction_id)
        self.settlement = settlement


__all__ = [
    "AuctionError",
    "InputError",
    "InvalidParameters",
    "NoCollateral",
    "InvalidConfig",
    "Unauthorized",
    "PriceUnavailable",
    "StateError",
    "AuctionInactiveOrExpired",
    "AuctionNotExpired",
    "AuctionAlreadyActive",
    "PriceTooHigh",
    "InsufficientPayment",
    "InvalidCommit",
    "RevealTooEarly",
    "RevealExpired",
    "HashMismatch",
    "ReentrantCall",
    "ProtectionRejection",
    "BidTooFrequent",
    "SameBlockBid",
    "ExcessiveImpact",
    "FlashloanSuspected",
    "FlashloanCooldown",
    "RateLimited",
    "TransferFailed",
    "SettlementIncomplete",
]
