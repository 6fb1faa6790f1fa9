"""
External collaborator interfaces.

The engine depends on three collaborators, each described as a Protocol:
- PriceOracle: starting reference price, read once at open
- CollateralCustody: seized amounts, read once at open
- AssetTransfer: native and token movement

Assets are a tagged variant (NativeAsset | FungibleAsset) so transfer code
dispatches on type instead of a sentinel address.
"""

from dataclasses import dataclass
from typing import Protocol, Union, runtime_checkable

from liqauction.crypto import bytes_to_hex


# =============================================================================
# Assets
# =============================================================================


@dataclass(frozen=True)
class NativeAsset:
    """The chain's native asset."""

    @property
    def is_native(self) -> bool:
        return True

    def __str__(self) -> str:
        return "NATIVE"


@dataclass(frozen=True)
class FungibleAsset:
    """A fungible token identified by its 20-byte contract address."""
    token: bytes

    def __post_init__(self):
        if len(self.token) != 20:
            raise ValueError(f"Token address must be 20 bytes, got {len(self.token)}")

    @property
    def is_native(self) -> bool:
        return False

    def __str__(self) -> str:
        return bytes_to_hex(self.token)


Asset = Union[NativeAsset, FungibleAsset]

NATIVE = NativeAsset()


# =============================================================================
# Collaborators
# =============================================================================


@dataclass(frozen=True)
class PriceQuote:
    """Reference price in PRICE_SCALE fixed point, with the time it was observed."""
    price: int
    updated_at: int


@runtime_checkable
class PriceOracle(Protocol):
    def get_reference_price(self, asset: Asset) -> PriceQuote:
        ...


@runtime_checkable
class CollateralCustody(Protocol):
    def get_held_amount(self, debtor: bytes, asset: Asset) -> int:
        ...


@runtime_checkable
class AssetTransfer(Protocol):
    """
    Asset movement primitive.

    transfer_out and pull_in return False (or raise) on failure; the engine
    treats either as TransferFailed.
    """

    def transfer_out(self, asset: Asset, to: bytes, amount: int) -> bool:
        ...

    def pull_in(self, asset: Asset, frm: bytes, amount: int) -> bool:
        ...

    def balance_of(self, asset: Asset, account: bytes) -> int:
        ...
