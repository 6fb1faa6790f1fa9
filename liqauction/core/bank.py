"""
In-memory asset bank.

Reference AssetTransfer implementation holding native and token balances
for every account. The engine's own holdings live under `engine_account`.

In production this would be replaced by:
- Native value transfers
- Token transfer/transferFrom calls
"""

from collections import defaultdict
from typing import Dict, Tuple

from liqauction.core.interfaces import Asset
from liqauction.crypto import bytes_to_hex
from liqauction.utils.logger import get_logger

logger = get_logger("bank")


class InMemoryAssetBank:
    """Balances keyed by (asset, account)."""

    def __init__(self, engine_account: bytes):
        self.engine_account = engine_account
        self.balances: Dict[Tuple[Asset, bytes], int] = defaultdict(int)

    def mint(self, asset: Asset, account: bytes, amount: int) -> None:
        """Credit an account out of thin air (genesis / test funding)."""
        if amount < 0:
            raise ValueError("amount must be >= 0")
        self.balances[(asset, account)] += amount

    def balance_of(self, asset: Asset, account: bytes) -> int:
        return self.balances.get((asset, account), 0)

    def _move(self, asset: Asset, frm: bytes, to: bytes, amount: int) -> bool:
        if amount < 0:
            return False
        if self.balance_of(asset, frm) < amount:
            logger.debug(f"Transfer of {amount} {asset} from {bytes_to_hex(frm)[:10]} rejected: insufficient balance")
            return False
        self.balances[(asset, frm)] -= amount
        self.balances[(asset, to)] += amount
        return True

    def transfer_out(self, asset: Asset, to: bytes, amount: int) -> bool:
        """Move funds from the engine to `to`."""
        return self._move(asset, self.engine_account, to, amount)

    def pull_in(self, asset: Asset, frm: bytes, amount: int) -> bool:
        """Move funds from `frm` to the engine."""
        return self._move(asset, frm, self.engine_account, amount)
