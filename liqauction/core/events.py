"""
Events - Telemetry for off-chain reconstruction of auction lifecycles.

Every state change emits a typed event into an EventLog. The log is an
append-only list that can be filtered by type or auction, and each event is
also written to the `events` logger.
"""

from dataclasses import asdict, dataclass
from typing import Callable, List, Optional, Type, TypeVar

from liqauction.crypto import bytes_to_hex
from liqauction.utils.logger import get_logger

logger = get_logger("events")


@dataclass(frozen=True)
class Event:
    block_number: int
    timestamp: int

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, bytes):
                data[key] = bytes_to_hex(value)
        data["event"] = type(self).__name__
        return data


@dataclass(frozen=True)
class AuctionOpened(Event):
    auction_id: int
    debtor: bytes
    asset: str
    debt_amount: int
    collateral_amount: int
    start_price: int
    floor_price: int


@dataclass(frozen=True)
class BidSettled(Event):
    auction_id: int
    bidder: bytes
    price: int
    total_cost: int
    collateral_amount: int
    refund: int


@dataclass(frozen=True)
class AuctionExpired(Event):
    auction_id: int
    cleaner: bytes
    incentive: int


@dataclass(frozen=True)
class ConfigUpdated(Event):
    actor: bytes
    duration: int
    min_price_factor: int
    liquidation_bonus: int


@dataclass(frozen=True)
class BidCommitted(Event):
    auction_id: int
    bidder: bytes
    commit_id: bytes
    reveal_deadline: int


@dataclass(frozen=True)
class BidRevealed(Event):
    auction_id: int
    bidder: bytes
    commit_id: bytes
    max_price: int


@dataclass(frozen=True)
class MevAttemptDetected(Event):
    auction_id: int
    bidder: bytes
    reason: str
    price: int


@dataclass(frozen=True)
class FlashloanDetected(Event):
    auction_id: int
    bidder: bytes
    balance: int


@dataclass(frozen=True)
class EmergencyWithdrawal(Event):
    actor: bytes
    asset: str
    amount: int


E = TypeVar("E", bound=Event)


class EventLog:
    """Append-only event sink."""

    def __init__(self):
        self.events: List[Event] = []
        self._subscribers: List[Callable[[Event], None]] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)
        logger.debug(f"{type(event).__name__}: {event.to_dict()}")
        for callback in self._subscribers:
            callback(event)

    def subscribe(self, callback: Callable[[Event], None]) -> None:
        self._subscribers.append(callback)

    def of_type(self, event_type: Type[E], auction_id: Optional[int] = None) -> List[E]:
        return [
            e for e in self.events
            if isinstance(e, event_type)
            and (auction_id is None or getattr(e, "auction_id", None) == auction_id)
        ]

    def __len__(self) -> int:
        return len(self.events)
