from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from pydantic import BaseModel

from models.quote import SwapPlan

Action = Callable[[], Awaitable[Any]]

class UnroutedReason(str, Enum):
    ADDRESS_INVALID = "address_invalid"
    PRICE_UNAVAILABLE = "price_unavailable"
    ROUTE_UNAVAILABLE = "route_unavailable"

class TransferHistory(BaseModel):
    symbol: str
    to: str
    amount: str
    asset_address: str
    type: str = "Transfer"

class BatchHistory(BaseModel):
    symbol: str
    from_address: str
    asset_address: str
    type: str = "Transfer"

@dataclass
class TransferDescriptor:
    extrinsic: Any
    history: TransferHistory

@dataclass
class RoutedTransfer:
    recipient_id: str
    amount: Decimal
    descriptor: TransferDescriptor
    action: Action

@dataclass
class RoutedSwap:
    recipient_id: str
    amount: Decimal
    plan: SwapPlan
    action: Action

@dataclass
class UnroutedRecipient:
    recipient_id: str
    reason: UnroutedReason
    detail: Optional[str] = None

@dataclass
class RoutingPlan:
    transfers: List[RoutedTransfer] = field(default_factory=list)
    swaps: List[RoutedSwap] = field(default_factory=list)
    unrouted: List[UnroutedRecipient] = field(default_factory=list)

    def recipient_ids(self) -> List[str]:
        return (
            [t.recipient_id for t in self.transfers]
            + [s.recipient_id for s in self.swaps]
            + [u.recipient_id for u in self.unrouted]
        )
