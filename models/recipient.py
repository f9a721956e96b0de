from pydantic import BaseModel, Field
from typing import Optional, Dict, Set
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from models.asset import Asset

class RecipientStatus(str, Enum):
    ADDRESS_INVALID = "Address invalid"
    ADDRESS_VALID = "Address valid"
    PENDING = "Pending"
    SUCCESS = "Success"
    FAILED = "Failed"

# Success is terminal; Failed only leaves through a retry (-> Pending).
ALLOWED_TRANSITIONS: Dict[RecipientStatus, Set[RecipientStatus]] = {
    RecipientStatus.ADDRESS_VALID: {RecipientStatus.PENDING},
    RecipientStatus.ADDRESS_INVALID: {RecipientStatus.PENDING},
    RecipientStatus.PENDING: {RecipientStatus.PENDING, RecipientStatus.SUCCESS, RecipientStatus.FAILED},
    RecipientStatus.FAILED: {RecipientStatus.PENDING},
    RecipientStatus.SUCCESS: set(),
}

def can_transition(current: RecipientStatus, new: RecipientStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]

class Recipient(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = ""
    wallet: str
    usd: Decimal
    asset: Asset
    amount: Optional[Decimal] = None
    status: RecipientStatus = RecipientStatus.ADDRESS_INVALID
    is_completed: bool = False
