from pydantic import BaseModel
from decimal import Decimal

class SwapQuote(BaseModel):
    amount: Decimal
    fee: Decimal
    rewards: Decimal = Decimal(0)
    amount_without_impact: Decimal

class SwapPlan(SwapQuote):
    price_impact: Decimal = Decimal(0)
