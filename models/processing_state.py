from pydantic import BaseModel, Field
from typing import List
from decimal import Decimal

from models.asset import Asset

class RoutedToken(BaseModel):
    token: Asset
    amount: Decimal

class ProcessingState(BaseModel):
    current_stage_index: int = 0
    stage_count: int = 4
    input_asset: Asset
    tokens_routed: List[RoutedToken] = Field(default_factory=list)

    def move_stage(self, step: int) -> int:
        """Moves the stage index by `step`, clamped to the valid range."""
        index = self.current_stage_index + step
        self.current_stage_index = max(0, min(index, self.stage_count - 1))
        return self.current_stage_index
