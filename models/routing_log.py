from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from enum import Enum
from datetime import datetime

class RunStatus(str, Enum):
    QUEUED = "queued"
    CLASSIFYING = "classifying"
    SWAPPING = "swapping"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    FAILED = "failed"

class RoutingRunLog(BaseModel):
    id: Optional[int] = None
    run_id: str
    input_asset_symbol: str
    status: RunStatus = RunStatus.QUEUED
    execution_metadata: Optional[Dict[str, Any]] = None
    records_total: int = 0
    records_processed: int = 0
    records_failed: int = 0
    records_unrouted: int = 0
    error_summary: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
