from pydantic import BaseModel, Field
from typing import List, Optional

class SkippedRow(BaseModel):
    line_number: int
    reason: str
    fields: List[str] = Field(default_factory=list)

class ImportReport(BaseModel):
    file_name: Optional[str] = None
    loaded: int = 0
    address_invalid: int = 0
    unresolved_assets: List[str] = Field(default_factory=list)
    skipped_rows: List[SkippedRow] = Field(default_factory=list)
