import os
from typing import List, Optional

from pydantic import BaseModel


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


class RoutingSettings(BaseModel):
    backend_url: Optional[str] = None
    default_asset_symbol: str = "XOR"
    input_asset_symbol: str = "XOR"
    liquidity_source: Optional[str] = None
    action_timeout_seconds: Optional[float] = None
    stage_count: int = 4
    results_dir: Optional[str] = None
    log_level: str = "INFO"

    @property
    def liquidity_sources(self) -> List[str]:
        return [self.liquidity_source] if self.liquidity_source else []

    @classmethod
    def from_env(cls) -> "RoutingSettings":
        """Reads settings from the environment (call load_dotenv() first)."""
        return cls(
            backend_url=os.getenv("ROUTING_BACKEND_URL") or None,
            default_asset_symbol=os.getenv("DEFAULT_ASSET_SYMBOL", "XOR"),
            input_asset_symbol=os.getenv("INPUT_ASSET_SYMBOL", "XOR"),
            liquidity_source=os.getenv("LIQUIDITY_SOURCE") or None,
            action_timeout_seconds=_optional_float(os.getenv("ACTION_TIMEOUT_SECONDS")),
            stage_count=int(os.getenv("STAGE_COUNT", "4")),
            results_dir=os.getenv("RESULTS_DIR") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
