from pydantic import BaseModel, ConfigDict
from typing import Optional, Any, List

from chain_clients.base_chain_client import SubscriptionHandle

class ReserveSubscription(BaseModel):
    """
    Live reserve feed for one payout asset.

    `handle` is None only while the feed is being opened; payload, paths and
    liquidity_sources stay None until the first tick arrives.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    asset_address: str
    handle: Optional[SubscriptionHandle] = None
    payload: Optional[Any] = None
    paths: Optional[Any] = None
    liquidity_sources: Optional[List[str]] = None

    @property
    def is_ready(self) -> bool:
        return self.paths is not None and self.payload is not None
