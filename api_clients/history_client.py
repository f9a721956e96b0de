from typing import Any, Dict, Optional
from api_clients.base_client import BaseClient
import logging

logger = logging.getLogger("route_assets_service")

class HistoryClient(BaseClient):
    """Stores routing run logs on the backend. No-op without a backend URL."""

    def create(self, data: Dict[str, Any]) -> Optional[int]:
        resp = self._post("/routing/runs", json=data)
        if resp and "id" in resp:
            return resp["id"]
        return None

    def update(self, log_id: Optional[int], updates: Dict[str, Any]) -> bool:
        if not log_id:
            return False
        resp = self._put(f"/routing/runs/{log_id}", json=updates)
        return resp.get("success", False) if resp else False
