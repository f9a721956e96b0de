import requests
from typing import Any, Dict, Optional
import os
import logging

logger = logging.getLogger("route_assets_service")

class BaseClient:
    def __init__(self, base_url: Optional[str] = None):
        self.base_url = base_url or os.getenv("ROUTING_BACKEND_URL")
        self.session = requests.Session()
        api_key = os.getenv("ROUTING_BACKEND_API_KEY")
        if api_key:
            self.session.headers.update({"X-API-Key": api_key})

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _get(self, endpoint: str, params: Dict = None) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            resp = self.session.get(f"{self.base_url}{endpoint}", params=params, timeout=10)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()
        except Exception as e:
            logger.error(f"GET {endpoint} failed: {e}")
            return None

    def _post(self, endpoint: str, json: Dict = None) -> Optional[Dict]:
        if not self.enabled:
            return None
        try:
            resp = self.session.post(f"{self.base_url}{endpoint}", json=json, timeout=10)
            resp.raise_for_status()
            return resp.json()
        except Exception as e:
            logger.error(f"POST {endpoint} failed: {e}")
            if getattr(e, "response", None) is not None:
                logger.error(f"Response: {e.response.text}")
            return None

    def _put(self, endpoint: str, json: Dict = None) -> Optional[Dict]:
        if not self.enabled:
            return None
        try:
            resp = self.session.put(f"{self.base_url}{endpoint}", json=json, timeout=10)
            resp.raise_for_status()
            return resp.json()
        except Exception as e:
            logger.error(f"PUT {endpoint} failed: {e}")
            return None
