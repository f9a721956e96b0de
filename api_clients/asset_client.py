from typing import Any, Dict, List, Optional
from api_clients.base_client import BaseClient
from models.asset import Asset
import logging

logger = logging.getLogger("route_assets_service")

XOR_ADDRESS = "0x0200000000000000000000000000000000000000000000000000000000000000"

class AssetClient(BaseClient):
    """
    Symbol -> asset descriptor lookup.

    Built-in registry of the well known assets, extended with the backend's
    `/assets` listing when a backend URL is configured.
    """
    DEFAULT_SYMBOL = "XOR"

    MOCK_DATA = [
        {"address": XOR_ADDRESS, "symbol": "XOR", "name": "SORA", "decimals": 18},
        {"address": "0x0200040000000000000000000000000000000000000000000000000000000000", "symbol": "VAL", "name": "SORA Validator Token", "decimals": 18},
        {"address": "0x0200050000000000000000000000000000000000000000000000000000000000", "symbol": "PSWAP", "name": "Polkaswap", "decimals": 18},
        {"address": "0x0200060000000000000000000000000000000000000000000000000000000000", "symbol": "DAI", "name": "Dai Stablecoin", "decimals": 18},
        {"address": "0x0200070000000000000000000000000000000000000000000000000000000000", "symbol": "ETH", "name": "Ether", "decimals": 18},
        {"address": "0x0200080000000000000000000000000000000000000000000000000000000000", "symbol": "XSTUSD", "name": "SORA Synthetic USD", "decimals": 18},
    ]

    def __init__(self, base_url: Optional[str] = None, default_symbol: Optional[str] = None):
        super().__init__(base_url)
        self.default_symbol = (default_symbol or self.DEFAULT_SYMBOL).upper()
        self._assets: Optional[Dict[str, Asset]] = None

    def list(self, filters: Dict[str, Any] = None) -> List[Asset]:
        return list(self._table().values())

    def get_by_symbol(self, symbol: Optional[str]) -> Optional[Asset]:
        if not symbol:
            return None
        return self._table().get(symbol.strip().upper())

    def get_by_address(self, address: str) -> Optional[Asset]:
        return next((a for a in self._table().values() if a.address == address), None)

    def default_asset(self) -> Asset:
        asset = self.get_by_symbol(self.default_symbol)
        if asset is None:
            raise ValueError(f"Default asset {self.default_symbol} is not registered.")
        return asset

    def _table(self) -> Dict[str, Asset]:
        if self._assets is None:
            rows = list(self.MOCK_DATA)
            remote = self._get("/assets")
            if remote:
                logger.info(f"Loaded {len(remote)} assets from backend registry")
                rows.extend(remote)
            assets: Dict[str, Asset] = {}
            for row in rows:
                asset = Asset(**row)
                assets[asset.symbol.upper()] = asset
            self._assets = assets
        return self._assets
