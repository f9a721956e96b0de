import asyncio
import logging
import re
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple
from uuid import uuid4

from .base_chain_client import ChainClient, SubscriptionHandle
from models.asset import Asset
from models.quote import SwapQuote

logger = logging.getLogger("route_assets_service")

# SS58 ("5...") or SORA ("cn...") base58 addresses
_ADDRESS_REGEX = re.compile(r"^(5|cn)[1-9A-HJ-NP-Za-km-z]{44,48}$")

FEE_RATE = Decimal("0.003")
FIXED_POINT = 10 ** 18


class MockSubscriptionHandle(SubscriptionHandle):
    def __init__(self, client: "MockChainClient", output_asset_address: str, callback: Callable[[Any], None]):
        self.client = client
        self.output_asset_address = output_asset_address
        self.callback = callback
        self.cancel_count = 0

    @property
    def active(self) -> bool:
        return self.cancel_count == 0

    def cancel(self) -> None:
        self.cancel_count += 1
        self.client._handles.discard(self)


class MockChainClient(ChainClient):
    """
    In-process ledger used for local runs and tests.

    Prices are given in USD and stored as 18-decimal fixed point values.
    Reserve payloads are dicts with a "rate" (input units per output unit)
    and an optional "impact" fraction; push them with `emit_reserves`.
    """

    def __init__(
        self,
        prices: Optional[Dict[str, Decimal]] = None,
        account: str = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY",
        latency: float = 0.0,
    ):
        self._account = account
        self.latency = latency
        self.prices: Dict[str, int] = {}
        for address, price in (prices or {}).items():
            self.set_price(address, price)
        self._handles: Set[MockSubscriptionHandle] = set()
        self.failing_addresses: Set[str] = set()
        self.fail_batch = False
        self.submitted: List[Dict[str, Any]] = []

    @property
    def account(self) -> str:
        return self._account

    def set_price(self, asset_address: str, usd_price: Optional[Decimal]):
        if usd_price is None:
            self.prices.pop(asset_address, None)
        else:
            self.prices[asset_address] = int(Decimal(usd_price) * FIXED_POINT)

    def validate_address(self, address: str) -> bool:
        return bool(address) and bool(_ADDRESS_REGEX.match(address.strip()))

    def format_address(self, address: str) -> str:
        return address.strip()

    def price_of(self, asset_address: str) -> Optional[int]:
        return self.prices.get(asset_address)

    def enabled_assets(self) -> List[str]:
        return list(self.prices.keys())

    # ── Reserves ──────────────────────────────────────────────────────────

    def subscribe_reserves(self, input_asset_address, output_asset_address, liquidity_sources, on_update):
        handle = MockSubscriptionHandle(self, output_asset_address, on_update)
        self._handles.add(handle)
        logger.debug(f"[MockChain] Subscribed to reserves {input_asset_address} -> {output_asset_address}")
        return handle

    def active_subscriptions(self, output_asset_address: Optional[str] = None) -> List[MockSubscriptionHandle]:
        return [
            h for h in self._handles
            if output_asset_address is None or h.output_asset_address == output_asset_address
        ]

    def emit_reserves(self, output_asset_address: str, payload: Any) -> int:
        """Delivers `payload` to every live subscription on the asset."""
        handles = self.active_subscriptions(output_asset_address)
        for handle in handles:
            handle.callback(payload)
        return len(handles)

    def resolve_paths_and_sources(self, input_asset_address, output_asset_address, payload, enabled_assets):
        if not payload:
            return None, []
        paths = {output_asset_address: [[input_asset_address, output_asset_address]]}
        return paths, list(payload.get("sources", []))

    def quote(self, input_asset, output_asset, amount, is_exact_out, liquidity_sources, paths, payload) -> SwapQuote:
        rate = Decimal(str(payload["rate"]))
        impact = Decimal(str(payload.get("impact", 0)))
        amount = Decimal(amount)
        if is_exact_out:
            without_impact = amount * rate
            result = without_impact * (1 + impact)
            fee = result * FEE_RATE
        else:
            without_impact = amount / rate
            result = without_impact * (1 - impact)
            fee = amount * FEE_RATE
        return SwapQuote(amount=result, fee=fee, amount_without_impact=without_impact)

    # ── Submissions ───────────────────────────────────────────────────────

    def build_transfer(self, asset: Asset, to_address: str, amount: Decimal) -> Dict[str, Any]:
        return {
            "call": "assets.transfer",
            "asset_id": asset.address,
            "to": to_address,
            "amount": str(int(Decimal(amount) * (10 ** asset.decimals))),
        }

    async def _submit(self, record: Dict[str, Any]) -> str:
        if self.latency:
            await asyncio.sleep(self.latency)
        tx_hash = f"0x{uuid4().hex}"
        record["hash"] = tx_hash
        self.submitted.append(record)
        return tx_hash

    async def transfer(self, asset, to_address, amount):
        logger.info(f"[MockChain] Transfer {amount} {asset.symbol} -> {to_address}")
        if to_address in self.failing_addresses:
            raise RuntimeError(f"Transfer to {to_address} rejected")
        return await self._submit({"type": "transfer", "asset": asset.address, "to": to_address, "amount": amount})

    async def swap_and_send(self, to_address, input_asset, output_asset, amount, amount_equivalent, slippage=None, is_exact_out=True):
        logger.info(
            f"[MockChain] Swap {amount} {input_asset.symbol} -> {amount_equivalent} {output_asset.symbol} for {to_address}"
        )
        if to_address in self.failing_addresses:
            raise RuntimeError(f"Swap and send to {to_address} rejected")
        return await self._submit({
            "type": "swap_and_send",
            "to": to_address,
            "input_asset": input_asset.address,
            "output_asset": output_asset.address,
            "amount": amount,
            "amount_equivalent": amount_equivalent,
        })

    async def submit_batch(self, extrinsics, signer, history):
        logger.info(f"[MockChain] Submitting batch of {len(extrinsics)} calls signed by {signer}")
        if self.fail_batch:
            raise RuntimeError("Batch submission rejected")
        return await self._submit({"type": "batch_all", "calls": list(extrinsics), "signer": signer, "history": history})
