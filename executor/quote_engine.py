from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Optional, Sequence

from chain_clients.base_chain_client import ChainClient
from models.asset import Asset
from models.errors import PriceUnavailable, RouteUnavailable
from models.quote import SwapPlan

PriceSource = Callable[[str], Optional[int]]

PRICE_DECIMALS = 18
DISPLAY_PRECISION = Decimal("0.01")


class QuoteEngine:
    """Pure amount and swap-plan computations."""

    @staticmethod
    def price_of(asset: Asset, price_source: PriceSource) -> Decimal:
        """
        USD unit price of `asset`, rendered to two decimal places.

        Raises PriceUnavailable when the price is missing or renders to zero.
        """
        raw = price_source(asset.address)
        if raw is None:
            raise PriceUnavailable(asset.symbol)
        price = (Decimal(int(raw)) / (Decimal(10) ** PRICE_DECIMALS)).quantize(
            DISPLAY_PRECISION, rounding=ROUND_HALF_UP
        )
        if price <= 0:
            raise PriceUnavailable(asset.symbol)
        return price

    @staticmethod
    def token_amount(usd: Decimal, asset: Asset, price_source: PriceSource) -> Decimal:
        return Decimal(usd) / QuoteEngine.price_of(asset, price_source)

    @staticmethod
    def swap_plan(
        chain_client: ChainClient,
        input_asset: Asset,
        output_asset: Asset,
        amount: Decimal,
        liquidity_sources: Sequence[str],
        paths: Any,
        payload: Any,
    ) -> SwapPlan:
        """Exact-out quote for receiving `amount` of `output_asset`."""
        if paths is None or payload is None:
            raise RouteUnavailable(output_asset.symbol)

        quote = chain_client.quote(
            input_asset, output_asset, amount, True, list(liquidity_sources), paths, payload
        )
        price_impact = Decimal(0)
        if quote.amount_without_impact:
            price_impact = abs(quote.amount - quote.amount_without_impact) / quote.amount_without_impact * 100
        return SwapPlan(**quote.model_dump(), price_impact=price_impact)
