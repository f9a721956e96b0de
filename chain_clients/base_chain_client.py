from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Callable, List, Optional, Sequence, Tuple

from models.asset import Asset
from models.quote import SwapQuote


class SubscriptionHandle(ABC):
    """Cancelable handle of a live chain feed."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class ChainClient(ABC):
    """
    Capabilities of the ledger client the router depends on.

    Lookups (validation, prices, path resolution, quotes) are synchronous;
    every call that submits a transaction is a coroutine.
    """

    @property
    @abstractmethod
    def account(self) -> Any:
        """Signer account used for batch submissions."""

    @abstractmethod
    def validate_address(self, address: str) -> bool:
        pass

    @abstractmethod
    def format_address(self, address: str) -> str:
        pass

    @abstractmethod
    def price_of(self, asset_address: str) -> Optional[int]:
        """USD price as an 18-decimal fixed point integer, None if unknown."""

    @abstractmethod
    def enabled_assets(self) -> List[str]:
        pass

    @abstractmethod
    def subscribe_reserves(
        self,
        input_asset_address: str,
        output_asset_address: str,
        liquidity_sources: Sequence[str],
        on_update: Callable[[Any], None],
    ) -> SubscriptionHandle:
        pass

    @abstractmethod
    def resolve_paths_and_sources(
        self,
        input_asset_address: str,
        output_asset_address: str,
        payload: Any,
        enabled_assets: List[str],
    ) -> Tuple[Any, List[str]]:
        pass

    @abstractmethod
    def quote(
        self,
        input_asset: Asset,
        output_asset: Asset,
        amount: Decimal,
        is_exact_out: bool,
        liquidity_sources: Sequence[str],
        paths: Any,
        payload: Any,
    ) -> SwapQuote:
        pass

    @abstractmethod
    def build_transfer(self, asset: Asset, to_address: str, amount: Decimal) -> Any:
        """Builds (without submitting) a transfer call for batch submission."""

    @abstractmethod
    async def transfer(self, asset: Asset, to_address: str, amount: Decimal) -> Any:
        pass

    @abstractmethod
    async def swap_and_send(
        self,
        to_address: str,
        input_asset: Asset,
        output_asset: Asset,
        amount: Decimal,
        amount_equivalent: Decimal,
        slippage: Optional[Decimal] = None,
        is_exact_out: bool = True,
    ) -> Any:
        pass

    @abstractmethod
    async def submit_batch(self, extrinsics: List[Any], signer: Any, history: Any) -> Any:
        pass
