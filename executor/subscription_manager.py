import logging
from typing import Callable, Dict, List, Optional, Sequence

from chain_clients.base_chain_client import ChainClient, SubscriptionHandle
from models.asset import Asset
from models.subscription import ReserveSubscription
from store.recipient_store import RecipientStore
from utils.retry import RetryManager

logger = logging.getLogger("route_assets_service")

SubscriptionListener = Callable[[ReserveSubscription], None]


class SubscriptionManager:
    """
    Keeps exactly one reserve subscription per distinct payout asset.

    Each tick resolves swap paths for the asset, stores them, and recomputes
    the token amounts of the recipients paid in that asset.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        store: RecipientStore,
        liquidity_sources: Sequence[str] = (),
    ):
        self.chain_client = chain_client
        self.store = store
        self.liquidity_sources = list(liquidity_sources)
        self.input_asset: Optional[Asset] = None
        self._subscriptions: Dict[str, ReserveSubscription] = {}
        self._listeners: List[SubscriptionListener] = []
        # bumped on stop(); ticks captured under an older value are stale
        self._generation = 0

    def add_listener(self, listener: SubscriptionListener):
        self._listeners.append(listener)

    async def start(self, input_asset: Asset):
        self.stop()
        self.input_asset = input_asset
        generation = self._generation

        addresses = self.store.payout_asset_addresses(exclude=input_asset.address)
        logger.info(f"Subscribing to reserves for {len(addresses)} payout asset(s) against {input_asset.symbol}")

        for address in addresses:
            if generation != self._generation:
                # superseded by a newer start()/stop()
                return
            self._subscriptions[address] = ReserveSubscription(asset_address=address)
            try:
                handle = await self._open(input_asset.address, address, generation)
            except Exception as e:
                logger.error(f"Could not subscribe to reserves of {address}: {e}")
                if generation == self._generation:
                    self._subscriptions.pop(address, None)
                continue

            if generation != self._generation:
                # stopped while opening
                handle.cancel()
                return
            current = self._subscriptions[address]
            self._subscriptions[address] = current.model_copy(update={"handle": handle})

    @RetryManager.with_retry(max_attempts=3, base_delay=0.5)
    async def _open(self, input_address: str, output_address: str, generation: int) -> SubscriptionHandle:
        def on_update(payload):
            self._on_reserves(generation, input_address, output_address, payload)

        return self.chain_client.subscribe_reserves(
            input_address, output_address, self.liquidity_sources, on_update
        )

    def _on_reserves(self, generation: int, input_address: str, output_address: str, payload):
        if generation != self._generation or output_address not in self._subscriptions:
            logger.debug(f"Ignoring stale reserves update for {output_address}")
            return

        try:
            paths, liquidity_sources = self.chain_client.resolve_paths_and_sources(
                input_address, output_address, payload, self.chain_client.enabled_assets()
            )
        except Exception as e:
            logger.error(f"Failed to resolve swap paths for {output_address}: {e}")
            return

        current = self._subscriptions[output_address]
        updated = current.model_copy(update={
            "payload": payload,
            "paths": paths,
            "liquidity_sources": liquidity_sources,
        })
        self._subscriptions[output_address] = updated

        refreshed = self.store.refresh_amounts(output_address)
        logger.debug(f"Reserves tick for {output_address}: refreshed {refreshed} recipient(s)")

        for listener in list(self._listeners):
            try:
                listener(updated)
            except Exception as e:
                logger.error(f"Subscription listener failed: {e}")

    def stop(self) -> int:
        """
        Cancels every open subscription, then forgets them all.

        A failing cancel is logged and does not keep the others open.
        Returns the number of handles released.
        """
        self._generation += 1
        subscriptions = list(self._subscriptions.values())
        released = 0
        try:
            for subscription in subscriptions:
                if subscription.handle is None:
                    continue
                try:
                    subscription.handle.cancel()
                    released += 1
                except Exception as e:
                    logger.error(f"Failed to release reserves subscription {subscription.asset_address}: {e}")
        finally:
            self._subscriptions = {}

        if subscriptions:
            logger.info(f"Released {released}/{len(subscriptions)} reserves subscription(s)")
        return released

    def get(self, asset_address: str) -> Optional[ReserveSubscription]:
        return self._subscriptions.get(asset_address)

    def asset_addresses(self) -> List[str]:
        return list(self._subscriptions.keys())

    def __len__(self) -> int:
        return len(self._subscriptions)
