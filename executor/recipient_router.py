import logging
from decimal import Decimal
from typing import Iterable, Sequence, Union

from chain_clients.base_chain_client import ChainClient
from executor.quote_engine import QuoteEngine
from executor.subscription_manager import SubscriptionManager
from models.asset import Asset
from models.errors import PriceUnavailable, RouteUnavailable
from models.recipient import Recipient, RecipientStatus
from models.routing_plan import (
    RoutedSwap,
    RoutedTransfer,
    RoutingPlan,
    TransferDescriptor,
    TransferHistory,
    UnroutedReason,
    UnroutedRecipient,
)
from store.recipient_store import RecipientStore

logger = logging.getLogger("route_assets_service")

# Addresses already in the alternate chain format are sent as-is
ALTERNATE_CHAIN_PREFIX = "cn"


class RecipientRouter:
    """Splits recipients into direct transfers and swap-and-send actions."""

    def __init__(
        self,
        chain_client: ChainClient,
        store: RecipientStore,
        subscriptions: SubscriptionManager,
        liquidity_sources: Sequence[str] = (),
    ):
        self.chain_client = chain_client
        self.store = store
        self.subscriptions = subscriptions
        self.liquidity_sources = list(liquidity_sources)

    def classify(self, recipients: Iterable[Recipient], input_asset: Asset) -> RoutingPlan:
        """
        Routes every given recipient.

        Recipients with an invalid address are reported as unrouted and keep
        their status; all others are moved to Pending before their route is
        built. A recipient that cannot be routed yet stays Pending and is
        listed in `plan.unrouted`.
        """
        plan = RoutingPlan()

        for recipient in recipients:
            if recipient.status == RecipientStatus.ADDRESS_INVALID:
                plan.unrouted.append(UnroutedRecipient(
                    recipient_id=recipient.id,
                    reason=UnroutedReason.ADDRESS_INVALID,
                    detail=recipient.wallet,
                ))
                continue

            recipient = self.store.set_status(recipient.id, RecipientStatus.PENDING)
            try:
                item = self.route_one(recipient, input_asset)
            except PriceUnavailable as e:
                plan.unrouted.append(UnroutedRecipient(recipient.id, UnroutedReason.PRICE_UNAVAILABLE, str(e)))
                continue
            except RouteUnavailable as e:
                plan.unrouted.append(UnroutedRecipient(recipient.id, UnroutedReason.ROUTE_UNAVAILABLE, str(e)))
                continue

            if isinstance(item, RoutedTransfer):
                plan.transfers.append(item)
            else:
                plan.swaps.append(item)

        if plan.unrouted:
            logger.warning(f"{len(plan.unrouted)} recipient(s) could not be routed in this pass")
        logger.info(
            f"Routing plan: {len(plan.transfers)} transfer(s), {len(plan.swaps)} swap(s), "
            f"{len(plan.unrouted)} unrouted"
        )
        return plan

    def route_one(self, recipient: Recipient, input_asset: Asset) -> Union[RoutedTransfer, RoutedSwap]:
        if recipient.asset.address == input_asset.address:
            return self._build_transfer(recipient)
        return self._build_swap(recipient, input_asset)

    def _build_transfer(self, recipient: Recipient) -> RoutedTransfer:
        asset = recipient.asset
        amount = QuoteEngine.token_amount(recipient.usd, asset, self.chain_client.price_of)

        if recipient.wallet.startswith(ALTERNATE_CHAIN_PREFIX):
            to_address = recipient.wallet
        else:
            to_address = self.chain_client.format_address(recipient.wallet)

        descriptor = TransferDescriptor(
            extrinsic=self.chain_client.build_transfer(asset, recipient.wallet, amount),
            history=TransferHistory(
                symbol=asset.symbol,
                to=to_address,
                amount=f"{amount:f}",
                asset_address=asset.address,
            ),
        )
        chain_client = self.chain_client
        wallet = recipient.wallet

        async def action():
            return await chain_client.transfer(asset, wallet, amount)

        return RoutedTransfer(recipient_id=recipient.id, amount=amount, descriptor=descriptor, action=action)

    def _build_swap(self, recipient: Recipient, input_asset: Asset) -> RoutedSwap:
        output_asset = recipient.asset
        subscription = self.subscriptions.get(output_asset.address)
        if subscription is None or not subscription.is_ready:
            raise RouteUnavailable(output_asset.symbol)

        token_equivalent = QuoteEngine.token_amount(recipient.usd, output_asset, self.chain_client.price_of)
        plan = QuoteEngine.swap_plan(
            self.chain_client,
            input_asset,
            output_asset,
            token_equivalent,
            self.liquidity_sources,
            subscription.paths,
            subscription.payload,
        )
        chain_client = self.chain_client
        wallet = recipient.wallet
        amount_in: Decimal = plan.amount

        async def action():
            return await chain_client.swap_and_send(
                wallet, input_asset, output_asset, amount_in, token_equivalent, None, True
            )

        return RoutedSwap(recipient_id=recipient.id, amount=token_equivalent, plan=plan, action=action)
