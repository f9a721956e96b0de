import logging
import traceback
from datetime import datetime
from decimal import Decimal
from typing import Any, BinaryIO, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from api_clients.asset_client import AssetClient
from api_clients.history_client import HistoryClient
from chain_clients.base_chain_client import ChainClient
from config import RoutingSettings
from csv_loader import RecipientCSVLoader
from models.asset import Asset
from models.errors import (
    AssetUnresolved,
    InvalidStatusTransition,
    PriceUnavailable,
    RouteUnavailable,
    SubmissionFailed,
)
from models.import_report import ImportReport
from models.processing_state import ProcessingState, RoutedToken
from models.recipient import Recipient, RecipientStatus
from models.routing_log import RoutingRunLog, RunStatus
from store.recipient_store import RecipientStore
from utils.result_writer import ResultWriter

from .batch_executor import BatchExecutor
from .recipient_router import RecipientRouter
from .subscription_manager import SubscriptionManager

logger = logging.getLogger("route_assets_service")


class RoutingRunResult(BaseModel):
    run_id: str
    status: RunStatus
    transfers: int = 0
    swaps: int = 0
    succeeded: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    unrouted: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


class RoutingService:
    """
    Commands of the payout batch: import, edit, choose input asset, navigate
    stages, run the routing, retry one recipient, cancel.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        asset_client: Optional[AssetClient] = None,
        settings: Optional[RoutingSettings] = None,
        history_client: Optional[HistoryClient] = None,
        result_writer: Optional[ResultWriter] = None,
        csv_loader: Optional[RecipientCSVLoader] = None,
    ):
        self.settings = settings or RoutingSettings()
        self.chain_client = chain_client
        self.asset_client = asset_client or AssetClient(
            base_url=self.settings.backend_url,
            default_symbol=self.settings.default_asset_symbol,
        )
        self.history_client = history_client or HistoryClient(base_url=self.settings.backend_url)
        if result_writer is None and self.settings.results_dir:
            result_writer = ResultWriter(self.settings.results_dir)
        self.result_writer = result_writer
        self.csv_loader = csv_loader or RecipientCSVLoader()

        self.store = RecipientStore(chain_client, self.asset_client)
        self.subscriptions = SubscriptionManager(chain_client, self.store, self.settings.liquidity_sources)
        self.router = RecipientRouter(chain_client, self.store, self.subscriptions, self.settings.liquidity_sources)
        self.executor = BatchExecutor(chain_client, self.store, self.settings.action_timeout_seconds)
        self.state = self._initial_state()

    def _initial_state(self) -> ProcessingState:
        input_asset = self.asset_client.get_by_symbol(self.settings.input_asset_symbol) or self.asset_client.default_asset()
        return ProcessingState(input_asset=input_asset, stage_count=self.settings.stage_count)

    # ── Stages / input asset ──────────────────────────────────────────────

    def next_stage(self) -> int:
        return self.state.move_stage(1)

    def previous_stage(self) -> int:
        return self.state.move_stage(-1)

    async def set_input_asset(self, asset: Union[Asset, str]) -> Asset:
        if isinstance(asset, str):
            resolved = self.asset_client.get_by_symbol(asset)
            if resolved is None:
                raise AssetUnresolved(asset)
            asset = resolved
        self.state.input_asset = asset
        logger.info(f"Input asset set to {asset.symbol}")
        await self.subscriptions.start(asset)
        return asset

    # ── Recipients ────────────────────────────────────────────────────────

    async def load_file(self, source: BinaryIO, file_name: Optional[str] = None) -> ImportReport:
        """Replaces the batch with the recipients of `source` and subscribes to their reserves."""
        self.subscriptions.stop()
        self.store.clear()
        report = self.store.load(self.csv_loader.iter_rows(source), file_name=file_name)
        await self.subscriptions.start(self.state.input_asset)
        return report

    async def load_path(self, path: str) -> ImportReport:
        with open(path, "rb") as f:
            return await self.load_file(f, file_name=path)

    async def edit_recipient(
        self,
        recipient_id: str,
        name: Optional[str] = None,
        wallet: Optional[str] = None,
        usd: Optional[Decimal] = None,
        asset_symbol: Optional[str] = None,
    ) -> Recipient:
        asset = self.store.resolve_asset(asset_symbol) if asset_symbol else None
        before = set(self.store.payout_asset_addresses(exclude=self.state.input_asset.address))
        recipient = self.store.edit(recipient_id, name=name, wallet=wallet, usd=usd, asset=asset)
        after = set(self.store.payout_asset_addresses(exclude=self.state.input_asset.address))
        if before != after:
            logger.info("Payout assets changed; resubscribing to reserves")
            await self.subscriptions.start(self.state.input_asset)
        return recipient

    def cancel_processing(self):
        self.subscriptions.stop()
        self.store.clear()
        self.state = self._initial_state()
        logger.info("Processing cancelled; batch cleared")

    # ── Execution ─────────────────────────────────────────────────────────

    async def run_assets_routing(self, run_id: Optional[str] = None) -> RoutingRunResult:
        """
        Routes every incomplete recipient: swaps first (sequential, isolated
        failures), then all direct transfers as one batch.

        A failed transfer batch marks the run failed and re-raises
        SubmissionFailed after every member is marked Failed.
        """
        run_id = run_id or str(uuid4())
        input_asset = self.state.input_asset
        start_time = datetime.now()
        logger.info(f"Starting routing run {run_id} from {input_asset.symbol}")

        log_entry = RoutingRunLog(
            run_id=run_id,
            input_asset_symbol=input_asset.symbol,
            status=RunStatus.CLASSIFYING,
            started_at=start_time,
        )
        log_id = self.history_client.create(log_entry.model_dump(mode="json"))
        result = RoutingRunResult(run_id=run_id, status=RunStatus.CLASSIFYING)

        try:
            recipients = self.store.incomplete()
            plan = self.router.classify(recipients, input_asset)
            result.transfers = len(plan.transfers)
            result.swaps = len(plan.swaps)
            result.unrouted = [
                {"recipient_id": u.recipient_id, "reason": u.reason.value, "detail": u.detail}
                for u in plan.unrouted
            ]

            self._update_status(log_id, RunStatus.SWAPPING)
            swap_result = await self.executor.execute_swaps(plan.swaps)
            result.succeeded.extend(swap_result.succeeded)
            result.failed.extend(swap_result.failed)

            self._update_status(log_id, RunStatus.TRANSFERRING)
            transfer_result = await self.executor.execute_transfers(plan.transfers)
            result.succeeded.extend(transfer_result.succeeded)
            result.failed.extend(transfer_result.failed)

        except SubmissionFailed as e:
            logger.error(f"Routing run {run_id} failed: {e}")
            result.failed.extend(t.recipient_id for t in plan.transfers)
            result.status = RunStatus.FAILED
            result.error = str(e)
            self._update_status(log_id, RunStatus.FAILED, error=str(e))
            self._save_result(result, start_time)
            raise

        except Exception as e:
            logger.error(f"Routing run {run_id} failed: {e}")
            logger.error(traceback.format_exc())
            self._update_status(log_id, RunStatus.FAILED, error=str(e))
            raise

        self.state.tokens_routed = self._tokens_routed()
        result.status = RunStatus.COMPLETED
        self.history_client.update(log_id, {
            "status": RunStatus.COMPLETED.value,
            "records_total": len(recipients),
            "records_processed": len(result.succeeded),
            "records_failed": len(result.failed),
            "records_unrouted": len(result.unrouted),
            "finished_at": datetime.now().isoformat(),
        })
        self._save_result(result, start_time)

        logger.info(
            f"Routing run {run_id} complete. Success: {len(result.succeeded)}, "
            f"Failed: {len(result.failed)}, Unrouted: {len(result.unrouted)}"
        )
        return result

    async def repeat_transaction(self, recipient_id: str) -> RecipientStatus:
        """Re-runs the single transaction of one recipient."""
        recipient = self.store.get(recipient_id)
        if recipient.is_completed:
            raise InvalidStatusTransition(f"Recipient {recipient_id} is already paid")
        if recipient.status == RecipientStatus.ADDRESS_INVALID:
            raise InvalidStatusTransition(f"Recipient {recipient_id} has an invalid address")

        recipient = self.store.set_status(recipient_id, RecipientStatus.PENDING)
        try:
            item = self.router.route_one(recipient, self.state.input_asset)
        except (RouteUnavailable, PriceUnavailable):
            self.store.set_status(recipient_id, RecipientStatus.FAILED)
            raise

        status = await self.executor.execute_one(recipient_id, item.action)
        if status == RecipientStatus.SUCCESS:
            self.state.tokens_routed = self._tokens_routed()
        logger.info(f"Retry of recipient {recipient_id} -> {status.value}")
        return status

    # ── Helpers ───────────────────────────────────────────────────────────

    def _tokens_routed(self) -> List[RoutedToken]:
        totals: Dict[str, RoutedToken] = {}
        for recipient in self.store.completed():
            if recipient.amount is None:
                continue
            entry = totals.get(recipient.asset.address)
            if entry is None:
                totals[recipient.asset.address] = RoutedToken(token=recipient.asset, amount=recipient.amount)
            else:
                entry.amount += recipient.amount
        return list(totals.values())

    def _update_status(self, log_id: Optional[int], status: RunStatus, error: str = None):
        update_data = {"status": status.value}
        if error:
            update_data["error_summary"] = error
            update_data["finished_at"] = datetime.now().isoformat()
        self.history_client.update(log_id, update_data)

    def _save_result(self, result: RoutingRunResult, start_time: datetime):
        if self.result_writer is None:
            return
        self.result_writer.save_result(result.run_id, {
            "run_id": result.run_id,
            "input_asset": self.state.input_asset.symbol,
            "file_name": self.store.file_name,
            "execution_summary": {
                "started_at": start_time,
                "finished_at": datetime.now(),
                "status": result.status.value,
                "succeeded": len(result.succeeded),
                "failed": len(result.failed),
                "unrouted": len(result.unrouted),
            },
            "recipient_results": [
                r.model_dump(mode="json") for r in self.store.recipients()
            ],
        })
