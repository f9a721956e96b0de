import asyncio
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from chain_clients.base_chain_client import ChainClient
from models.errors import SubmissionFailed
from models.recipient import RecipientStatus
from models.routing_plan import Action, BatchHistory, RoutedSwap, RoutedTransfer
from store.recipient_store import RecipientStore

logger = logging.getLogger("route_assets_service")


class BatchResult(BaseModel):
    succeeded: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class BatchExecutor:
    """
    Runs routed recipients against the chain.

    Swaps go one at a time and a failed swap only fails its own recipient.
    Transfers are combined into one all-or-nothing batch call whose failure
    fails every member and is raised to the caller.
    """

    def __init__(self, chain_client: ChainClient, store: RecipientStore, action_timeout: Optional[float] = None):
        self.chain_client = chain_client
        self.store = store
        self.action_timeout = action_timeout

    async def _await(self, coro):
        if self.action_timeout:
            return await asyncio.wait_for(coro, timeout=self.action_timeout)
        return await coro

    def _mark_success(self, recipient_id: str):
        self.store.set_status(recipient_id, RecipientStatus.SUCCESS)
        self.store.mark_completed(recipient_id)

    def _mark_failed(self, recipient_id: str):
        self.store.set_status(recipient_id, RecipientStatus.FAILED)

    async def execute_one(self, recipient_id: str, action: Action) -> RecipientStatus:
        try:
            await self._await(action())
        except Exception as e:
            logger.error(f"Transaction for recipient {recipient_id} failed: {e!r}")
            self._mark_failed(recipient_id)
            return RecipientStatus.FAILED

        self._mark_success(recipient_id)
        return RecipientStatus.SUCCESS

    async def execute_swaps(self, swaps: List[RoutedSwap]) -> BatchResult:
        result = BatchResult()
        if not swaps:
            return result

        logger.info(f"Executing {len(swaps)} swap-and-send transaction(s) sequentially")
        for idx, swap in enumerate(swaps, start=1):
            status = await self.execute_one(swap.recipient_id, swap.action)
            if status == RecipientStatus.SUCCESS:
                result.succeeded.append(swap.recipient_id)
            else:
                result.failed.append(swap.recipient_id)
            logger.info(f"   Swap {idx}/{len(swaps)} -> {status.value}")

        logger.info(f"Swap batch done. Success: {len(result.succeeded)}, Failed: {len(result.failed)}")
        return result

    async def execute_transfers(self, transfers: List[RoutedTransfer]) -> BatchResult:
        result = BatchResult()
        if not transfers:
            return result

        first = self.store.get(transfers[0].recipient_id)
        history = BatchHistory(
            symbol=first.asset.symbol,
            from_address=str(self.chain_client.account),
            asset_address=first.asset.address,
        )
        extrinsics = [t.descriptor.extrinsic for t in transfers]
        logger.info(f"Submitting {len(extrinsics)} transfer(s) as one batch")

        try:
            await self._await(self.chain_client.submit_batch(extrinsics, self.chain_client.account, history))
        except Exception as e:
            logger.error(f"Batch transfer submission failed: {e!r}")
            for transfer in transfers:
                self._mark_failed(transfer.recipient_id)
                result.failed.append(transfer.recipient_id)
            raise SubmissionFailed(f"Batch transfer of {len(transfers)} recipient(s) failed: {e}") from e

        for transfer in transfers:
            self._mark_success(transfer.recipient_id)
            result.succeeded.append(transfer.recipient_id)
        logger.info(f"Batch transfer confirmed for {len(transfers)} recipient(s)")
        return result
