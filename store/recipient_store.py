import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Optional, Union

from api_clients.asset_client import AssetClient
from chain_clients.base_chain_client import ChainClient
from csv_loader import CSVRow
from executor.quote_engine import QuoteEngine
from models.asset import Asset
from models.errors import (
    AssetUnresolved,
    InvalidStatusTransition,
    InvalidUsdAmount,
    PriceUnavailable,
    RecipientNotFound,
)
from models.import_report import ImportReport, SkippedRow
from models.recipient import Recipient, RecipientStatus, can_transition

logger = logging.getLogger("route_assets_service")

Listener = Callable[[str, Optional[Recipient]], None]


def parse_usd(value: Union[str, Decimal]) -> Decimal:
    """Parses a USD amount ("1,250.50" accepted); must be finite and non-negative."""
    try:
        usd = Decimal(value.replace(",", "")) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidUsdAmount(value)
    if not usd.is_finite() or usd < 0:
        raise InvalidUsdAmount(value)
    return usd


class RecipientStore:
    """
    Ordered in-memory collection of the batch recipients.

    Every write replaces the stored Recipient and notifies listeners with
    ("loaded" | "updated" | "cleared", recipient-or-None).
    """

    def __init__(self, chain_client: ChainClient, asset_client: AssetClient):
        self.chain_client = chain_client
        self.asset_client = asset_client
        self.file_name: Optional[str] = None
        self._recipients: Dict[str, Recipient] = {}
        self._listeners: List[Listener] = []

    # ── Listeners ─────────────────────────────────────────────────────────

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str, recipient: Optional[Recipient] = None):
        for listener in list(self._listeners):
            try:
                listener(event, recipient)
            except Exception as e:
                logger.error(f"Recipient listener failed on '{event}': {e}")

    # ── Loading ───────────────────────────────────────────────────────────

    def load(self, rows: Iterable[CSVRow], file_name: Optional[str] = None) -> ImportReport:
        """Replaces the collection with one recipient per valid row."""
        report = ImportReport(file_name=file_name)
        recipients: Dict[str, Recipient] = {}

        for row in rows:
            fields = [f.strip() for f in row.fields]
            name = fields[0] if len(fields) > 0 else ""
            wallet = fields[1] if len(fields) > 1 else ""
            raw_usd = fields[2] if len(fields) > 2 else ""
            symbol = fields[3] if len(fields) > 3 else ""

            try:
                usd = parse_usd(raw_usd)
            except InvalidUsdAmount as e:
                report.skipped_rows.append(SkippedRow(
                    line_number=row.line_number,
                    reason=str(e),
                    fields=row.fields,
                ))
                continue

            try:
                asset = self.resolve_asset(symbol)
            except AssetUnresolved as e:
                logger.warning(f"Line {row.line_number}: {e}. Falling back to {self.asset_client.default_symbol}")
                report.unresolved_assets.append(symbol)
                asset = self.asset_client.default_asset()

            recipient = Recipient(
                name=name,
                wallet=wallet,
                usd=usd,
                asset=asset,
                amount=self._amount_or_none(usd, asset),
                status=self._address_status(wallet),
            )
            if recipient.status == RecipientStatus.ADDRESS_INVALID:
                report.address_invalid += 1
            recipients[recipient.id] = recipient

        self._recipients = recipients
        self.file_name = file_name
        report.loaded = len(recipients)

        if report.skipped_rows:
            logger.warning(
                f"Skipped {len(report.skipped_rows)} malformed row(s): "
                + ", ".join(str(s.line_number) for s in report.skipped_rows[:10])
                + (" ..." if len(report.skipped_rows) > 10 else "")
            )
        logger.info(
            f"Loaded {report.loaded} recipients from {file_name or 'upload'} "
            f"({report.address_invalid} with invalid address)"
        )
        self._notify("loaded")
        return report

    def resolve_asset(self, symbol: Optional[str]) -> Asset:
        asset = self.asset_client.get_by_symbol(symbol)
        if asset is None:
            raise AssetUnresolved(symbol or "")
        return asset

    # ── Mutations ─────────────────────────────────────────────────────────

    def edit(
        self,
        recipient_id: str,
        name: Optional[str] = None,
        wallet: Optional[str] = None,
        usd: Optional[Decimal] = None,
        asset: Optional[Asset] = None,
    ) -> Recipient:
        recipient = self.get(recipient_id)
        if recipient.is_completed:
            raise InvalidStatusTransition(f"Recipient {recipient_id} is already paid and cannot be edited")

        updates = {}
        if name is not None:
            updates["name"] = name
        if wallet is not None:
            updates["wallet"] = wallet.strip()
            updates["status"] = self._address_status(updates["wallet"])
        if usd is not None:
            updates["usd"] = parse_usd(usd)
        if asset is not None:
            updates["asset"] = asset

        edited = recipient.model_copy(update=updates)
        edited = edited.model_copy(update={"amount": self._amount_or_none(edited.usd, edited.asset)})
        return self._replace(edited)

    def set_status(self, recipient_id: str, status: RecipientStatus) -> Recipient:
        recipient = self.get(recipient_id)
        if not can_transition(recipient.status, status):
            raise InvalidStatusTransition(
                f"Recipient {recipient_id}: {recipient.status.value} -> {status.value} is not allowed"
            )
        return self._replace(recipient.model_copy(update={"status": status}))

    def mark_completed(self, recipient_id: str) -> Recipient:
        recipient = self.get(recipient_id)
        return self._replace(recipient.model_copy(update={"is_completed": True}))

    def refresh_amounts(self, asset_address: Optional[str] = None) -> int:
        """
        Recomputes cached token amounts from current prices.

        Limited to the recipients paid in `asset_address` when given.
        Returns how many recipients were recomputed.
        """
        count = 0
        for recipient in list(self._recipients.values()):
            if asset_address is not None and recipient.asset.address != asset_address:
                continue
            amount = self._amount_or_none(recipient.usd, recipient.asset)
            if amount != recipient.amount:
                self._replace(recipient.model_copy(update={"amount": amount}))
            count += 1
        return count

    def clear(self):
        self._recipients = {}
        self.file_name = None
        self._notify("cleared")

    def _replace(self, recipient: Recipient) -> Recipient:
        self._recipients[recipient.id] = recipient
        self._notify("updated", recipient)
        return recipient

    # ── Views ─────────────────────────────────────────────────────────────

    def get(self, recipient_id: str) -> Recipient:
        recipient = self._recipients.get(recipient_id)
        if recipient is None:
            raise RecipientNotFound(recipient_id)
        return recipient

    def recipients(self) -> List[Recipient]:
        return list(self._recipients.values())

    def incomplete(self) -> List[Recipient]:
        return [r for r in self._recipients.values() if not r.is_completed]

    def completed(self) -> List[Recipient]:
        return [r for r in self._recipients.values() if r.is_completed]

    def payout_asset_addresses(self, exclude: Optional[str] = None) -> List[str]:
        addresses: List[str] = []
        for recipient in self._recipients.values():
            address = recipient.asset.address
            if address != exclude and address not in addresses:
                addresses.append(address)
        return addresses

    def __len__(self) -> int:
        return len(self._recipients)

    # ── Helpers ───────────────────────────────────────────────────────────

    def _address_status(self, wallet: str) -> RecipientStatus:
        if wallet and self.chain_client.validate_address(wallet):
            return RecipientStatus.ADDRESS_VALID
        return RecipientStatus.ADDRESS_INVALID

    def _amount_or_none(self, usd: Decimal, asset: Asset) -> Optional[Decimal]:
        try:
            return QuoteEngine.token_amount(usd, asset, self.chain_client.price_of)
        except PriceUnavailable as e:
            logger.warning(f"{e}; token amount left empty")
            return None
