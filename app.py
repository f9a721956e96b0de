from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional
from decimal import Decimal
import io
import logging

from dotenv import load_dotenv

from api_clients.asset_client import AssetClient
from chain_clients.mock_chain_client import MockChainClient
from config import RoutingSettings
from executor.routing_service import RoutingService
from models.errors import (
    AssetUnresolved,
    InvalidStatusTransition,
    InvalidUsdAmount,
    PriceUnavailable,
    RecipientNotFound,
    RouteUnavailable,
    SubmissionFailed,
)

# Load environment variables from .env file
load_dotenv()
settings = RoutingSettings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
    handlers=[
        logging.FileHandler('routing.log'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger("route_assets_service")

DEMO_USD_PRICES = {
    "XOR": Decimal("1.00"),
    "VAL": Decimal("0.50"),
    "PSWAP": Decimal("0.25"),
    "DAI": Decimal("1.00"),
    "ETH": Decimal("3000.00"),
    "XSTUSD": Decimal("1.00"),
}

def build_service() -> RoutingService:
    asset_client = AssetClient(base_url=settings.backend_url, default_symbol=settings.default_asset_symbol)
    prices = {}
    for symbol, price in DEMO_USD_PRICES.items():
        asset = asset_client.get_by_symbol(symbol)
        if asset:
            prices[asset.address] = price
    chain_client = MockChainClient(prices=prices)
    return RoutingService(chain_client, asset_client=asset_client, settings=settings)

app = FastAPI(title="Route Assets Service")
service = build_service()

class RecipientEditPayload(BaseModel):
    name: Optional[str] = None
    wallet: Optional[str] = None
    usd: Optional[Decimal] = None
    asset: Optional[str] = None

class InputAssetPayload(BaseModel):
    symbol: str

@app.exception_handler(RecipientNotFound)
async def recipient_not_found_handler(request: Request, exc: RecipientNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(InvalidStatusTransition)
@app.exception_handler(RouteUnavailable)
@app.exception_handler(PriceUnavailable)
async def conflict_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=409, content={"detail": str(exc)})

@app.exception_handler(AssetUnresolved)
@app.exception_handler(InvalidUsdAmount)
async def unprocessable_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

@app.exception_handler(SubmissionFailed)
async def submission_failed_handler(request: Request, exc: SubmissionFailed):
    return JSONResponse(status_code=502, content={"detail": str(exc)})

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/api/v1/state")
async def get_state():
    return {
        "processing_state": service.state.model_dump(mode="json"),
        "file_name": service.store.file_name,
        "subscriptions": service.subscriptions.asset_addresses(),
    }

@app.get("/api/v1/recipients")
async def list_recipients():
    return [r.model_dump(mode="json") for r in service.store.recipients()]

@app.post("/api/v1/recipients/import")
async def import_recipients(request: Request, file_name: Optional[str] = None):
    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="Empty CSV body")
    logger.info(f"Importing recipients from {file_name or 'upload'} ({len(body)} bytes)")
    report = await service.load_file(io.BytesIO(body), file_name=file_name)
    return report.model_dump(mode="json")

@app.patch("/api/v1/recipients/{recipient_id}")
async def edit_recipient(recipient_id: str, payload: RecipientEditPayload):
    recipient = await service.edit_recipient(
        recipient_id,
        name=payload.name,
        wallet=payload.wallet,
        usd=payload.usd,
        asset_symbol=payload.asset,
    )
    return recipient.model_dump(mode="json")

@app.post("/api/v1/recipients/{recipient_id}/retry")
async def retry_recipient(recipient_id: str):
    status = await service.repeat_transaction(recipient_id)
    return {"id": recipient_id, "status": status.value}

@app.post("/api/v1/input-asset")
async def set_input_asset(payload: InputAssetPayload):
    asset = await service.set_input_asset(payload.symbol)
    return asset.model_dump(mode="json")

@app.post("/api/v1/stages/next")
async def next_stage():
    return {"current_stage_index": service.next_stage()}

@app.post("/api/v1/stages/previous")
async def previous_stage():
    return {"current_stage_index": service.previous_stage()}

@app.post("/api/v1/routing/run")
async def run_routing():
    result = await service.run_assets_routing()
    return result.model_dump(mode="json")

@app.post("/api/v1/routing/cancel")
async def cancel_routing():
    service.cancel_processing()
    return {"status": "cancelled"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8050)
