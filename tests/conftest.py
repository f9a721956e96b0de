import io
import pytest
from decimal import Decimal

from api_clients.asset_client import AssetClient
from chain_clients.mock_chain_client import MockChainClient
from config import RoutingSettings
from executor.routing_service import RoutingService
from store.recipient_store import RecipientStore

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
BOB = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"
CHARLIE = "5FLSigC9HGRKVhB9FiEo4Y3koPsNmBmLJbpXg2mp1hXcS59Y"
SORA_DAVE = "cnTQ1kbv7PBNNQrEb1tZpmK7hZnSxeKnFSNeLCdScwYWcsY7U"

@pytest.fixture
def asset_client():
    return AssetClient(base_url=None)

@pytest.fixture
def xor(asset_client):
    return asset_client.get_by_symbol("XOR")

@pytest.fixture
def val(asset_client):
    return asset_client.get_by_symbol("VAL")

@pytest.fixture
def pswap(asset_client):
    return asset_client.get_by_symbol("PSWAP")

@pytest.fixture
def chain_client(xor, val, pswap):
    return MockChainClient(prices={
        xor.address: Decimal("1.00"),
        val.address: Decimal("0.50"),
        pswap.address: Decimal("0.25"),
    })

@pytest.fixture
def store(chain_client, asset_client):
    return RecipientStore(chain_client, asset_client)

@pytest.fixture
def service(chain_client, asset_client):
    return RoutingService(chain_client, asset_client=asset_client, settings=RoutingSettings())

def csv_bytes(*rows):
    return io.BytesIO("\n".join(",".join(r) for r in rows).encode("utf-8"))
