import pytest
from decimal import Decimal

from csv_loader import CSVRow
from executor.recipient_router import RecipientRouter
from executor.subscription_manager import SubscriptionManager
from models.errors import RouteUnavailable
from models.recipient import RecipientStatus
from models.routing_plan import UnroutedReason
from conftest import ALICE, BOB, SORA_DAVE

def load(store, *items):
    store.load([CSVRow(line_number=i + 1, fields=list(f)) for i, f in enumerate(items)])

@pytest.fixture
def manager(chain_client, store):
    return SubscriptionManager(chain_client, store)

@pytest.fixture
def router(chain_client, store, manager):
    return RecipientRouter(chain_client, store, manager)

@pytest.mark.asyncio
async def test_classification_partitions_incomplete_recipients(router, manager, store, chain_client, xor, val, pswap):
    load(store,
         ("A", ALICE, "100", "XOR"),
         ("B", BOB, "50", "VAL"),
         ("C", "bad", "20", "XOR"),
         ("D", BOB, "10", "PSWAP"))
    await manager.start(xor)
    chain_client.emit_reserves(val.address, {"rate": "0.5"})

    incomplete = store.incomplete()
    plan = router.classify(incomplete, xor)

    a, b, c, d = store.recipients()
    assert [t.recipient_id for t in plan.transfers] == [a.id]
    assert [s.recipient_id for s in plan.swaps] == [b.id]
    assert {(u.recipient_id, u.reason) for u in plan.unrouted} == {
        (c.id, UnroutedReason.ADDRESS_INVALID),
        (d.id, UnroutedReason.ROUTE_UNAVAILABLE),
    }
    assert sorted(plan.recipient_ids()) == sorted(r.id for r in incomplete)

    assert a.status == RecipientStatus.PENDING
    assert b.status == RecipientStatus.PENDING
    assert c.status == RecipientStatus.ADDRESS_INVALID
    assert d.status == RecipientStatus.PENDING

@pytest.mark.asyncio
async def test_direct_transfer_descriptor(router, store, chain_client, xor):
    load(store, ("A", ALICE, "100", "XOR"), ("E", SORA_DAVE, "5", "XOR"))
    chain_client.set_price(xor.address, Decimal("2"))

    plan = router.classify(store.incomplete(), xor)

    first, second = plan.transfers
    assert first.amount == Decimal("50")
    assert first.descriptor.history.to == ALICE
    assert first.descriptor.history.symbol == "XOR"
    assert first.descriptor.history.amount == "50"
    assert first.descriptor.extrinsic["amount"] == str(50 * 10 ** 18)
    assert second.descriptor.history.to == SORA_DAVE

    await first.action()
    assert chain_client.submitted[-1]["type"] == "transfer"
    assert chain_client.submitted[-1]["to"] == ALICE

@pytest.mark.asyncio
async def test_swap_action_uses_plan_amount(router, manager, store, chain_client, xor, val):
    load(store, ("B", BOB, "50", "VAL"))
    await manager.start(xor)
    chain_client.emit_reserves(val.address, {"rate": "0.5", "impact": "0.1"})

    plan = router.classify(store.incomplete(), xor)

    swap = plan.swaps[0]
    assert swap.amount == Decimal("100")
    assert swap.plan.amount_without_impact == Decimal("50")
    assert swap.plan.amount == Decimal("55")

    await swap.action()
    submitted = chain_client.submitted[-1]
    assert submitted["type"] == "swap_and_send"
    assert submitted["amount"] == Decimal("55")
    assert submitted["amount_equivalent"] == Decimal("100")

@pytest.mark.asyncio
async def test_missing_price_is_unrouted(router, store, chain_client, xor):
    load(store, ("A", ALICE, "100", "XOR"))
    chain_client.set_price(xor.address, None)

    plan = router.classify(store.incomplete(), xor)

    assert plan.transfers == []
    assert plan.unrouted[0].reason == UnroutedReason.PRICE_UNAVAILABLE

def test_route_one_without_subscription(router, store, xor):
    load(store, ("B", BOB, "50", "VAL"))
    with pytest.raises(RouteUnavailable):
        router.route_one(store.recipients()[0], xor)
