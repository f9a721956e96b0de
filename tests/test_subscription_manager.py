import pytest
from decimal import Decimal
import asyncio
from unittest.mock import MagicMock, patch

from csv_loader import CSVRow
from executor.subscription_manager import SubscriptionManager
from conftest import ALICE, BOB

def load(store, *items):
    store.load([CSVRow(line_number=i + 1, fields=list(f)) for i, f in enumerate(items)])

@pytest.fixture
def manager(chain_client, store):
    return SubscriptionManager(chain_client, store, liquidity_sources=["XYKPool"])

@pytest.mark.asyncio
async def test_one_subscription_per_distinct_payout_asset(manager, store, chain_client, xor, val, pswap):
    load(store,
         ("A", ALICE, "10", "XOR"),
         ("B", BOB, "10", "VAL"),
         ("C", BOB, "10", "VAL"),
         ("D", BOB, "10", "PSWAP"))

    await manager.start(xor)

    assert manager.asset_addresses() == [val.address, pswap.address]
    assert len(chain_client.active_subscriptions()) == 2
    assert all(manager.get(a).handle is not None for a in manager.asset_addresses())

@pytest.mark.asyncio
async def test_restart_does_not_leak_subscriptions(manager, store, chain_client, xor):
    load(store, ("B", BOB, "10", "VAL"))

    await manager.start(xor)
    await manager.start(xor)

    assert len(manager) == 1
    assert len(chain_client.active_subscriptions()) == 1

@pytest.mark.asyncio
async def test_tick_stores_paths_and_refreshes_amounts(manager, store, chain_client, xor, val):
    load(store, ("A", ALICE, "100", "XOR"), ("B", BOB, "50", "VAL"))
    await manager.start(xor)
    assert not manager.get(val.address).is_ready

    seen = []
    manager.add_listener(seen.append)
    chain_client.set_price(val.address, Decimal("0.25"))
    chain_client.emit_reserves(val.address, {"rate": "0.25", "sources": ["XYKPool"]})

    subscription = manager.get(val.address)
    assert subscription.is_ready
    assert subscription.payload == {"rate": "0.25", "sources": ["XYKPool"]}
    assert subscription.liquidity_sources == ["XYKPool"]
    assert store.recipients()[1].amount == Decimal("200")
    assert seen == [subscription]

@pytest.mark.asyncio
async def test_stop_releases_everything_and_is_idempotent(manager, store, chain_client, xor):
    load(store, ("B", BOB, "10", "VAL"), ("D", BOB, "10", "PSWAP"))
    await manager.start(xor)
    handles = chain_client.active_subscriptions()

    assert manager.stop() == 2
    assert manager.stop() == 0
    assert len(manager) == 0
    assert chain_client.active_subscriptions() == []
    assert all(h.cancel_count == 1 for h in handles)

@pytest.mark.asyncio
async def test_stop_continues_when_a_cancel_fails(manager, store, chain_client, xor, val, pswap):
    load(store, ("B", BOB, "10", "VAL"), ("D", BOB, "10", "PSWAP"))
    await manager.start(xor)
    broken = manager.get(val.address).handle
    broken.cancel = MagicMock(side_effect=RuntimeError("socket closed"))
    other = manager.get(pswap.address).handle

    assert manager.stop() == 1
    assert other.cancel_count == 1
    assert len(manager) == 0

@pytest.mark.asyncio
async def test_ticks_after_stop_are_ignored(manager, store, chain_client, xor, val):
    load(store, ("B", BOB, "10", "VAL"))
    await manager.start(xor)
    handle = chain_client.active_subscriptions()[0]
    manager.stop()

    handle.callback({"rate": "1"})

    assert manager.get(val.address) is None

@pytest.mark.asyncio
async def test_failed_subscription_is_left_out(manager, store, chain_client, xor, val, pswap):
    load(store, ("B", BOB, "10", "VAL"), ("D", BOB, "10", "PSWAP"))
    real_subscribe = chain_client.subscribe_reserves

    def subscribe(input_address, output_address, sources, on_update):
        if output_address == val.address:
            raise ValueError("unknown pool")
        return real_subscribe(input_address, output_address, sources, on_update)

    chain_client.subscribe_reserves = subscribe
    await manager.start(xor)

    assert manager.asset_addresses() == [pswap.address]

@pytest.mark.asyncio
async def test_path_resolution_error_keeps_previous_state(manager, store, chain_client, xor, val):
    load(store, ("B", BOB, "10", "VAL"))
    await manager.start(xor)
    chain_client.emit_reserves(val.address, {"rate": "1"})
    before = manager.get(val.address)

    chain_client.resolve_paths_and_sources = MagicMock(side_effect=RuntimeError("bad payload"))
    chain_client.emit_reserves(val.address, {"rate": "2"})

    assert manager.get(val.address) == before

@pytest.mark.asyncio
async def test_superseded_start_does_not_leak_feeds(manager, store, chain_client, xor, val):
    load(store, ("B", BOB, "10", "VAL"), ("D", BOB, "10", "PSWAP"))
    real_subscribe = chain_client.subscribe_reserves
    mode = {"val": "flaky"}
    in_backoff = asyncio.Event()
    release = asyncio.Event()

    def subscribe(input_address, output_address, sources, on_update):
        if output_address == val.address and mode["val"] == "flaky":
            raise ConnectionError("node connection lost")
        if output_address == val.address and mode["val"] == "broken":
            raise ValueError("unknown pool")
        return real_subscribe(input_address, output_address, sources, on_update)

    async def held_backoff(delay):
        in_backoff.set()
        await release.wait()

    chain_client.subscribe_reserves = subscribe
    with patch("utils.retry.asyncio.sleep", new=held_backoff):
        first = asyncio.create_task(manager.start(xor))
        await in_backoff.wait()

        mode["val"] = "ok"
        await manager.start(xor)
        assert len(chain_client.active_subscriptions()) == 2

        mode["val"] = "broken"
        release.set()
        await first

    assert len(manager) == 2
    assert manager.stop() == 2
    assert chain_client.active_subscriptions() == []
