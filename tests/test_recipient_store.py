import pytest
from decimal import Decimal

from csv_loader import CSVRow
from models.errors import InvalidStatusTransition, InvalidUsdAmount, RecipientNotFound
from store.recipient_store import parse_usd
from models.recipient import RecipientStatus
from conftest import ALICE, BOB

def rows(*items):
    return [CSVRow(line_number=i + 1, fields=list(f)) for i, f in enumerate(items)]

def test_load_computes_amount_and_address_status(store, xor, val):
    report = store.load(rows(
        ("A", ALICE, "100", "XOR"),
        ("B", BOB, "50", "val"),
        ("C", "bad", "20", "XOR"),
    ), file_name="batch.csv")

    a, b, c = store.recipients()
    assert report.loaded == 3
    assert report.address_invalid == 1
    assert a.amount == Decimal("100")
    assert a.asset == xor
    assert b.asset == val
    assert b.amount == Decimal("100")  # 50 USD at 0.50
    assert a.status == RecipientStatus.ADDRESS_VALID
    assert c.status == RecipientStatus.ADDRESS_INVALID
    assert store.file_name == "batch.csv"
    assert len({a.id, b.id, c.id}) == 3

def test_load_unknown_symbol_falls_back_to_default(store, xor):
    report = store.load(rows(("A", ALICE, "10", "DOGE"), ("B", ALICE, "10")))

    assert [r.asset for r in store.recipients()] == [xor, xor]
    assert report.unresolved_assets == ["DOGE", ""]

def test_load_reports_malformed_rows(store):
    report = store.load(rows(
        ("A", ALICE, "1,000", "XOR"),
        ("B", ALICE, "abc", "XOR"),
        ("C", ALICE),
        ("D", ALICE, "-5", "XOR"),
    ))

    assert report.loaded == 1
    assert store.recipients()[0].usd == Decimal("1000")
    assert [s.line_number for s in report.skipped_rows] == [2, 3, 4]

def test_load_without_price_leaves_amount_empty(store, chain_client, val):
    chain_client.set_price(val.address, None)
    store.load(rows(("B", BOB, "50", "VAL")))
    assert store.recipients()[0].amount is None

def test_load_replaces_previous_batch(store):
    store.load(rows(("A", ALICE, "1", "XOR")))
    store.load(rows(("B", BOB, "2", "XOR"), ("C", BOB, "3", "XOR")))
    assert [r.name for r in store.recipients()] == ["B", "C"]

def test_edit_recomputes_amount_and_status(store, val):
    store.load(rows(("A", "bad", "100", "XOR")))
    recipient = store.recipients()[0]

    edited = store.edit(recipient.id, wallet=ALICE, usd=Decimal("30"), asset=val)

    assert edited.status == RecipientStatus.ADDRESS_VALID
    assert edited.asset == val
    assert edited.amount == Decimal("60")
    assert store.get(recipient.id) == edited

def test_edit_unknown_id(store):
    with pytest.raises(RecipientNotFound):
        store.edit("missing", name="x")

def test_edit_completed_recipient_is_refused(store):
    store.load(rows(("A", ALICE, "1", "XOR")))
    rid = store.recipients()[0].id
    store.set_status(rid, RecipientStatus.PENDING)
    store.set_status(rid, RecipientStatus.SUCCESS)
    store.mark_completed(rid)

    with pytest.raises(InvalidStatusTransition):
        store.edit(rid, usd=Decimal("2"))

def test_status_lifecycle(store):
    store.load(rows(("A", ALICE, "1", "XOR")))
    rid = store.recipients()[0].id

    with pytest.raises(InvalidStatusTransition):
        store.set_status(rid, RecipientStatus.SUCCESS)

    store.set_status(rid, RecipientStatus.PENDING)
    store.set_status(rid, RecipientStatus.FAILED)
    store.set_status(rid, RecipientStatus.PENDING)
    store.set_status(rid, RecipientStatus.SUCCESS)

    with pytest.raises(InvalidStatusTransition):
        store.set_status(rid, RecipientStatus.PENDING)

def test_set_status_unknown_id(store):
    with pytest.raises(RecipientNotFound):
        store.set_status("nope", RecipientStatus.PENDING)
    with pytest.raises(RecipientNotFound):
        store.mark_completed("nope")

def test_views_keep_insertion_order(store):
    store.load(rows(("A", ALICE, "1", "XOR"), ("B", ALICE, "1", "XOR"), ("C", ALICE, "1", "XOR")))
    b = store.recipients()[1]
    store.mark_completed(b.id)

    assert [r.name for r in store.incomplete()] == ["A", "C"]
    assert [r.name for r in store.completed()] == ["B"]

def test_payout_asset_addresses(store, xor, val, pswap):
    store.load(rows(
        ("A", ALICE, "1", "VAL"),
        ("B", ALICE, "1", "XOR"),
        ("C", ALICE, "1", "PSWAP"),
        ("D", ALICE, "1", "VAL"),
    ))
    assert store.payout_asset_addresses() == [val.address, xor.address, pswap.address]
    assert store.payout_asset_addresses(exclude=xor.address) == [val.address, pswap.address]

def test_refresh_amounts_for_one_asset(store, chain_client, xor, val):
    store.load(rows(("A", ALICE, "100", "XOR"), ("B", BOB, "50", "VAL")))
    chain_client.set_price(xor.address, Decimal("2"))
    chain_client.set_price(val.address, Decimal("0.25"))

    assert store.refresh_amounts(val.address) == 1

    a, b = store.recipients()
    assert a.amount == Decimal("100")
    assert b.amount == Decimal("200")

def test_clear_and_listeners(store):
    events = []
    store.add_listener(lambda event, recipient: events.append(event))

    store.load(rows(("A", ALICE, "1", "XOR")))
    store.set_status(store.recipients()[0].id, RecipientStatus.PENDING)
    store.clear()

    assert events == ["loaded", "updated", "cleared"]
    assert store.recipients() == []
    assert store.file_name is None

def test_failing_listener_does_not_break_store(store):
    def broken(event, recipient):
        raise RuntimeError("boom")

    store.add_listener(broken)
    store.load(rows(("A", ALICE, "1", "XOR")))
    assert len(store) == 1

@pytest.mark.parametrize("usd", [Decimal("-5"), Decimal("NaN"), Decimal("Infinity")])
def test_edit_rejects_invalid_usd(store, usd):
    store.load(rows(("A", ALICE, "100", "XOR")))
    rid = store.recipients()[0].id

    with pytest.raises(InvalidUsdAmount):
        store.edit(rid, usd=usd)

    assert store.get(rid).usd == Decimal("100")
    assert store.get(rid).amount == Decimal("100")

def test_parse_usd():
    assert parse_usd("1,250.50") == Decimal("1250.50")
    assert parse_usd(Decimal("0")) == Decimal("0")
    with pytest.raises(InvalidUsdAmount):
        parse_usd("abc")
    with pytest.raises(InvalidUsdAmount):
        parse_usd("-1")
