"""
Price recalculation tests.

Verifies:
- Every historical line for the product gets the new prices
- Only price fields change: quantity, returned state, totals and other
  products' lines are untouched
- A second run with the same prices updates nothing
- Batching commits in chunks; a failing batch keeps earlier batches
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from conftest import cart_line
from shopflow.models import ChangeEvent, Sale, SaleItem
from shopflow.services import recalculation_service, return_service, sales_service
from shopflow.services.errors import CartValidationError, RecalculationError


def _items_for(db_session, product_id):
    db_session.expire_all()
    return db_session.query(SaleItem).filter_by(product_id=product_id).order_by(SaleItem.id).all()


@pytest.fixture
def history(db_session, make_product, shopkeeper):
    """Three sales of Soap (one also with Rice), one Soap line returned."""
    soap = make_product(name="Soap", quantity=50, purchase_price_cents=80, selling_price_cents=150)
    rice = make_product(name="Rice", quantity=50, purchase_price_cents=600, selling_price_cents=900)

    s1 = sales_service.checkout([cart_line(soap, 2)], shopkeeper)
    s2 = sales_service.checkout([cart_line(soap, 1), cart_line(rice, 1)], shopkeeper)
    s3 = sales_service.checkout([cart_line(soap, 4)], shopkeeper)
    return_service.return_item(s3, 0, actor=shopkeeper)

    return {"soap": soap.id, "rice": rice.id, "sales": [s1, s2, s3]}


class TestRecalculate:

    def test_updates_every_line_for_product(self, db_session, history, admin):
        result = recalculation_service.recalculate(history["soap"], 90, 170, actor_user_id=admin.id)

        assert result.updated_sales == 3
        assert result.updated_items == 3
        for item in _items_for(db_session, history["soap"]):
            assert item.purchase_price_cents == 90
            assert item.selling_price_cents == 170

    def test_only_price_fields_change(self, db_session, history):
        before = {
            item.id: (item.quantity, item.returned, item.returned_at)
            for item in _items_for(db_session, history["soap"])
        }
        totals = {sid: db_session.get(Sale, sid).total_amount_cents for sid in history["sales"]}

        recalculation_service.recalculate(history["soap"], 90, 170)

        after = {
            item.id: (item.quantity, item.returned, item.returned_at)
            for item in _items_for(db_session, history["soap"])
        }
        assert after == before
        for sid, total in totals.items():
            assert db_session.get(Sale, sid).total_amount_cents == total

        rice_item = _items_for(db_session, history["rice"])[0]
        assert (rice_item.purchase_price_cents, rice_item.selling_price_cents) == (600, 900)

    def test_idempotent(self, db_session, history):
        recalculation_service.recalculate(history["soap"], 90, 170)
        second = recalculation_service.recalculate(history["soap"], 90, 170)

        assert second.updated_sales == 0
        assert second.updated_items == 0
        assert second.batches == 0

    def test_product_without_sales(self, db_session, make_product):
        lonely = make_product(name="Lonely")
        result = recalculation_service.recalculate(lonely.id, 1, 2)
        assert result.to_dict() == {"product_id": lonely.id, "updated_sales": 0, "updated_items": 0, "batches": 0}

    def test_records_repriced_events(self, db_session, history, admin):
        recalculation_service.recalculate(history["soap"], 90, 170, actor_user_id=admin.id)

        events = db_session.query(ChangeEvent).filter_by(event_type="sale.repriced").all()
        assert sorted(e.document_id for e in events) == sorted(history["sales"])
        assert all(e.actor_user_id == admin.id for e in events)

    @pytest.mark.parametrize("purchase,selling", [(-1, 10), (10, -1), (1.5, 10), ("10", 10), (True, 10)])
    def test_rejects_invalid_prices(self, db_session, history, purchase, selling):
        with pytest.raises(CartValidationError):
            recalculation_service.recalculate(history["soap"], purchase, selling)


class TestBatching:

    def test_commits_in_batches(self, db_session, history):
        result = recalculation_service.recalculate(history["soap"], 90, 170, batch_size=2)
        assert result.batches == 2
        assert result.updated_sales == 3

    def test_batches_walk_sales_oldest_first(self, db_session, history):
        s1, s2, s3 = history["sales"]
        base = datetime(2026, 3, 1, 9, 0)
        for offset, sale_id in enumerate([s3, s1, s2]):
            db_session.get(Sale, sale_id).created_at = base + timedelta(hours=offset)
        db_session.commit()

        assert recalculation_service._sale_ids_for_product(history["soap"]) == [s3, s1, s2]
        assert recalculation_service._sale_ids_for_product(history["rice"]) == [s2]

    def test_failed_batch_keeps_earlier_batches(self, db_session, history, monkeypatch):
        original = recalculation_service._reprice_sale
        calls = {"n": 0}

        def flaky(sale_id, product_id, purchase, selling):
            calls["n"] += 1
            if calls["n"] == 3:
                raise OperationalError("UPDATE sale_items", {}, Exception("disk I/O error"))
            return original(sale_id, product_id, purchase, selling)

        monkeypatch.setattr(recalculation_service, "_reprice_sale", flaky)

        with pytest.raises(RecalculationError) as exc:
            recalculation_service.recalculate(history["soap"], 90, 170, batch_size=2)

        assert exc.value.kind == "PARTIAL_BATCH_FAILURE"
        assert exc.value.details["committed_sales"] == 2
        assert exc.value.details["committed_batches"] == 1

        prices = sorted(
            (item.purchase_price_cents, item.selling_price_cents)
            for item in _items_for(db_session, history["soap"])
        )
        assert prices == [(80, 150), (90, 170), (90, 170)]

        # Rerunning finishes the job
        monkeypatch.setattr(recalculation_service, "_reprice_sale", original)
        rerun = recalculation_service.recalculate(history["soap"], 90, 170, batch_size=2)
        assert rerun.updated_sales == 1
