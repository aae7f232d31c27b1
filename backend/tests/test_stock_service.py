# Overview: Pytest coverage for the stock balance updater and the ledger.

import pytest

from backoffice.errors import InsufficientStockError, StateError, ValidationError
from backoffice.models import StockBalance
from backoffice.services import stock_service
from backoffice.services.stock_service import (
    apply_stock_delta,
    get_available_quantity,
    post_stock_movement,
    reconcile_balances,
    release_reservation,
    reserve_stock,
    reverse_reference,
)

from conftest import ledger_rows, on_hand


def _post(item, store, qty, txn_type="adjustment_in", ref_type="stock_adjustment", ref_id=1):
    return post_stock_movement(
        item_id=item.id,
        store_id=store.id,
        quantity=qty,
        transaction_type=txn_type,
        reference_type=ref_type,
        reference_id=ref_id,
    )


class TestApplyStockDelta:

    def test_first_receipt_creates_balance(self, db_session, store, item):
        assert apply_stock_delta(item.id, store.id, 5) == 5
        db_session.commit()
        balance = db_session.query(StockBalance).filter_by(item_id=item.id, store_id=store.id).one()
        assert balance.quantity_on_hand == 5
        assert balance.last_restock_date is not None

    def test_deltas_accumulate(self, db_session, store, item):
        apply_stock_delta(item.id, store.id, 5)
        apply_stock_delta(item.id, store.id, 3)
        assert apply_stock_delta(item.id, store.id, -6) == 2

    def test_decrement_below_zero_rejected(self, db_session, store, item):
        apply_stock_delta(item.id, store.id, 2)
        with pytest.raises(InsufficientStockError):
            apply_stock_delta(item.id, store.id, -3)
        assert on_hand(item.id, store.id) == 2

    def test_decrement_without_balance_row_rejected(self, db_session, store, item):
        with pytest.raises(InsufficientStockError):
            apply_stock_delta(item.id, store.id, -1)

    def test_negative_allowed_by_config(self, app, db_session, store, item):
        app.config['ALLOW_NEGATIVE_STOCK'] = True
        assert apply_stock_delta(item.id, store.id, -4) == -4

    def test_reserved_stock_is_not_available(self, db_session, store, item):
        apply_stock_delta(item.id, store.id, 10)
        reserve_stock(item.id, store.id, 8)
        assert get_available_quantity(item.id, store.id) == 2
        with pytest.raises(InsufficientStockError):
            apply_stock_delta(item.id, store.id, -3)


class TestReservations:

    def test_reserve_more_than_available(self, db_session, store, item):
        apply_stock_delta(item.id, store.id, 3)
        with pytest.raises(InsufficientStockError):
            reserve_stock(item.id, store.id, 4)

    def test_release_without_reservation(self, db_session, store, item):
        apply_stock_delta(item.id, store.id, 3)
        with pytest.raises(StateError):
            release_reservation(item.id, store.id, 1)

    def test_reserve_then_release(self, db_session, store, item):
        apply_stock_delta(item.id, store.id, 5)
        reserve_stock(item.id, store.id, 5)
        release_reservation(item.id, store.id, 5)
        assert get_available_quantity(item.id, store.id) == 5

    def test_reserve_without_balance_row(self, db_session, store, item):
        with pytest.raises(InsufficientStockError) as exc:
            reserve_stock(item.id, store.id, 2)
        assert "Available: 0, requested: 2" in str(exc.value)
        assert db_session.query(StockBalance).filter_by(item_id=item.id, store_id=store.id).count() == 0

    def test_reserve_without_balance_row_when_negative_allowed(self, app, db_session, store, item):
        app.config['ALLOW_NEGATIVE_STOCK'] = True
        reserve_stock(item.id, store.id, 3)
        db_session.commit()
        balance = db_session.query(StockBalance).filter_by(item_id=item.id, store_id=store.id).one()
        assert balance.quantity_on_hand == 0
        assert balance.reserved_quantity == 3
        assert get_available_quantity(item.id, store.id) == -3


class TestLedger:

    def test_movement_writes_balance_and_ledger_row(self, db_session, store, item):
        txn = _post(item, store, 4)
        db_session.commit()
        assert txn.id is not None
        assert on_hand(item.id, store.id) == 4
        rows = ledger_rows(item_id=item.id, store_id=store.id)
        assert [(r.transaction_type, r.quantity) for r in rows] == [("adjustment_in", 4)]

    def test_zero_quantity_rejected(self, db_session, store, item):
        with pytest.raises(ValidationError):
            _post(item, store, 0)

    def test_unknown_transaction_type_rejected(self, db_session, store, item):
        with pytest.raises(ValidationError):
            _post(item, store, 1, txn_type="shrinkage")

    def test_reverse_reference_posts_inverse(self, db_session, store, item):
        _post(item, store, 5, txn_type="grn", ref_type="purchase_grn", ref_id=7)
        reversed_rows = reverse_reference("purchase_grn", 7)
        db_session.commit()

        assert [(r.transaction_type, r.quantity) for r in reversed_rows] == [("grn_reversal", -5)]
        assert reversed_rows[0].reference_type == "purchase_grn_reversal"
        assert reversed_rows[0].reference_id == 7
        assert on_hand(item.id, store.id) == 0

    def test_reverse_reference_only_once(self, db_session, store, item):
        _post(item, store, 5, txn_type="grn", ref_type="purchase_grn", ref_id=7)
        reverse_reference("purchase_grn", 7)
        with pytest.raises(StateError):
            reverse_reference("purchase_grn", 7)

    def test_adjustment_reversal_swaps_direction(self, db_session, store, item):
        _post(item, store, 5)
        _post(item, store, -2, txn_type="adjustment_out", ref_id=2)
        rows = reverse_reference("stock_adjustment", 2)
        assert [(r.transaction_type, r.quantity) for r in rows] == [("adjustment_in", 2)]

    def test_ledger_sum_equals_balance(self, db_session, store, item):
        _post(item, store, 10)
        _post(item, store, -3, txn_type="adjustment_out", ref_id=2)
        _post(item, store, 6, txn_type="grn", ref_type="purchase_grn", ref_id=3)
        db_session.commit()
        total = sum(r.quantity for r in ledger_rows(item_id=item.id, store_id=store.id))
        assert total == on_hand(item.id, store.id) == 13


class TestReconcile:

    def test_clean_ledger_has_no_mismatches(self, db_session, store, item):
        _post(item, store, 3)
        db_session.commit()
        assert reconcile_balances() == []

    def test_detects_and_fixes_drift(self, db_session, store, item):
        _post(item, store, 3)
        db_session.commit()
        balance = db_session.query(StockBalance).filter_by(item_id=item.id).one()
        balance.quantity_on_hand = 9
        db_session.commit()

        mismatches = reconcile_balances()
        assert mismatches == [{
            "item_id": item.id,
            "store_id": store.id,
            "quantity_on_hand": 9,
            "ledger_quantity": 3,
            "difference": 6,
        }]

        reconcile_balances(fix=True)
        db_session.commit()
        assert on_hand(item.id, store.id) == 3
        assert reconcile_balances() == []

    def test_store_filter(self, db_session, store, store_b, item):
        _post(item, store, 3)
        db_session.commit()
        balance = db_session.query(StockBalance).filter_by(item_id=item.id).one()
        balance.quantity_on_hand = 1
        db_session.commit()
        assert reconcile_balances(store_id=store_b.id) == []
        assert len(reconcile_balances(store_id=store.id)) == 1


def test_low_stock_level_falls_back_to_threshold(app, db_session, item, item_b):
    assert stock_service.low_stock_level(item) == 2
    assert stock_service.low_stock_level(item_b) == app.config['LOW_STOCK_THRESHOLD']
