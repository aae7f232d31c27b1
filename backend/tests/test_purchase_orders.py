# Overview: API coverage for purchase orders and their status lifecycle.

from backoffice.models import AuditLog

from conftest import ledger_rows


def _order(client, supplier, store, item, qty=10, **extra):
    payload = {
        "supplier_id": supplier.id,
        "store_id": store.id,
        "po_date": "2026-05-01",
        "expected_delivery_date": "2026-05-10",
        "items": [{"item_id": item.id, "quantity": qty, "unit_cost": 100, "discount_percent": 10}],
    }
    payload.update(extra)
    return client.post('/api/purchase-orders', json=payload)


def _patch(client, order_id, **body):
    return client.patch(f'/api/purchase-orders/{order_id}', json=body)


class TestPurchaseOrderCreate:

    def test_totals_and_no_stock_movement(self, client, db_session, supplier, store, item):
        response = _order(client, supplier, store, item, qty=10, tax=25)
        assert response.status_code == 201
        order = response.get_json()["data"]
        assert order["po_number"] == "PO-000001"
        assert order["status"] == "pending"
        assert order["subtotal"] == 1000.0
        assert order["discount"] == 100.0
        assert order["total_amount"] == 925.0
        line = order["items"][0]
        assert line["discount_value"] == 100.0
        assert line["net_value"] == 900.0
        assert ledger_rows() == []

    def test_numbers_are_sequential(self, client, db_session, supplier, store, item):
        _order(client, supplier, store, item)
        second = _order(client, supplier, store, item).get_json()["data"]
        assert second["po_number"] == "PO-000002"

    def test_expected_delivery_date_required(self, client, db_session, supplier, store, item):
        response = _order(client, supplier, store, item, expected_delivery_date=None)
        assert response.status_code == 400
        assert "expected_delivery_date" in response.get_json()["error"]

    def test_delivery_before_order_date(self, client, db_session, supplier, store, item):
        response = _order(client, supplier, store, item, expected_delivery_date="2026-04-30")
        assert response.status_code == 400

    def test_unknown_supplier(self, client, db_session, store, item):
        response = client.post('/api/purchase-orders', json={
            "supplier_id": 999,
            "store_id": store.id,
            "expected_delivery_date": "2026-05-10",
            "items": [{"item_id": item.id, "quantity": 1, "unit_cost": 10}],
        })
        assert response.status_code == 404

    def test_unit_cost_required(self, client, db_session, supplier, store, item):
        response = client.post('/api/purchase-orders', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "expected_delivery_date": "2026-05-10",
            "items": [{"item_id": item.id, "quantity": 1}],
        })
        assert response.status_code == 400


class TestPurchaseOrderLifecycle:

    def test_pending_to_received(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        for status in ("sent", "partial", "received"):
            response = _patch(client, order_id, status=status)
            assert response.status_code == 200
            assert response.get_json()["data"]["status"] == status

        rows = (
            db_session.query(AuditLog)
            .filter_by(table_name="purchase_orders", record_id=order_id)
            .order_by(AuditLog.id)
        )
        actions = [row.action for row in rows]
        assert actions == ["CREATE", "STATUS_CHANGE", "STATUS_CHANGE", "STATUS_CHANGE"]
        assert ledger_rows() == []

    def test_cannot_skip_sent(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        response = _patch(client, order_id, status="received")
        assert response.status_code == 400
        assert "Cannot transition from pending to received" in response.get_json()["error"]

    def test_unknown_status(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        response = _patch(client, order_id, status="shipped")
        assert response.status_code == 400
        assert "Invalid status" in response.get_json()["error"]

    def test_terminal_orders_are_frozen(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        assert _patch(client, order_id, status="cancelled").status_code == 200
        response = _patch(client, order_id, expected_delivery_date="2026-06-01")
        assert response.status_code == 400

    def test_reschedule_delivery(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        response = _patch(client, order_id, status="sent", expected_delivery_date="2026-05-20")
        assert response.status_code == 200
        order = response.get_json()["data"]
        assert order["status"] == "sent"
        assert order["expected_delivery_date"] == "2026-05-20"

    def test_only_status_and_delivery_date_patchable(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        response = _patch(client, order_id, total_amount=1)
        assert response.status_code == 400


class TestPurchaseOrderQueries:

    def test_status_filter(self, client, db_session, supplier, store, item):
        first = _order(client, supplier, store, item).get_json()["data"]["id"]
        _order(client, supplier, store, item)
        _patch(client, first, status="sent")

        sent = client.get('/api/purchase-orders?status=sent').get_json()["data"]
        assert [o["id"] for o in sent] == [first]
        everything = client.get('/api/purchase-orders?status=all').get_json()["data"]
        assert len(everything) == 2

    def test_detail_includes_lines(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        order = client.get(f'/api/purchase-orders/{order_id}').get_json()["data"]
        assert order["supplier_name"] == supplier.name
        assert order["items"][0]["item_code"] == item.code

    def test_missing_order(self, client, db_session):
        assert client.get('/api/purchase-orders/999').status_code == 404


class TestPurchaseOrderDelete:

    def test_delete_pending(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        assert client.delete(f'/api/purchase-orders/{order_id}').status_code == 200
        assert client.get(f'/api/purchase-orders/{order_id}').status_code == 404

    def test_sent_order_cannot_be_deleted(self, client, db_session, supplier, store, item):
        order_id = _order(client, supplier, store, item).get_json()["data"]["id"]
        _patch(client, order_id, status="sent")
        response = client.delete(f'/api/purchase-orders/{order_id}')
        assert response.status_code == 400
