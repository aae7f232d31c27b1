# Overview: API coverage for goods-received notes and purchase returns.

from backoffice.models import AuditLog, PurchaseGrn

from conftest import ledger_rows, on_hand, receive


class TestCreateGrn:

    def test_grn_posts_stock_and_ledger(self, client, db_session, supplier, store, item):
        """One line of 5 @ 100 less 10% totals 450 and adds 5 to stock."""
        response = client.post('/api/purchase-grns', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "items": [{"item_id": item.id, "received_qty": 5, "cost_price": 100, "discount_percent": 10}],
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        grn = body["data"]
        assert grn["total_amount"] == 450.0
        assert grn["payment_status"] == "unpaid"
        assert grn["items"][0]["net_value"] == 450.0

        rows = ledger_rows(item_id=item.id, store_id=store.id)
        assert len(rows) == 1
        assert rows[0].transaction_type == "grn"
        assert rows[0].quantity == 5
        assert rows[0].reference_type == "purchase_grn"
        assert rows[0].reference_id == grn["id"]
        assert on_hand(item.id, store.id) == 5

    def test_grn_numbers_increase(self, client, db_session, supplier, store, item):
        first = receive(client, supplier, store, item, 1).get_json()["data"]["grn_number"]
        second = receive(client, supplier, store, item, 1).get_json()["data"]["grn_number"]
        assert (first, second) == ("GRN-000001", "GRN-000002")

    def test_creation_is_audited(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 2).get_json()["data"]["id"]
        entry = db_session.query(AuditLog).filter_by(table_name="purchase_grns", record_id=grn_id).one()
        assert entry.action == "CREATE"

    def test_missing_items_rejected(self, client, db_session, supplier, store):
        response = client.post('/api/purchase-grns', json={"supplier_id": supplier.id, "store_id": store.id})
        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_unknown_supplier_is_404(self, client, db_session, store, item):
        response = client.post('/api/purchase-grns', json={
            "supplier_id": 999,
            "store_id": store.id,
            "items": [{"item_id": item.id, "received_qty": 1}],
        })
        assert response.status_code == 404

    def test_invalid_line_leaves_nothing_behind(self, client, db_session, supplier, store, item):
        response = client.post('/api/purchase-grns', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "items": [
                {"item_id": item.id, "received_qty": 2},
                {"item_id": item.id, "received_qty": -1},
            ],
        })
        assert response.status_code == 400
        assert db_session.query(PurchaseGrn).count() == 0
        assert ledger_rows() == []
        assert on_hand(item.id, store.id) == 0

    def test_cost_defaults_to_item_cost(self, client, db_session, supplier, store, item):
        response = client.post('/api/purchase-grns', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "items": [{"item_id": item.id, "received_qty": 3}],
        })
        assert response.get_json()["data"]["total_amount"] == 300.0


class TestGrnLifecycle:

    def test_list_and_filter(self, client, db_session, supplier, store, item):
        receive(client, supplier, store, item, 1)
        receive(client, supplier, store, item, 1)

        body = client.get('/api/purchase-grns?limit=1').get_json()
        assert body["pagination"] == {"total": 2, "limit": 1, "offset": 0, "has_more": True}
        assert len(body["data"]) == 1

        body = client.get('/api/purchase-grns?status=paid').get_json()
        assert body["data"] == []

        body = client.get('/api/purchase-grns?search=000002').get_json()
        assert [g["grn_number"] for g in body["data"]] == ["GRN-000002"]

    def test_invalid_date_filter(self, client, db_session):
        response = client.get('/api/purchase-grns?date_from=yesterday')
        assert response.status_code == 400

    def test_patch_invoice_details(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 1).get_json()["data"]["id"]
        response = client.patch(f'/api/purchase-grns/{grn_id}', json={"invoice_number": "INV-77"})
        assert response.status_code == 200
        assert response.get_json()["data"]["invoice_number"] == "INV-77"

    def test_patch_rejects_unknown_fields(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 1).get_json()["data"]["id"]
        response = client.patch(f'/api/purchase-grns/{grn_id}', json={"total_amount": 1})
        assert response.status_code == 422
        assert response.get_json()["errors"][0]["field"] == "total_amount"

    def test_delete_reverses_stock(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 5).get_json()["data"]["id"]

        response = client.delete(f'/api/purchase-grns/{grn_id}')
        assert response.status_code == 200
        assert on_hand(item.id, store.id) == 0

        reversal = ledger_rows(reference_type="purchase_grn_reversal", reference_id=grn_id)
        assert [(r.transaction_type, r.quantity) for r in reversal] == [("grn_reversal", -5)]

        assert client.get(f'/api/purchase-grns/{grn_id}').status_code == 404
        assert client.delete(f'/api/purchase-grns/{grn_id}').status_code == 404

    def test_delete_blocked_when_stock_already_sold(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 5).get_json()["data"]["id"]
        client.post('/api/sales-retail', json={
            "store_id": store.id,
            "items": [{"item_id": item.id, "quantity": 4}],
        })

        response = client.delete(f'/api/purchase-grns/{grn_id}')
        assert response.status_code == 400
        assert on_hand(item.id, store.id) == 1

    def test_delete_blocked_when_paid(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 2).get_json()["data"]["id"]
        client.post('/api/supplier-payments', json={
            "supplier_id": supplier.id,
            "payment_method": "cash",
            "amount": 50,
            "allocations": [{"grn_id": grn_id, "allocation_amount": 50}],
        })

        response = client.delete(f'/api/purchase-grns/{grn_id}')
        assert response.status_code == 400
        assert on_hand(item.id, store.id) == 2

        response = client.patch(f'/api/purchase-grns/{grn_id}', json={"notes": "late edit"})
        assert response.status_code == 400

    def test_outstanding(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 2).get_json()["data"]["id"]
        client.post('/api/supplier-payments', json={
            "supplier_id": supplier.id,
            "payment_method": "bank",
            "amount": 50,
            "allocations": [{"grn_id": grn_id, "allocation_amount": 50}],
        })

        data = client.get(f'/api/purchase-grns/{grn_id}/outstanding').get_json()["data"]
        assert data["total_amount"] == 200.0
        assert data["paid_amount"] == 50.0
        assert data["outstanding"] == 150.0
        assert data["percentage_paid"] == 25.0
        assert data["allocation_count"] == 1
        assert data["payment_status"] == "partially_paid"


class TestPurchaseReturns:

    def test_return_reduces_stock(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 5).get_json()["data"]["id"]

        response = client.post('/api/purchase-returns', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "grn_reference_id": grn_id,
            "return_reason": "Damaged",
            "items": [{"item_id": item.id, "return_qty": 2}],
        })
        assert response.status_code == 201
        doc = response.get_json()["data"]
        assert doc["return_number"] == "PRET-000001"
        assert doc["total_amount"] == 200.0
        assert on_hand(item.id, store.id) == 3

    def test_cannot_return_more_than_received(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 2).get_json()["data"]["id"]
        response = client.post('/api/purchase-returns', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "grn_reference_id": grn_id,
            "return_reason": "Damaged",
            "items": [{"item_id": item.id, "return_qty": 3}],
        })
        assert response.status_code == 400
        assert on_hand(item.id, store.id) == 2

    def test_return_without_stock_rejected(self, client, db_session, supplier, store, item):
        response = client.post('/api/purchase-returns', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "return_reason": "Wrong item",
            "items": [{"item_id": item.id, "return_qty": 1}],
        })
        assert response.status_code == 400
        assert "Insufficient stock" in response.get_json()["error"]

    def test_delete_restores_stock(self, client, db_session, supplier, store, item):
        receive(client, supplier, store, item, 5)
        return_id = client.post('/api/purchase-returns', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "return_reason": "Damaged",
            "items": [{"item_id": item.id, "return_qty": 2}],
        }).get_json()["data"]["id"]

        assert client.delete(f'/api/purchase-returns/{return_id}').status_code == 200
        assert on_hand(item.id, store.id) == 5
        reversal = ledger_rows(reference_type="purchase_return_reversal", reference_id=return_id)
        assert [(r.transaction_type, r.quantity) for r in reversal] == [("purchase_return_reversal", 2)]

    def test_repeated_returns_capped_by_grn(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 10).get_json()["data"]["id"]
        receive(client, supplier, store, item, 50)
        payload = {
            "supplier_id": supplier.id,
            "store_id": store.id,
            "grn_reference_id": grn_id,
            "return_reason": "Damaged",
            "items": [{"item_id": item.id, "return_qty": 6}],
        }

        first = client.post('/api/purchase-returns', json=payload)
        assert first.status_code == 201
        second = client.post('/api/purchase-returns', json=payload)
        assert second.status_code == 400
        assert "remain returnable" in second.get_json()["error"]
        assert on_hand(item.id, store.id) == 54

        payload["items"] = [{"item_id": item.id, "return_qty": 4}]
        assert client.post('/api/purchase-returns', json=payload).status_code == 201
        assert on_hand(item.id, store.id) == 50

    def test_deleted_return_frees_quantity(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 5).get_json()["data"]["id"]
        payload = {
            "supplier_id": supplier.id,
            "store_id": store.id,
            "grn_reference_id": grn_id,
            "return_reason": "Damaged",
            "items": [{"item_id": item.id, "return_qty": 5}],
        }
        return_id = client.post('/api/purchase-returns', json=payload).get_json()["data"]["id"]
        client.delete(f'/api/purchase-returns/{return_id}')
        assert client.post('/api/purchase-returns', json=payload).status_code == 201

    def test_grn_delete_blocked_by_active_return(self, client, db_session, supplier, store, item):
        grn_id = receive(client, supplier, store, item, 5).get_json()["data"]["id"]
        return_id = client.post('/api/purchase-returns', json={
            "supplier_id": supplier.id,
            "store_id": store.id,
            "grn_reference_id": grn_id,
            "return_reason": "Damaged",
            "items": [{"item_id": item.id, "return_qty": 2}],
        }).get_json()["data"]["id"]

        assert client.delete(f'/api/purchase-grns/{grn_id}').status_code == 400
        assert on_hand(item.id, store.id) == 3

        client.delete(f'/api/purchase-returns/{return_id}')
        assert client.delete(f'/api/purchase-grns/{grn_id}').status_code == 200
        assert on_hand(item.id, store.id) == 0
