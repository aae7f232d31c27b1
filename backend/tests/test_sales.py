# Overview: API coverage for retail/wholesale invoices and sales returns.

import pytest

from backoffice.models import AuditLog, Sale

from conftest import ledger_rows, on_hand, receive


@pytest.fixture
def stocked(client, db_session, supplier, store, item):
    """Seven units of item in the main store."""
    receive(client, supplier, store, item, 7)
    return item


def _sell(client, store, item, qty, kind="retail", **extra):
    payload = {"store_id": store.id, "items": [{"item_id": item.id, "quantity": qty}]}
    payload.update(extra)
    return client.post(f'/api/sales-{kind}', json=payload)


class TestRetailSales:

    def test_sale_deducts_stock(self, client, db_session, store, stocked):
        response = _sell(client, store, stocked, 3)
        assert response.status_code == 201
        sale = response.get_json()["data"]
        assert sale["invoice_number"] == "MAIN-SINV-000001"
        assert sale["sale_type"] == "retail"
        assert sale["total"] == 450.0
        assert on_hand(stocked.id, store.id) == 4

        rows = ledger_rows(reference_type="sales_retail", reference_id=sale["id"])
        assert [(r.transaction_type, r.quantity) for r in rows] == [("sale", -3)]

    def test_delete_restores_stock(self, client, db_session, store, stocked):
        """Stock 7 -> 4 after the sale, back to 7 after delete, with one +3 sale_return."""
        sale_id = _sell(client, store, stocked, 3).get_json()["data"]["id"]
        assert on_hand(stocked.id, store.id) == 4

        response = client.delete(f'/api/sales-retail/{sale_id}')
        assert response.status_code == 200
        assert on_hand(stocked.id, store.id) == 7

        reversal = ledger_rows(reference_type="sales_retail_reversal", reference_id=sale_id)
        assert [(r.transaction_type, r.quantity) for r in reversal] == [("sale_return", 3)]

        actions = {
            (a.action, a.table_name)
            for a in db_session.query(AuditLog).filter_by(record_id=sale_id).all()
        }
        assert ("DELETE", "sales") in actions
        assert ("REVERSAL", "inventory_transactions") in actions

    def test_delete_blocked_by_active_return(self, client, db_session, store, stocked, customer):
        sale_id = _sell(client, store, stocked, 3, customer_id=customer.id).get_json()["data"]["id"]
        return_id = client.post('/api/sales-returns', json={
            "customer_id": customer.id,
            "store_id": store.id,
            "sale_id": sale_id,
            "return_reason": "Faulty",
            "items": [{"item_id": stocked.id, "return_qty": 3}],
        }).get_json()["data"]["id"]
        assert on_hand(stocked.id, store.id) == 7

        response = client.delete(f'/api/sales-retail/{sale_id}')
        assert response.status_code == 400
        assert on_hand(stocked.id, store.id) == 7

        # once the return is gone the invoice can be deleted and stock ends where it started
        assert client.delete(f'/api/sales-returns/{return_id}').status_code == 200
        assert on_hand(stocked.id, store.id) == 4
        assert client.delete(f'/api/sales-retail/{sale_id}').status_code == 200
        assert on_hand(stocked.id, store.id) == 7

    def test_insufficient_stock(self, client, db_session, store, stocked):
        response = _sell(client, store, stocked, 8)
        assert response.status_code == 400
        assert "Insufficient stock" in response.get_json()["error"]
        assert db_session.query(Sale).count() == 0
        assert on_hand(stocked.id, store.id) == 7

    def test_negative_stock_when_allowed(self, app, client, db_session, store, stocked):
        app.config['ALLOW_NEGATIVE_STOCK'] = True
        assert _sell(client, store, stocked, 9).status_code == 201
        assert on_hand(stocked.id, store.id) == -2

    def test_line_and_header_discounts(self, client, db_session, store, stocked):
        response = client.post('/api/sales-retail', json={
            "store_id": store.id,
            "discount": 20,
            "tax": 5,
            "items": [{"item_id": stocked.id, "quantity": 2, "unit_price": 100, "discount_percent": 10}],
        })
        sale = response.get_json()["data"]
        assert sale["subtotal"] == 200.0
        assert sale["discount"] == 40.0
        assert sale["tax"] == 5.0
        assert sale["total"] == 165.0

    def test_paid_at_creation(self, client, db_session, store, stocked):
        sale = _sell(client, store, stocked, 1, payment_status="paid").get_json()["data"]
        assert sale["paid_amount"] == sale["total"]
        assert sale["outstanding_amount"] == 0.0

    def test_invalid_payment_method(self, client, db_session, store, stocked):
        assert _sell(client, store, stocked, 1, payment_method="barter").status_code == 400

    def test_retail_and_wholesale_are_separate(self, client, db_session, store, stocked, customer):
        sale_id = _sell(client, store, stocked, 1).get_json()["data"]["id"]
        assert client.get(f'/api/sales-wholesale/{sale_id}').status_code == 404
        assert client.get(f'/api/sales-retail/{sale_id}').status_code == 200


class TestSalePatch:

    def test_mark_paid(self, client, db_session, store, stocked):
        sale_id = _sell(client, store, stocked, 1).get_json()["data"]["id"]
        response = client.patch(f'/api/sales-retail/{sale_id}', json={"payment_status": "paid"})
        assert response.status_code == 200
        sale = response.get_json()["data"]
        assert sale["payment_status"] == "paid"
        assert sale["paid_amount"] == sale["total"]

    def test_paid_cannot_go_back(self, client, db_session, store, stocked):
        sale_id = _sell(client, store, stocked, 1, payment_status="paid").get_json()["data"]["id"]
        response = client.patch(f'/api/sales-retail/{sale_id}', json={"payment_status": "unpaid"})
        assert response.status_code == 400

    def test_unknown_field(self, client, db_session, store, stocked):
        sale_id = _sell(client, store, stocked, 1).get_json()["data"]["id"]
        response = client.patch(f'/api/sales-retail/{sale_id}', json={"total": 1})
        assert response.status_code == 422


class TestWholesaleSales:

    def test_customer_required(self, client, db_session, store, stocked):
        assert _sell(client, store, stocked, 1, kind="wholesale").status_code == 400

    def test_wholesale_price_and_numbering(self, client, db_session, store, stocked, customer):
        response = _sell(client, store, stocked, 2, kind="wholesale", customer_id=customer.id)
        assert response.status_code == 201
        sale = response.get_json()["data"]
        assert sale["invoice_number"] == "MAIN-WINV-000001"
        assert sale["total"] == 260.0

    def test_list_filters(self, client, db_session, store, stocked, customer):
        _sell(client, store, stocked, 1, kind="wholesale", customer_id=customer.id)
        _sell(client, store, stocked, 1, kind="wholesale", customer_id=customer.id, payment_status="paid")

        body = client.get('/api/sales-wholesale?status=paid').get_json()
        assert body["pagination"]["total"] == 1
        body = client.get(f'/api/sales-wholesale?customer_id={customer.id}').get_json()
        assert body["pagination"]["total"] == 2
        body = client.get('/api/sales-retail').get_json()
        assert body["pagination"]["total"] == 0


class TestSalesReturns:

    def test_return_against_invoice(self, client, db_session, store, stocked, customer):
        sale_id = _sell(client, store, stocked, 3, customer_id=customer.id).get_json()["data"]["id"]

        response = client.post('/api/sales-returns', json={
            "customer_id": customer.id,
            "store_id": store.id,
            "sale_id": sale_id,
            "return_reason": "Faulty",
            "items": [{"item_id": stocked.id, "return_qty": 2}],
        })
        assert response.status_code == 201
        doc = response.get_json()["data"]
        assert doc["return_number"] == "SRET-000001"
        assert doc["refund_method"] == "credit_note"
        assert doc["total_refund_amount"] == 300.0
        assert on_hand(stocked.id, store.id) == 6

    def test_cannot_return_more_than_sold(self, client, db_session, store, stocked, customer):
        sale_id = _sell(client, store, stocked, 3, customer_id=customer.id).get_json()["data"]["id"]
        payload = {
            "customer_id": customer.id,
            "store_id": store.id,
            "sale_id": sale_id,
            "return_reason": "Faulty",
            "items": [{"item_id": stocked.id, "return_qty": 2}],
        }
        assert client.post('/api/sales-returns', json=payload).status_code == 201
        assert client.post('/api/sales-returns', json=payload).status_code == 400
        assert on_hand(stocked.id, store.id) == 6

    def test_reason_required(self, client, db_session, store, stocked, customer):
        response = client.post('/api/sales-returns', json={
            "customer_id": customer.id,
            "store_id": store.id,
            "items": [{"item_id": stocked.id, "return_qty": 1}],
        })
        assert response.status_code == 400

    def test_delete_reverses(self, client, db_session, store, stocked, customer):
        return_id = client.post('/api/sales-returns', json={
            "customer_id": customer.id,
            "store_id": store.id,
            "return_reason": "Unwanted",
            "items": [{"item_id": stocked.id, "return_qty": 1}],
        }).get_json()["data"]["id"]
        assert on_hand(stocked.id, store.id) == 8

        assert client.delete(f'/api/sales-returns/{return_id}').status_code == 200
        assert on_hand(stocked.id, store.id) == 7
        reversal = ledger_rows(reference_type="sales_return_reversal", reference_id=return_id)
        assert [(r.transaction_type, r.quantity) for r in reversal] == [("sale_return_reversal", -1)]
