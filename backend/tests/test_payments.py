# Overview: Supplier and customer payment allocation tests.

import pytest

from backoffice.models import PurchaseGrn, SupplierPayment

from conftest import receive


@pytest.fixture
def grns(client, db_session, supplier, store, item):
    """Two GRNs: 200.00 and 300.00."""
    first = receive(client, supplier, store, item, 2).get_json()["data"]
    second = receive(client, supplier, store, item, 3).get_json()["data"]
    return first, second


def _pay_supplier(client, supplier, amount, allocations, method="cash"):
    return client.post('/api/supplier-payments', json={
        "supplier_id": supplier.id,
        "payment_method": method,
        "amount": amount,
        "allocations": allocations,
    })


class TestSupplierPayments:

    def test_split_across_grns(self, client, db_session, supplier, grns):
        first, second = grns
        response = _pay_supplier(client, supplier, 350, [
            {"grn_id": first["id"], "allocation_amount": 200},
            {"grn_id": second["id"], "allocation_amount": 150},
        ])
        assert response.status_code == 201
        payment = response.get_json()["data"]
        assert payment["payment_number"] == "SPAY-000001"
        assert len(payment["allocations"]) == 2

        first_doc = client.get(f'/api/purchase-grns/{first["id"]}').get_json()["data"]
        second_doc = client.get(f'/api/purchase-grns/{second["id"]}').get_json()["data"]
        assert first_doc["payment_status"] == "paid"
        assert second_doc["payment_status"] == "partially_paid"
        assert second_doc["paid_amount"] == 150.0

    def test_allocations_must_sum_to_amount(self, client, db_session, supplier, grns):
        first, _ = grns
        response = _pay_supplier(client, supplier, 150, [{"grn_id": first["id"], "allocation_amount": 100}])
        assert response.status_code == 400
        assert "must equal" in response.get_json()["error"]
        assert db_session.query(SupplierPayment).count() == 0

    def test_cannot_exceed_outstanding(self, client, db_session, supplier, grns):
        first, _ = grns
        response = _pay_supplier(client, supplier, 250, [{"grn_id": first["id"], "allocation_amount": 250}])
        assert response.status_code == 400
        assert "exceeds outstanding" in response.get_json()["error"]

        db_session.expire_all()
        assert db_session.get(PurchaseGrn, first["id"]).payment_status == "unpaid"

    def test_partial_then_settled(self, client, db_session, supplier, grns):
        first, _ = grns
        assert _pay_supplier(client, supplier, 50, [{"grn_id": first["id"], "allocation_amount": 50}]).status_code == 201
        assert _pay_supplier(client, supplier, 150, [{"grn_id": first["id"], "allocation_amount": 150}]).status_code == 201

        doc = client.get(f'/api/purchase-grns/{first["id"]}').get_json()["data"]
        assert doc["payment_status"] == "paid"
        assert _pay_supplier(client, supplier, 1, [{"grn_id": first["id"], "allocation_amount": 1}]).status_code == 400

    def test_grn_of_another_supplier(self, client, db_session, grns):
        other = client.post('/api/suppliers', json={"name": "Other Supplier"}).get_json()["data"]
        first, _ = grns
        response = client.post('/api/supplier-payments', json={
            "supplier_id": other["id"],
            "payment_method": "bank",
            "amount": 10,
            "allocations": [{"grn_id": first["id"], "allocation_amount": 10}],
        })
        assert response.status_code == 400

    def test_invalid_method(self, client, db_session, supplier, grns):
        first, _ = grns
        response = _pay_supplier(
            client, supplier, 10, [{"grn_id": first["id"], "allocation_amount": 10}], method="credit"
        )
        assert response.status_code == 400

    def test_duplicate_allocation(self, client, db_session, supplier, grns):
        first, _ = grns
        response = _pay_supplier(client, supplier, 20, [
            {"grn_id": first["id"], "allocation_amount": 10},
            {"grn_id": first["id"], "allocation_amount": 10},
        ])
        assert response.status_code == 400

    def test_open_grns(self, client, db_session, supplier, grns):
        first, second = grns
        _pay_supplier(client, supplier, 200, [{"grn_id": first["id"], "allocation_amount": 200}])

        body = client.get(f'/api/supplier-payments/open-grns/{supplier.id}').get_json()
        assert [row["id"] for row in body["data"]] == [second["id"]]
        assert body["data"][0]["outstanding"] == 300.0

    def test_list_and_get(self, client, db_session, supplier, grns):
        first, _ = grns
        payment_id = _pay_supplier(
            client, supplier, 20, [{"grn_id": first["id"], "allocation_amount": 20}]
        ).get_json()["data"]["id"]

        body = client.get(f'/api/supplier-payments?supplier_id={supplier.id}').get_json()
        assert body["pagination"]["total"] == 1
        assert client.get(f'/api/supplier-payments/{payment_id}').status_code == 200
        assert client.get('/api/supplier-payments/9999').status_code == 404


class TestCustomerPayments:

    @pytest.fixture
    def invoice(self, client, db_session, supplier, store, item, customer):
        receive(client, supplier, store, item, 10)
        return client.post('/api/sales-wholesale', json={
            "store_id": store.id,
            "customer_id": customer.id,
            "items": [{"item_id": item.id, "quantity": 2}],
        }).get_json()["data"]

    def test_invoice_id_alias(self, client, db_session, customer, invoice):
        response = client.post('/api/customer-payments', json={
            "customer_id": customer.id,
            "payment_method": "card",
            "amount": 100,
            "allocations": [{"invoice_id": invoice["id"], "allocation_amount": 100}],
        })
        assert response.status_code == 201
        assert response.get_json()["data"]["payment_number"] == "CPAY-000001"

        sale = client.get(f'/api/sales-wholesale/{invoice["id"]}').get_json()["data"]
        assert sale["payment_status"] == "partially_paid"
        assert sale["outstanding_amount"] == 160.0

    def test_open_invoices(self, client, db_session, customer, invoice):
        body = client.get(f'/api/customer-payments/open-invoices/{customer.id}').get_json()
        assert [row["document_number"] for row in body["data"]] == ["MAIN-WINV-000001"]

    def test_paid_invoice_cannot_be_deleted(self, client, db_session, customer, invoice):
        client.post('/api/customer-payments', json={
            "customer_id": customer.id,
            "payment_method": "cash",
            "amount": 260,
            "allocations": [{"sale_id": invoice["id"], "allocation_amount": 260}],
        })
        assert client.delete(f'/api/sales-wholesale/{invoice["id"]}').status_code == 400

    def test_allocation_required(self, client, db_session, customer, invoice):
        response = client.post('/api/customer-payments', json={
            "customer_id": customer.id,
            "payment_method": "cash",
            "amount": 10,
            "allocations": [],
        })
        assert response.status_code == 400
