# Overview: Supplier and customer opening balance endpoints.


class TestSupplierOpeningBalances:

    def test_create_and_number(self, client, db_session, supplier):
        response = client.post('/api/supplier-opening-balance', json={
            "supplier_id": supplier.id,
            "amount": 1500,
            "entry_date": "2026-01-01",
        })
        assert response.status_code == 201
        entry = response.get_json()["data"]
        assert entry["entry_number"] == "SOPB-000001"
        assert entry["balance_type"] == "payable"
        assert entry["amount"] == 1500.0

    def test_invalid_balance_type(self, client, db_session, supplier):
        response = client.post('/api/supplier-opening-balance', json={
            "supplier_id": supplier.id,
            "amount": 10,
            "entry_date": "2026-01-01",
            "balance_type": "receivable",
        })
        assert response.status_code == 400

    def test_amount_positive(self, client, db_session, supplier):
        response = client.post('/api/supplier-opening-balance', json={
            "supplier_id": supplier.id,
            "amount": 0,
            "entry_date": "2026-01-01",
        })
        assert response.status_code == 400

    def test_list_filter_by_type(self, client, db_session, supplier):
        for balance_type in ("payable", "advance"):
            client.post('/api/supplier-opening-balance', json={
                "supplier_id": supplier.id,
                "amount": 10,
                "entry_date": "2026-01-01",
                "balance_type": balance_type,
            })
        body = client.get('/api/supplier-opening-balance?status=advance').get_json()
        assert [row["balance_type"] for row in body["data"]] == ["advance"]


class TestCustomerOpeningBalances:

    def _create(self, client, customer, **extra):
        payload = {"customer_id": customer.id, "amount": 500, "entry_date": "2026-01-01"}
        payload.update(extra)
        return client.post('/api/customer-opening-balance', json=payload)

    def test_default_receivable(self, client, db_session, customer):
        entry = self._create(client, customer).get_json()["data"]
        assert entry["entry_number"] == "COPB-000001"
        assert entry["balance_type"] == "receivable"

    def test_patch(self, client, db_session, customer):
        entry_id = self._create(client, customer).get_json()["data"]["id"]
        response = client.patch(f'/api/customer-opening-balance/{entry_id}', json={
            "amount": 750,
            "balance_type": "advance",
        })
        assert response.status_code == 200
        entry = response.get_json()["data"]
        assert entry["amount"] == 750.0
        assert entry["balance_type"] == "advance"

        response = client.patch(f'/api/customer-opening-balance/{entry_id}', json={"balance_type": "payable"})
        assert response.status_code == 400
        response = client.patch(f'/api/customer-opening-balance/{entry_id}', json={"customer_id": 5})
        assert response.status_code == 422

    def test_delete(self, client, db_session, customer):
        entry_id = self._create(client, customer).get_json()["data"]["id"]
        assert client.delete(f'/api/customer-opening-balance/{entry_id}').status_code == 200
        assert client.get(f'/api/customer-opening-balance/{entry_id}').status_code == 404

    def test_unknown_customer(self, client, db_session):
        response = client.post('/api/customer-opening-balance', json={
            "customer_id": 999, "amount": 1, "entry_date": "2026-01-01",
        })
        assert response.status_code == 404
