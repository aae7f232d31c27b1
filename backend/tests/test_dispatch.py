# Overview: API coverage for inter-store dispatch notes and their lifecycle.

import pytest

from backoffice.models import DispatchNote, StockBalance

from conftest import ledger_rows, on_hand, receive


@pytest.fixture
def stocked(client, db_session, supplier, store, item):
    """Ten units of item at the source store."""
    receive(client, supplier, store, item, 10)
    return item


def _create(client, store, store_b, item, qty=4):
    return client.post('/api/item-dispatch', json={
        "from_store_id": store.id,
        "to_store_id": store_b.id,
        "items": [{"item_id": item.id, "quantity": qty}],
    })


def _set_status(client, dispatch_id, status):
    return client.patch(f'/api/item-dispatch/{dispatch_id}', json={"status": status})


def _dispatch_rows(dispatch_id):
    return ledger_rows(reference_type="dispatch", reference_id=dispatch_id)


class TestCreateDispatch:

    def test_created_pending_without_stock_movement(self, client, db_session, store, store_b, stocked):
        response = _create(client, store, store_b, stocked)
        assert response.status_code == 201
        note = response.get_json()["data"]
        assert note["status"] == "pending"
        assert note["dispatch_number"] == "DISP-000001"
        assert note["total_quantity"] == 4
        assert note["total_value"] == 400.0
        assert _dispatch_rows(note["id"]) == []
        assert on_hand(stocked.id, store.id) == 10

    def test_same_store_rejected(self, client, db_session, store, stocked):
        response = client.post('/api/item-dispatch', json={
            "from_store_id": store.id,
            "to_store_id": store.id,
            "items": [{"item_id": stocked.id, "quantity": 1}],
        })
        assert response.status_code == 400

    def test_more_than_available_rejected(self, client, db_session, store, store_b, stocked):
        response = _create(client, store, store_b, stocked, qty=11)
        assert response.status_code == 400
        assert db_session.query(DispatchNote).count() == 0


class TestDispatchLifecycle:

    def test_pending_to_cancelled(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]

        response = _set_status(client, dispatch_id, "cancelled")
        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "cancelled"
        assert _dispatch_rows(dispatch_id) == []
        assert on_hand(stocked.id, store.id) == 10

    def test_pending_to_received_rejected(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]

        response = _set_status(client, dispatch_id, "received")
        assert response.status_code == 400
        assert client.get(f'/api/item-dispatch/{dispatch_id}').get_json()["data"]["status"] == "pending"
        assert on_hand(stocked.id, store_b.id) == 0

    def test_full_flow_moves_stock(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]

        assert _set_status(client, dispatch_id, "dispatched").status_code == 200
        db_session.expire_all()
        balance = db_session.query(StockBalance).filter_by(item_id=stocked.id, store_id=store.id).one()
        assert balance.reserved_quantity == 4
        assert balance.quantity_on_hand == 10

        response = _set_status(client, dispatch_id, "received")
        assert response.status_code == 200
        assert response.get_json()["data"]["received_at"] is not None

        assert on_hand(stocked.id, store.id) == 6
        assert on_hand(stocked.id, store_b.id) == 4
        rows = _dispatch_rows(dispatch_id)
        assert sorted((r.transaction_type, r.store_id, r.quantity) for r in rows) == sorted([
            ("dispatch_out", store.id, -4),
            ("dispatch_in", store_b.id, 4),
        ])
        db_session.expire_all()
        balance = db_session.query(StockBalance).filter_by(item_id=stocked.id, store_id=store.id).one()
        assert balance.reserved_quantity == 0

    def test_received_to_dispatched_rejected(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]
        _set_status(client, dispatch_id, "dispatched")
        _set_status(client, dispatch_id, "received")

        response = _set_status(client, dispatch_id, "dispatched")
        assert response.status_code == 400
        assert client.get(f'/api/item-dispatch/{dispatch_id}').get_json()["data"]["status"] == "received"
        assert len(_dispatch_rows(dispatch_id)) == 2

    def test_cancel_in_transit_releases_reservation(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]
        _set_status(client, dispatch_id, "dispatched")

        assert _set_status(client, dispatch_id, "cancelled").status_code == 200
        db_session.expire_all()
        balance = db_session.query(StockBalance).filter_by(item_id=stocked.id, store_id=store.id).one()
        assert balance.reserved_quantity == 0
        assert _dispatch_rows(dispatch_id) == []

    def test_reserved_stock_blocks_sale(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked, qty=8).get_json()["data"]["id"]
        _set_status(client, dispatch_id, "dispatched")

        response = client.post('/api/sales-retail', json={
            "store_id": store.id,
            "items": [{"item_id": stocked.id, "quantity": 3}],
        })
        assert response.status_code == 400

    def test_invalid_status_value(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]
        assert _set_status(client, dispatch_id, "shipped").status_code == 400


class TestDispatchEditAndDelete:

    def test_description_editable_while_pending(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]
        response = client.patch(f'/api/item-dispatch/{dispatch_id}', json={"description": "Urgent"})
        assert response.status_code == 200
        assert response.get_json()["data"]["description"] == "Urgent"

    def test_status_must_be_patched_alone(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]
        response = client.patch(f'/api/item-dispatch/{dispatch_id}', json={
            "status": "dispatched",
            "description": "x",
        })
        assert response.status_code == 400

    def test_delete_only_pending_or_cancelled(self, client, db_session, store, store_b, stocked):
        dispatch_id = _create(client, store, store_b, stocked).get_json()["data"]["id"]
        _set_status(client, dispatch_id, "dispatched")
        assert client.delete(f'/api/item-dispatch/{dispatch_id}').status_code == 400

        _set_status(client, dispatch_id, "cancelled")
        assert client.delete(f'/api/item-dispatch/{dispatch_id}').status_code == 200

    def test_list_by_store_matches_either_side(self, client, db_session, store, store_b, stocked):
        _create(client, store, store_b, stocked)
        body = client.get(f'/api/item-dispatch?store_id={store_b.id}').get_json()
        assert body["pagination"]["total"] == 1
        body = client.get('/api/item-dispatch?status=received').get_json()
        assert body["data"] == []
