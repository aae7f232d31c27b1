# Overview: Health and version endpoint tests.


def test_health(client, db_session):
    response = client.get('/api/health')
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["data"]["status"] == "healthy"
    assert body["data"]["checks"]["database"]["details"]["stores"] == 0


def test_version(client, db_session):
    data = client.get('/api/version').get_json()["data"]
    assert data["api_version"] == "1.0.0"
    assert data["allow_negative_stock"] is False


def test_unknown_route_is_json(client, db_session):
    response = client.get('/api/nope')
    assert response.status_code == 404
    assert response.get_json()["success"] is False
