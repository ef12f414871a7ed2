def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["environment"] == "test"
    assert "timestamp" in body


def test_malformed_body_is_400(client):
    response = client.post("/generate", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
