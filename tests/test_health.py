def test_root(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"name": "DevCamper API", "status": "ok"}


def test_database_status(client, db):
    db["bootcamp"].insert_one({"name": "Devworks Bootcamp"})
    resp = client.get("/test")
    assert resp.status_code == 200
    body = resp.json()
    assert body["database"] == db.name
    assert body["status"] == "connected"
    assert "bootcamp" in body["collections"]
