import config

API = config.API_PREFIX


def test_admin_manages_users(client, make_user):
    admin, _ = make_user("Boss", role="admin")

    resp = client.post(
        f"{API}/users",
        json={"name": "New Publisher", "email": "newpub@devcamper.io", "password": "123456", "role": "publisher"},
        headers=admin,
    )
    assert resp.status_code == 201
    created = resp.json()["user"]
    assert created["role"] == "publisher"
    assert "password_hash" not in created
    url = f"{API}/users/{created['_id']}"

    resp = client.get(url, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "newpub@devcamper.io"

    resp = client.patch(url, json={"name": "Renamed Publisher", "role": "user"}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Renamed Publisher"
    assert resp.json()["user"]["role"] == "user"

    resp = client.patch(url, json={"password": "changed1"}, headers=admin)
    assert resp.status_code == 200
    client.cookies.clear()
    login = client.post(f"{API}/auth/login", json={"email": "newpub@devcamper.io", "password": "changed1"})
    assert login.status_code == 200
    client.cookies.clear()

    assert client.delete(url, headers=admin).status_code == 200
    resp = client.get(url, headers=admin)
    assert resp.status_code == 404
    assert resp.json()["error"] == f"User not found with id of {created['_id']}"


def test_list_users(client, make_user):
    admin, _ = make_user("Boss", role="admin")
    make_user("John Doe")
    make_user("Pub One", role="publisher")

    resp = client.get(f"{API}/users", params={"role": "publisher"}, headers=admin)
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    assert body["users"][0]["name"] == "Pub One"
    assert "password_hash" not in body["users"][0]

    resp = client.get(f"{API}/users", params={"sort": "name", "limit": 2}, headers=admin)
    body = resp.json()
    assert [u["name"] for u in body["users"]] == ["Boss", "John Doe"]
    assert body["pagination"] == {"next": {"page": 2, "limit": 2}}


def test_cannot_query_private_fields(client, make_user):
    admin, _ = make_user("Boss", role="admin")
    resp = client.get(f"{API}/users", params={"password_hash[gt]": "$2"}, headers=admin)
    assert resp.status_code == 400
    resp = client.get(f"{API}/users", params={"sort": "reset_password_token"}, headers=admin)
    assert resp.status_code == 400


def test_non_admin_refused(client, make_user):
    publisher, _ = make_user("Pub One", role="publisher")
    user, _ = make_user("John Doe")
    for headers in (publisher, user):
        resp = client.get(f"{API}/users", headers=headers)
        assert resp.status_code == 403
    assert client.get(f"{API}/users").status_code == 401


def test_duplicate_user_conflicts(client, make_user):
    admin, existing = make_user("Boss", role="admin")
    resp = client.post(
        f"{API}/users",
        json={"name": "Someone", "email": existing["email"], "password": "123456"},
        headers=admin,
    )
    assert resp.status_code == 409
