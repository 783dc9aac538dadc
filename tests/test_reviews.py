from bson import ObjectId

import config

API = config.API_PREFIX


def _review_payload(**overrides):
    payload = {"title": "Learned a ton!", "text": "Great instructors and a solid curriculum.", "rating": 8}
    payload.update(overrides)
    return payload


def _setup_bootcamp(client, make_user, bootcamp_payload):
    headers, _ = make_user("Pub One", role="publisher")
    resp = client.post(f"{API}/bootcamps", json=bootcamp_payload(), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["bootcamp"]


def _average_rating(db, bootcamp):
    return db["bootcamp"].find_one({"_id": ObjectId(bootcamp["_id"])}).get("average_rating")


def test_user_reviews_bootcamp(client, make_user, bootcamp_payload):
    bootcamp = _setup_bootcamp(client, make_user, bootcamp_payload)
    headers, user = make_user("John Doe")

    resp = client.post(f"{API}/bootcamps/{bootcamp['_id']}/reviews", json=_review_payload(), headers=headers)
    assert resp.status_code == 201
    review = resp.json()["review"]
    assert review["bootcamp_id"] == bootcamp["_id"]
    assert review["user_id"] == user["_id"]

    resp = client.get(f"{API}/reviews/{review['_id']}")
    assert resp.status_code == 200
    populated = resp.json()["review"]
    assert populated["bootcamp"]["name"] == "Devworks Bootcamp"
    assert populated["user"]["name"] == "John Doe"
    assert "password_hash" not in populated["user"]


def test_one_review_per_user_per_bootcamp(client, make_user, bootcamp_payload):
    bootcamp = _setup_bootcamp(client, make_user, bootcamp_payload)
    headers, _ = make_user("John Doe")
    url = f"{API}/bootcamps/{bootcamp['_id']}/reviews"

    assert client.post(url, json=_review_payload(), headers=headers).status_code == 201
    resp = client.post(url, json=_review_payload(title="Again"), headers=headers)
    assert resp.status_code == 409
    assert "Duplicate" in resp.json()["error"]


def test_publisher_cannot_review(client, make_user, bootcamp_payload):
    bootcamp = _setup_bootcamp(client, make_user, bootcamp_payload)
    headers, _ = make_user("Pub Two", role="publisher")
    resp = client.post(f"{API}/bootcamps/{bootcamp['_id']}/reviews", json=_review_payload(), headers=headers)
    assert resp.status_code == 403


def test_review_for_missing_bootcamp(client, make_user):
    headers, _ = make_user("John Doe")
    resp = client.post(f"{API}/bootcamps/5d725a1b7b292f5f8ceff788/reviews", json=_review_payload(), headers=headers)
    assert resp.status_code == 404


def test_rating_out_of_range(client, make_user, bootcamp_payload):
    bootcamp = _setup_bootcamp(client, make_user, bootcamp_payload)
    headers, _ = make_user("John Doe")
    resp = client.post(
        f"{API}/bootcamps/{bootcamp['_id']}/reviews", json=_review_payload(rating=11), headers=headers
    )
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("rating")


def test_average_rating_follows_reviews(client, db, make_user, bootcamp_payload):
    bootcamp = _setup_bootcamp(client, make_user, bootcamp_payload)
    url = f"{API}/bootcamps/{bootcamp['_id']}/reviews"
    john, _ = make_user("John Doe")
    jane, _ = make_user("Jane Roe")

    first = client.post(url, json=_review_payload(rating=8), headers=john).json()["review"]
    assert _average_rating(db, bootcamp) == 8
    second = client.post(url, json=_review_payload(rating=3), headers=jane).json()["review"]
    assert _average_rating(db, bootcamp) == 5.5

    resp = client.patch(f"{API}/reviews/{second['_id']}", json={"rating": 10}, headers=jane)
    assert resp.status_code == 200
    assert _average_rating(db, bootcamp) == 9

    assert client.delete(f"{API}/reviews/{first['_id']}", headers=john).status_code == 200
    assert _average_rating(db, bootcamp) == 10
    assert client.delete(f"{API}/reviews/{second['_id']}", headers=jane).status_code == 200
    assert _average_rating(db, bootcamp) is None


def test_only_author_or_admin_edits(client, make_user, bootcamp_payload):
    bootcamp = _setup_bootcamp(client, make_user, bootcamp_payload)
    author, _ = make_user("John Doe")
    stranger, _ = make_user("Jane Roe")
    admin, _ = make_user("Boss", role="admin")
    review = client.post(
        f"{API}/bootcamps/{bootcamp['_id']}/reviews", json=_review_payload(), headers=author
    ).json()["review"]
    url = f"{API}/reviews/{review['_id']}"

    assert client.patch(url, json={"title": "Mine now"}, headers=stranger).status_code == 403
    assert client.delete(url, headers=stranger).status_code == 403

    resp = client.patch(url, json={"title": "Edited"}, headers=author)
    assert resp.status_code == 200
    assert resp.json()["review"]["title"] == "Edited"

    assert client.delete(url, headers=admin).status_code == 200
    assert client.get(url).status_code == 404


def test_listing_reviews(client, make_user, bootcamp_payload):
    bootcamp = _setup_bootcamp(client, make_user, bootcamp_payload)
    url = f"{API}/bootcamps/{bootcamp['_id']}/reviews"
    for name, rating in (("John Doe", 4), ("Jane Roe", 9)):
        headers, _ = make_user(name)
        client.post(url, json=_review_payload(rating=rating), headers=headers)

    resp = client.get(url)
    assert resp.status_code == 200
    assert resp.json()["count"] == 2

    resp = client.get(f"{API}/reviews", params={"rating[gte]": "5"})
    reviews = resp.json()["reviews"]
    assert [r["rating"] for r in reviews] == [9]
    assert reviews[0]["user"]["name"] == "Jane Roe"
