from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError, OperationFailure

from errors import ErrorResponse, duplicate_key_fields, duplicate_key_message, first_error_message, register_error_handlers


def test_duplicate_key_from_details():
    exc = DuplicateKeyError("E11000", 11000, {"keyValue": {"name": "Devworks Bootcamp"}})
    assert duplicate_key_fields(exc) == ["name"]
    assert duplicate_key_message(exc) == (
        "Duplicate name value entered; a record with that name value already exists."
    )


def test_duplicate_key_from_message():
    exc = DuplicateKeyError(
        'E11000 duplicate key error collection: devcamper.user index: email_1 dup key: { email: "a@b.io" }', 11000
    )
    assert duplicate_key_fields(exc) == ["email"]


def test_duplicate_key_from_compound_index_name():
    exc = DuplicateKeyError("E11000 duplicate key error collection: devcamper.review index: bootcamp_id_1_user_id_1", 11000)
    assert duplicate_key_fields(exc) == ["bootcamp_id", "user_id"]
    assert "(bootcamp_id, user_id)" in duplicate_key_message(exc)


def test_duplicate_key_without_detail():
    assert duplicate_key_message(DuplicateKeyError("E11000", 11000)) == "Duplicate field value entered"


def test_first_error_message():
    errors = [{"loc": ("body", "careers", 1), "msg": 'Value error, Invalid career: "X"'}]
    assert first_error_message(errors) == 'careers.1: Invalid career: "X"'
    assert first_error_message([]) == "Invalid request"


def _app():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/custom")
    def custom():
        raise ErrorResponse("Teapot problem", 418)

    @app.get("/value")
    def value():
        raise ValueError("bad input")

    @app.get("/dup")
    def dup():
        raise DuplicateKeyError("E11000", 11000, {"keyValue": {"email": "x@y.io"}})

    @app.get("/db")
    def db():
        raise OperationFailure("boom")

    return app


def test_handlers_produce_envelope():
    client = TestClient(_app())
    assert client.get("/custom").json() == {"success": False, "error": "Teapot problem"}
    assert client.get("/custom").status_code == 418

    resp = client.get("/value")
    assert resp.status_code == 400
    assert resp.json()["error"] == "bad input"

    resp = client.get("/dup")
    assert resp.status_code == 409
    assert resp.json()["error"].startswith("Duplicate email")

    resp = client.get("/db")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Database error"}

    resp = client.get("/nowhere")
    assert resp.status_code == 404
    assert resp.json()["success"] is False
