"""
Tests for document-store error translation and the domain exception handler.
"""
import sqlite3

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from telehealth_svc.core.exceptions import (
    DataAccessError,
    DocumentNotFoundError,
    setup_exception_handlers,
    translate_error_code,
)
from telehealth_svc.repositories.document_repository import classify_sqlite_error


# =============================================================================
# ERROR CODE TRANSLATION
# =============================================================================

@pytest.mark.parametrize("code,message,status_code", [
    ("permission-denied", "You do not have permission to perform this action", 403),
    ("not-found", "The requested document was not found", 404),
    ("unavailable", "The service is temporarily unavailable. Please try again", 503),
    ("deadline-exceeded", "The request timed out. Please try again", 504),
    ("resource-exhausted", "Too many requests. Please wait and try again", 429),
    ("already-exists", "A document with this id already exists", 409),
])
def test_known_codes_map_to_message_and_status(code, message, status_code):
    error = DataAccessError(code=code, message="backend said something else")
    assert error.detail == message
    assert error.status_code == status_code
    assert error.context["code"] == code
    assert translate_error_code(code) == message


def test_unknown_code_keeps_backend_message():
    error = DataAccessError(code="internal", message="disk melted")
    assert error.detail == "disk melted"
    assert error.status_code == 500


def test_unknown_code_without_message_uses_default():
    assert translate_error_code("internal") == "An unexpected error occurred"
    assert DataAccessError().detail == "An unexpected error occurred"


def test_document_not_found_context():
    error = DocumentNotFoundError(collection="patients", document_id="abc")
    assert error.status_code == 404
    assert error.to_dict() == {
        "detail": "The requested document was not found",
        "context": {"code": "not-found", "collection": "patients", "document_id": "abc"},
    }


# =============================================================================
# SQLITE CLASSIFICATION
# =============================================================================

@pytest.mark.parametrize("error,code", [
    (sqlite3.IntegrityError("UNIQUE constraint failed: documents.id"), "already-exists"),
    (sqlite3.OperationalError("database is locked"), "deadline-exceeded"),
    (sqlite3.OperationalError("database table is busy"), "deadline-exceeded"),
    (sqlite3.OperationalError("attempt to write a readonly database"), "permission-denied"),
    (sqlite3.DatabaseError("not authorized"), "permission-denied"),
    (sqlite3.OperationalError("database or disk is full"), "resource-exhausted"),
    (sqlite3.OperationalError("unable to open database file"), "unavailable"),
    (sqlite3.OperationalError("disk I/O error"), "unavailable"),
    (sqlite3.IntegrityError("NOT NULL constraint failed: documents.data"), "unknown"),
    (sqlite3.OperationalError("no such table: documents"), "unknown"),
])
def test_classify_sqlite_error(error, code):
    assert classify_sqlite_error(error) == code


def test_duplicate_insert_is_classified_as_already_exists():
    conn = sqlite3.connect(":memory:")
    conn.execute("CREATE TABLE t (id TEXT PRIMARY KEY)")
    conn.execute("INSERT INTO t VALUES ('a')")
    with pytest.raises(sqlite3.IntegrityError) as exc_info:
        conn.execute("INSERT INTO t VALUES ('a')")
    conn.close()
    assert classify_sqlite_error(exc_info.value) == "already-exists"


# =============================================================================
# HTTP RENDERING
# =============================================================================

@pytest.fixture
def raising_client():
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/fail/{code}")
    def fail(code: str):
        raise DataAccessError(code=code, collection="orders")

    return TestClient(app)


@pytest.mark.parametrize("code,status_code", [
    ("permission-denied", 403),
    ("not-found", 404),
    ("unavailable", 503),
    ("deadline-exceeded", 504),
    ("resource-exhausted", 429),
    ("mystery", 500),
])
def test_handler_renders_status(raising_client, code, status_code):
    response = raising_client.get(f"/fail/{code}")
    assert response.status_code == status_code
    body = response.json()
    assert body["detail"] == translate_error_code(code)
    assert body["context"] == {"code": code, "collection": "orders"}
