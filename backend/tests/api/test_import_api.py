import asyncio
import time

import httpx
import pytest

from conftest import STATEMENT_CSV, make_csv

from app.api import import_statements
from app.api.import_statements import allowed_file, sanitize_filename
from app.parsers.statement_parser import INVALID_FORMAT_MESSAGE
from app.services.statement_importer import ImportResult


def _upload(client, headers, filename, content, content_type="text/csv"):
    return client.post(
        "/api/transactions/import",
        files={"file": (filename, content, content_type)},
        headers=headers,
    )


def test_import_statement(client, auth_headers):
    response = _upload(client, auth_headers, "izvod.csv", STATEMENT_CSV.encode("utf-8"))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["imported"] == 2
    assert body["skipped"] == 1
    assert body["message"].startswith("Successfully imported 2 transaction(s)")

    listed = client.get("/api/transactions", headers=auth_headers).json()
    assert [t["amount"] for t in listed] == [45.5, 100.0]


def test_import_requires_identity(client):
    response = _upload(client, {}, "izvod.csv", STATEMENT_CSV.encode("utf-8"))

    assert response.status_code == 401


def test_import_without_file(client, auth_headers):
    response = client.post(
        "/api/transactions/import",
        files={"attachment": ("izvod.csv", b"x", "text/csv")},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json() == {"error": "No file provided"}


def test_import_rejects_unsupported_type(client, auth_headers):
    response = _upload(client, auth_headers, "izvod.pdf", b"%PDF-1.7", "application/pdf")

    assert response.status_code == 400
    assert response.json() == {"error": INVALID_FORMAT_MESSAGE}


def test_import_header_only_file(client, auth_headers):
    content = make_csv([["Datum knjiženja", "Uplata/isplata", "Iznos uplate", "Iznos isplate"]])

    response = _upload(client, auth_headers, "izvod.csv", content)

    assert response.status_code == 400
    assert response.json() == {"error": "No data found in file"}


def test_import_unexpected_failure(client, auth_headers, monkeypatch):
    def broken_import(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(import_statements, "import_statement", broken_import)

    response = _upload(client, auth_headers, "izvod.csv", STATEMENT_CSV.encode("utf-8"))

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to import transactions"}


def test_sanitize_filename():
    assert sanitize_filename("../../etc/izvod.csv") == "izvod.csv"
    assert sanitize_filename("izvod<script>.xlsx") == "izvod_script_.xlsx"
    assert sanitize_filename("") == "upload"
    assert len(sanitize_filename("a" * 300 + ".csv")) == 204


def test_allowed_file():
    assert allowed_file("izvod.csv", b"a;b")
    assert allowed_file("IZVOD.XLSX", b"")
    assert allowed_file("izvod.bin", b"PK\x03\x04rest")
    assert not allowed_file("izvod.pdf", b"%PDF")


@pytest.mark.anyio
async def test_slow_import_does_not_block_other_requests(client, auth_headers, monkeypatch):
    def slow_import(*args, **kwargs):
        time.sleep(0.8)
        return ImportResult(imported=1, skipped=0)

    monkeypatch.setattr(import_statements, "import_statement", slow_import)

    transport = httpx.ASGITransport(app=client.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        upload = asyncio.create_task(http.post(
            "/api/transactions/import",
            files={"file": ("izvod.csv", STATEMENT_CSV.encode("utf-8"), "text/csv")},
            headers=auth_headers,
        ))
        await asyncio.sleep(0.1)

        started = time.perf_counter()
        health = await http.get("/health")
        health_latency = time.perf_counter() - started

        imported = await upload

    assert health.status_code == 200
    assert health_latency < 0.4
    assert imported.status_code == 200
    assert imported.json()["imported"] == 1
