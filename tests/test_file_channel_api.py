"""Tests for the /api/db and /api/settings companion file endpoints."""
import json

import pytest
from fastapi.testclient import TestClient

from infrastructure.file_storage import JsonFileStorage
from main import create_app
from services.factory import get_sessions_file_storage, get_settings_file_storage


@pytest.fixture
def client(tmp_path):
    app = create_app()
    app.dependency_overrides[get_sessions_file_storage] = lambda: JsonFileStorage(tmp_path / "db.json")
    app.dependency_overrides[get_settings_file_storage] = lambda: JsonFileStorage(tmp_path / "settings.json")
    return TestClient(app)


class TestReadEndpoints:

    def test_missing_files_return_empty_sentinels(self, client) -> None:
        assert client.get("/api/db").json() == []
        response = client.get("/api/settings")
        assert response.status_code == 200
        assert response.json() is None

    def test_corrupt_file_is_a_server_error(self, client, tmp_path) -> None:
        (tmp_path / "db.json").write_text("[{", encoding="utf-8")
        response = client.get("/api/db")
        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to read file"}

    def test_undecodable_file_is_a_server_error(self, client, tmp_path) -> None:
        (tmp_path / "db.json").write_bytes(b"\xff\xfe[]")
        response = client.get("/api/db")
        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to read file"}


class TestWriteEndpoints:

    def test_round_trip(self, client, tmp_path) -> None:
        records = [{"id": "s1", "borrowerName": "Acme"}]
        response = client.post("/api/db", json=records)
        assert response.json() == {"success": True}
        assert client.get("/api/db").json() == records
        assert json.loads((tmp_path / "db.json").read_text(encoding="utf-8")) == records

        document = {"terms": [], "benchmarkProfiles": [], "activeProfileId": "x"}
        assert client.post("/api/settings", json=document).json() == {"success": True}
        assert client.get("/api/settings").json() == document

    def test_invalid_json_leaves_file_untouched(self, client, tmp_path) -> None:
        client.post("/api/db", json=[{"id": "s1"}])
        response = client.post(
            "/api/db", content=b"[{broken", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert client.get("/api/db").json() == [{"id": "s1"}]

    @pytest.mark.parametrize("path, body", [
        ("/api/db", {"id": "s1"}),
        ("/api/db", "text"),
        ("/api/settings", [1, 2]),
        ("/api/settings", None),
    ])
    def test_wrong_document_type_is_rejected(self, client, tmp_path, path, body) -> None:
        response = client.post(path, content=json.dumps(body), headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert list(tmp_path.iterdir()) == []
