import errno
import logging
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from filebridge.config import Settings
from filebridge.main import create_app
from filebridge.routers import files
from filebridge.services import file_reader


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    root.mkdir()
    return root


def _client(tmp_path: Path, data_root: Path, **overrides) -> TestClient:
    settings = Settings(allowed_roots=[str(data_root)], base_dir=tmp_path, **overrides)
    return TestClient(create_app(settings))


def test_serves_file_as_base64(tmp_path: Path, data_root: Path) -> None:
    (data_root / "sample.txt").write_bytes(b"Hello, Base64!")

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": str(data_root / "sample.txt")})

    assert resp.status_code == 200
    assert resp.json() == {
        "fileName": "sample.txt",
        "sizeBytes": 14,
        "mimeType": "text/plain",
        "base64": "SGVsbG8sIEJhc2U2NCE=",
    }


def test_missing_path_parameter(tmp_path: Path, data_root: Path) -> None:
    client = _client(tmp_path, data_root)

    for resp in (client.get("/base64"), client.get("/base64?path=")):
        assert resp.status_code == 400
        assert resp.json() == {"error": 'Missing "path" query parameter.'}


def test_traversal_is_forbidden(tmp_path: Path, data_root: Path) -> None:
    (tmp_path / "secrets.txt").write_text("top secret")

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": f"{data_root}/../secrets.txt"})

    assert resp.status_code == 403
    assert resp.json() == {"error": "Path traversal attempts are not allowed."}


def test_path_outside_allowed_roots_is_forbidden(tmp_path: Path, data_root: Path) -> None:
    outside = tmp_path / "passwd"
    outside.write_text("root:x:0:0")

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": str(outside)})

    assert resp.status_code == 403
    assert resp.json() == {"error": "Access to the specified path is not allowed."}


def test_missing_file_is_not_found(tmp_path: Path, data_root: Path) -> None:
    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": str(data_root / "missing.bin")})

    assert resp.status_code == 404
    assert resp.json() == {"error": "File not found."}


def test_directory_is_not_a_file(tmp_path: Path, data_root: Path) -> None:
    (data_root / "nested").mkdir()

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": str(data_root / "nested")})

    assert resp.status_code == 404
    assert resp.json() == {"error": "The specified path is not a file."}


def test_invalid_path_format(tmp_path: Path, data_root: Path) -> None:
    raw = f"{data_root}/bad\x00name.txt"

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": raw})

    assert resp.status_code == 400
    assert resp.json() == {"error": f"Invalid path format: {raw}"}


def test_size_limit_boundary(tmp_path: Path, data_root: Path) -> None:
    limit = 1024 * 1024
    (data_root / "exact.bin").write_bytes(b"a" * limit)
    (data_root / "over.bin").write_bytes(b"a" * (limit + 1))

    client = _client(tmp_path, data_root, max_file_size_mb=1)

    ok = client.get("/base64", params={"path": str(data_root / "exact.bin")})
    assert ok.status_code == 200
    assert ok.json()["sizeBytes"] == limit

    too_big = client.get("/base64", params={"path": str(data_root / "over.bin")})
    assert too_big.status_code == 400
    assert "File size exceeds maximum allowed (1MB)." in too_big.json()["error"]


def test_binary_file_uses_generic_mime_type(tmp_path: Path, data_root: Path) -> None:
    (data_root / "payload.unknownext").write_bytes(b"\x00\xff\x10")

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": str(data_root / "payload.unknownext")})

    assert resp.status_code == 200
    assert resp.json()["mimeType"] == "application/octet-stream"
    assert resp.json()["base64"] == "AP8Q"


def test_repeated_requests_are_identical(tmp_path: Path, data_root: Path) -> None:
    (data_root / "stable.bin").write_bytes(bytes(range(64)))

    client = _client(tmp_path, data_root)
    params = {"path": str(data_root / "stable.bin")}
    first = client.get("/base64", params=params).json()
    second = client.get("/base64", params=params).json()

    assert first["sizeBytes"] == second["sizeBytes"] == 64
    assert first["base64"] == second["base64"]


def test_permission_denied(monkeypatch, tmp_path: Path, data_root: Path) -> None:
    (data_root / "locked.txt").write_text("nope")

    def deny(path: str) -> bytes:
        raise PermissionError(errno.EACCES, "Permission denied", path)

    monkeypatch.setattr(file_reader, "_read_bytes", deny)

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": str(data_root / "locked.txt")})

    assert resp.status_code == 403
    assert resp.json() == {"error": "Permission denied to read the file."}


def test_read_failure(monkeypatch, tmp_path: Path, data_root: Path) -> None:
    (data_root / "flaky.txt").write_text("data")

    def io_error(path: str) -> bytes:
        raise OSError(errno.EIO, "Input/output error", path)

    monkeypatch.setattr(file_reader, "_read_bytes", io_error)

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": str(data_root / "flaky.txt")})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to read or encode file."}


def test_unexpected_error_becomes_generic_500(monkeypatch, tmp_path: Path, data_root: Path) -> None:
    (data_root / "sample.txt").write_text("hi")

    def explode(path: str, max_size_bytes: int):
        raise RuntimeError("boom at /secret/internal/location")

    monkeypatch.setattr(files, "read_file_base64", explode)

    client = _client(tmp_path, data_root)
    resp = client.get("/base64", params={"path": str(data_root / "sample.txt")})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error."}
    assert "boom" not in resp.text


def test_each_request_is_logged(caplog, tmp_path: Path, data_root: Path) -> None:
    caplog.set_level(logging.INFO)

    client = _client(tmp_path, data_root)
    client.get("/base64", params={"path": str(tmp_path / "elsewhere.txt")})

    access = [r.getMessage() for r in caplog.records if r.name == "filebridge.main"]
    assert len(access) == 1
    assert access[0].startswith("GET /base64?path=")
    assert " - 403 - " in access[0]

    rejections = [r for r in caplog.records if r.name == "filebridge.routers.files"]
    assert rejections
    assert str(tmp_path / "elsewhere.txt") in rejections[0].getMessage()
