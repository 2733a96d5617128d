from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import server
from bookhost_backend.builder import GeneratorResult
from bookhost_backend.pipeline import BookPipeline

from .conftest import make_zip_bytes, patch_zip_headers


class StaticSiteRunner:
    def __init__(self, returncode: int = 0, output: str = "") -> None:
        self.returncode = returncode
        self.output = output

    def run(self, source_dir: Path, build_dir: Path) -> GeneratorResult:
        if self.returncode == 0:
            build_dir.mkdir(parents=True, exist_ok=True)
            (build_dir / "index.html").write_text("<h1>Guide</h1>")
            (build_dir / "sub").mkdir(exist_ok=True)
            (build_dir / "sub" / "page.html").write_text("<p>page</p>")
        return GeneratorResult(returncode=self.returncode, output=self.output)


@pytest.fixture
def client(books_roots, monkeypatch):
    monkeypatch.setattr(server, "ADMIN_LOCAL_ONLY", False)
    monkeypatch.setattr(server, "pipeline", BookPipeline(runner=StaticSiteRunner()))
    with TestClient(server.app) as c:
        yield c


def _upload(client: TestClient, slug: str, data: bytes, filename: str = "book.zip"):
    return client.post(
        f"/api/books/{slug}/upload",
        files={"file": (filename, data, "application/zip")},
    )


def test_create_and_list_books(client):
    response = client.post("/api/books", json={"title": "User Guide"})
    assert response.status_code == 201
    assert response.json() == {"slug": "user-guide", "built": True}

    response = client.get("/api/books")
    assert response.status_code == 200
    assert response.json() == [{"slug": "user-guide", "built": True}]


def test_create_duplicate_slug_conflicts(client):
    assert client.post("/api/books", json={"title": "Guide"}).status_code == 201
    assert client.post("/api/books", json={"title": "Guide"}).status_code == 409


def test_create_rejects_bad_slug(client):
    response = client.post("/api/books", json={"title": "Guide", "slug": "../up"})
    assert response.status_code == 400


def test_upload_build_and_serve(client):
    client.post("/api/books", json={"title": "Guide"})

    response = _upload(client, "guide", make_zip_bytes([("book.toml", b"[book]"), ("src/SUMMARY.md", b"# S")]))
    assert response.status_code == 200
    assert response.json() == {"ok": True, "files": 2, "directories": 0}

    assert client.post("/api/books/guide/build").status_code == 200

    index = client.get("/api/books/guide/content/")
    assert index.status_code == 200
    assert index.text == "<h1>Guide</h1>"
    assert index.headers["X-Content-Type-Options"] == "nosniff"

    assert client.get("/api/books/guide/content").text == "<h1>Guide</h1>"
    assert client.get("/api/books/guide/content/sub/page.html").text == "<p>page</p>"
    assert client.get("/api/books/guide/content/sub/missing.html").status_code == 404


def test_content_traversal_is_rejected(client):
    client.post("/api/books", json={"title": "Guide"})
    client.post("/api/books/guide/build")

    response = client.get("/api/books/guide/content/%2e%2e/%2e%2e/etc/passwd")
    assert response.status_code == 400


def test_upload_with_traversal_entry_is_rejected(client, books_roots):
    books_root, _ = books_roots
    client.post("/api/books", json={"title": "Guide"})

    response = _upload(client, "guide", make_zip_bytes([("../evil.txt", b"evil")]))

    assert response.status_code == 400
    assert list((books_root / "guide").iterdir()) == []
    assert not (books_root / "evil.txt").exists()


def test_upload_rejects_non_zip_name(client):
    client.post("/api/books", json={"title": "Guide"})
    response = _upload(client, "guide", b"whatever", filename="book.tar.gz")
    assert response.status_code == 400


def test_upload_rejects_corrupt_zip(client):
    client.post("/api/books", json={"title": "Guide"})
    response = _upload(client, "guide", b"not really a zip")
    assert response.status_code == 400


def test_upload_rejects_encrypted_zip(client):
    client.post("/api/books", json={"title": "Guide"})
    data = patch_zip_headers(make_zip_bytes([("src/SUMMARY.md", b"# S")]), flag_bits=0x1)

    response = _upload(client, "guide", data)

    assert response.status_code == 400


def test_upload_too_large(client, monkeypatch):
    monkeypatch.setattr(server, "MAX_ZIP_UPLOAD_BYTES", 10)
    client.post("/api/books", json={"title": "Guide"})
    response = _upload(client, "guide", make_zip_bytes([("a.md", b"x" * 100)]))
    assert response.status_code == 413


def test_build_failure_reports_output(client, monkeypatch):
    monkeypatch.setattr(
        server,
        "pipeline",
        BookPipeline(runner=StaticSiteRunner(returncode=1, output="error: missing SUMMARY")),
    )
    client.post("/api/books", json={"title": "Guide"})

    response = client.post("/api/books/guide/build")

    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["output"] == "error: missing SUMMARY"
    assert detail["timed_out"] is False


def test_unknown_book_is_404(client):
    assert client.post("/api/books/nope/build").status_code == 404
    assert client.get("/api/books/nope/content/index.html").status_code == 404
    assert client.get("/api/books/Bad Slug/content/").status_code == 404


def test_delete_book(client, books_roots):
    books_root, build_root = books_roots
    client.post("/api/books", json={"title": "Guide"})

    assert client.delete("/api/books/guide").status_code == 200
    assert not (books_root / "guide").exists()
    assert not (build_root / "guide").exists()
    assert client.delete("/api/books/guide").status_code == 404


def test_admin_routes_are_local_only(client, monkeypatch):
    monkeypatch.setattr(server, "ADMIN_LOCAL_ONLY", True)
    # TestClient reports its host as "testclient".
    assert client.post("/api/books", json={"title": "Guide"}).status_code == 403
    assert client.get("/api/books").status_code == 200


def test_create_book_runs_off_the_event_loop(client, monkeypatch):
    offloaded = []
    real_run_in_threadpool = server.run_in_threadpool

    async def _recording(func, *args, **kwargs):
        offloaded.append(func)
        return await real_run_in_threadpool(func, *args, **kwargs)

    monkeypatch.setattr(server, "run_in_threadpool", _recording)

    assert client.post("/api/books", json={"title": "Guide"}).status_code == 201
    assert server.create_book in offloaded
