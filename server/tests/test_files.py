"""Tests for the general-purpose file endpoints."""
from app.services.file_service import original_name_from_key


def _upload(client, name="notes.txt", content=b"hello", content_type="text/plain", category="docs"):
    return client.post(
        "/files/upload",
        files={"file": (name, content, content_type)},
        data={"category": category, "description": "Some notes"},
    )


def test_original_name_from_key():
    key = "docs/123e4567-e89b-12d3-a456-426614174000-my-notes.txt"
    assert original_name_from_key(key) == "my-notes.txt"
    assert original_name_from_key("docs/plain.txt") == "plain.txt"


def test_upload_list_download_delete(client, blobs):
    response = _upload(client)
    assert response.status_code == 200
    info = response.json()["file"]
    assert info["originalName"] == "notes.txt"
    assert info["fileName"].startswith("docs/") and info["fileName"].endswith("-notes.txt")
    assert info["extension"] == ".txt"
    assert blobs.objects[info["fileName"]]["metadata"]["category"] == "docs"

    listed = client.get("/files", params={"category": "docs"}).json()
    assert [f["name"] for f in listed] == [info["fileName"]]
    assert listed[0]["originalName"] == "notes.txt"
    assert client.get("/files", params={"category": "other"}).json() == []

    response = client.get(f"/files/{info['fileName']}/download")
    assert response.status_code == 200
    assert response.content == b"hello"
    assert response.headers["content-disposition"] == 'attachment; filename="notes.txt"'

    response = client.get(f"/files/{info['fileName']}/content")
    assert response.status_code == 200
    assert response.json()["content"] == "hello"

    assert client.delete(f"/files/{info['fileName']}").status_code == 200
    assert client.delete(f"/files/{info['fileName']}").status_code == 404
    assert client.get(f"/files/{info['fileName']}/download").status_code == 404


def test_binary_content_preview_is_400(client):
    info = _upload(client, name="logo.png", content=b"\x89PNG", content_type="image/png").json()["file"]
    response = client.get(f"/files/{info['fileName']}/content")
    assert response.status_code == 400
    assert response.json()["detail"] == "File is not a text-based file"


def test_upload_without_file_is_400(client):
    assert client.post("/files/upload", data={"category": "docs"}).status_code == 400


def test_oversized_upload_is_413(client):
    assert _upload(client, content=b"x" * (1024 * 1024 + 1)).status_code == 413


def test_bulk_upload_reports_partial_failure(client, blobs):
    response = client.post(
        "/files/bulk-upload",
        files=[
            ("files", ("a.txt", b"a", "text/plain")),
            ("files", ("big.bin", b"x" * (1024 * 1024 + 1), "application/octet-stream")),
        ],
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Bulk upload completed: 1 successful, 1 failed"
    assert [f["originalName"] for f in body["successful"]] == ["a.txt"]
    assert body["successful"][0]["fileName"].startswith("bulk/")
    assert [f["fileName"] for f in body["failed"]] == ["big.bin"]
    assert len(blobs.objects) == 1


def test_stats(client):
    _upload(client, content=b"12345")
    _upload(client, name="b.txt", content=b"123", category="other")

    stats = client.get("/files/stats/categories").json()
    assert stats["totalFiles"] == 2
    assert stats["totalSize"] == 8
    counts = {c["name"]: (c["count"], c["totalSize"]) for c in stats["categories"]}
    assert counts == {"docs": (1, 5), "other": (1, 3)}


def test_category_is_sanitized(client):
    info = _upload(client, category="../../x").json()["file"]
    assert info["category"] == "x"
    assert info["fileName"].startswith("x/")


def test_knowledge_category_is_reserved(client, blobs):
    assert _upload(client, category="knowledge").status_code == 400
    response = client.post(
        "/files/bulk-upload",
        files=[("files", ("a.txt", b"a", "text/plain"))],
        data={"category": "knowledge"},
    )
    assert response.status_code == 400
    assert blobs.objects == {}


def test_download_header_with_non_ascii_name(client, blobs):
    info = _upload(client, name="日本.txt").json()["file"]
    assert blobs.objects[info["fileName"]]["contentType"] == "text/plain"

    response = client.get(f"/files/{info['fileName']}/download")
    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        "attachment; filename=\".txt\"; filename*=UTF-8''%E6%97%A5%E6%9C%AC.txt"
    )
