"""Tests for knowledge base uploads, retrieval and consistency checks."""
import pytest

from app.services.file_service import FileService
from app.services.knowledge_service import IncomingFile, KnowledgeService, attachment_disposition, safe_category
from app.utils.errors import StorageError

ONE_MB = 1024 * 1024


def _upload(client, name="massEdit.js", content=b"define('o9.Mass')", content_type="application/javascript", **form):
    data = {"category": "examples", "actionButtonType": "Mass Edit/Add", "description": "Mass edit sample"}
    data.update(form)
    return client.post("/knowledge/upload", files=[("files", (name, content, content_type))], data=data)


def test_upload_list_content_delete(client, blobs):
    response = _upload(client)
    assert response.status_code == 200
    item = response.json()["files"][0]
    assert item["type"] == "knowledge"
    assert item["fileName"] == "massEdit.js"
    assert item["filePath"] == f"knowledge/examples/{item['id']}-massEdit.js"
    assert item["fileSize"] == len(b"define('o9.Mass')")
    assert item["filePath"] in blobs.objects

    listed = client.get("/knowledge", params={"actionButtonType": "Mass Edit/Add"}).json()
    assert [i["id"] for i in listed] == [item["id"]]
    assert client.get("/knowledge", params={"category": "other"}).json() == []

    assert client.get(f"/knowledge/{item['id']}").json()["description"] == "Mass edit sample"

    response = client.get(f"/knowledge/{item['id']}/content")
    assert response.status_code == 200
    assert response.content == b"define('o9.Mass')"
    assert response.headers["content-disposition"] == 'attachment; filename="massEdit.js"'

    assert client.delete(f"/knowledge/{item['id']}").status_code == 200
    assert item["filePath"] not in blobs.objects
    assert client.get(f"/knowledge/{item['id']}").status_code == 404
    assert client.delete(f"/knowledge/{item['id']}").status_code == 404


def test_js_sent_as_octet_stream_is_stored_as_javascript(client):
    item = _upload(client, content_type="application/octet-stream").json()["files"][0]
    assert item["fileType"] == "application/javascript"


def test_invalid_file_type_is_400(client, blobs):
    response = _upload(client, name="tool.exe", content=b"MZ", content_type="application/x-msdownload")
    assert response.status_code == 400
    assert blobs.objects == {}


def test_oversized_file_is_413(client, blobs):
    response = _upload(client, content=b"x" * (ONE_MB + 1))
    assert response.status_code == 413
    assert blobs.objects == {}


def test_upload_without_files_is_400(client):
    response = client.post("/knowledge/upload", data={"category": "examples"})
    assert response.status_code == 400


def test_missing_blob_content_is_404(client, blobs):
    item = _upload(client).json()["files"][0]
    blobs.objects.clear()
    assert client.get(f"/knowledge/{item['id']}/content").status_code == 404


def test_search_and_stats(client):
    _upload(client, name="priceUpdate.js", description="Updates prices")
    _upload(client, name="cleanup.js", description="Removes stale rows", actionButtonType="Mass Delete")
    _upload(client, name="notes.md", content=b"# notes", content_type="text/markdown", category="docs")

    found = client.post("/knowledge/search", json={"searchQuery": "PRICE"}).json()
    assert [i["fileName"] for i in found] == ["priceUpdate.js"]

    found = client.post("/knowledge/search", json={"searchQuery": "stale"}).json()
    assert [i["fileName"] for i in found] == ["cleanup.js"]

    found = client.post("/knowledge/search", json={"actionButtonType": "Mass Edit/Add"}).json()
    assert {i["fileName"] for i in found} == {"priceUpdate.js", "notes.md"}

    stats = client.get("/knowledge/stats/overview").json()
    assert stats["totalFiles"] == 3
    assert stats["totalSize"] == sum(i["fileSize"] for i in client.get("/knowledge").json())
    groups = {(g["category"], g["actionButtonType"]): g["count"] for g in stats["categories"]}
    assert groups == {
        ("examples", "Mass Edit/Add"): 1,
        ("examples", "Mass Delete"): 1,
        ("docs", "Mass Edit/Add"): 1,
    }


def test_metadata_failure_removes_uploaded_blob(store, blobs, monkeypatch):
    service = KnowledgeService(store, blobs, ONE_MB)

    def broken_create(*args, **kwargs):
        raise StorageError("database down")

    monkeypatch.setattr(store, "create", broken_create)
    with pytest.raises(StorageError):
        service.upload([IncomingFile("a.js", "application/javascript", b"x")], "examples", "Mass Delete", None)
    assert blobs.objects == {}


def test_fetch_examples_only_returns_javascript_for_type(store, blobs):
    service = KnowledgeService(store, blobs, ONE_MB)
    service.upload([IncomingFile("a.js", "application/javascript", b"define('o9.A')")], "examples", "Mass Delete", "A")
    service.upload([IncomingFile("b.md", "text/markdown", b"# B")], "examples", "Mass Delete", "B")
    service.upload([IncomingFile("c.js", "application/javascript", b"define('o9.C')")], "examples", "Mass Edit/Add", "C")

    examples = service.fetch_examples("Mass Delete")
    assert examples == [{"fileName": "a.js", "description": "A", "content": "define('o9.A')"}]


def test_fetch_examples_survives_query_failure(store, blobs, monkeypatch):
    service = KnowledgeService(store, blobs, ONE_MB)

    def broken_query(*args, **kwargs):
        raise StorageError("database down")

    monkeypatch.setattr(store, "query", broken_query)
    assert service.fetch_examples("Mass Delete") == []


def test_find_and_remove_orphans(store, blobs):
    service = KnowledgeService(store, blobs, ONE_MB)
    kept, lost = service.upload([
        IncomingFile("kept.js", "application/javascript", b"1"),
        IncomingFile("lost.js", "application/javascript", b"2"),
    ], "examples", "Mass Delete", None)
    blobs.delete(lost["filePath"])
    blobs.upload("knowledge/examples/stray.js", b"3", "application/javascript")
    blobs.upload("unrelated/file.txt", b"4", "text/plain")

    orphans = service.find_orphans()
    assert orphans == {"missingBlobs": [lost["id"]], "orphanedBlobs": ["knowledge/examples/stray.js"]}

    assert service.remove_orphans(orphans) == 2
    assert service.find_orphans() == {"missingBlobs": [], "orphanedBlobs": []}
    assert [i["id"] for i in service.list()] == [kept["id"]]
    assert "unrelated/file.txt" in blobs.objects


def test_upload_folder_registers_js_files(store, blobs, tmp_path):
    for index in range(12):
        (tmp_path / f"example{index:02d}.js").write_text(f"define('o9.E{index}')")
    (tmp_path / "README.md").write_text("ignored")

    service = KnowledgeService(store, blobs, ONE_MB)
    uploaded = service.upload_folder(str(tmp_path), "examples", "Mass Edit/Add", "Imported")
    assert len(uploaded) == 12
    assert all(item["fileType"] == "application/javascript" for item in uploaded)
    assert len(service.list(action_button_type="Mass Edit/Add")) == 12


def test_text_javascript_upload_is_stored_as_javascript(client):
    item = _upload(client, content_type="text/javascript").json()["files"][0]
    assert item["fileType"] == "application/javascript"


def test_attachment_disposition():
    assert attachment_disposition("massEdit.js") == 'attachment; filename="massEdit.js"'
    assert attachment_disposition('a"b\\c.js') == (
        'attachment; filename="abc.js"; filename*=UTF-8\'\'a%22b%5Cc.js'
    )
    assert attachment_disposition("价格.js") == (
        "attachment; filename=\".js\"; filename*=UTF-8''%E4%BB%B7%E6%A0%BC.js"
    )
    assert attachment_disposition("价格") == (
        "attachment; filename=\"download\"; filename*=UTF-8''%E4%BB%B7%E6%A0%BC"
    )


def test_non_ascii_file_name_downloads(client):
    item = _upload(client, name="价格.js").json()["files"][0]
    assert item["fileName"] == "价格.js"

    response = client.get(f"/knowledge/{item['id']}/content")
    assert response.status_code == 200
    assert response.content == b"define('o9.Mass')"
    assert "filename*=UTF-8''%E4%BB%B7%E6%A0%BC.js" in response.headers["content-disposition"]


def test_safe_category():
    assert safe_category("../x", "general") == "x"
    assert safe_category("../..", "general") == "general"
    assert safe_category(None, "general") == "general"
    assert safe_category("mass-edit_v2", "general") == "mass-edit_v2"


def test_category_cannot_escape_blob_prefix(client, blobs):
    item = _upload(client, category="../../x").json()["files"][0]
    assert item["category"] == "x"
    assert item["filePath"].startswith("knowledge/x/")
    assert list(blobs.objects) == [item["filePath"]]


def test_general_files_are_not_knowledge_orphans(client, store, blobs):
    knowledge = client.post(
        "/knowledge/upload",
        files=[("files", ("massEdit.js", b"define('o9.Mass')", "application/javascript"))],
    ).json()["files"][0]
    assert knowledge["category"] == "general"
    general = client.post("/files/upload", files={"file": ("report.txt", b"quarterly", "text/plain")}).json()["file"]
    assert general["fileName"].startswith("general/")

    service = KnowledgeService(store, blobs, ONE_MB)
    assert service.find_orphans() == {"missingBlobs": [], "orphanedBlobs": []}
    assert service.remove_orphans(service.find_orphans()) == 0
    assert general["fileName"] in blobs.objects
    assert knowledge["filePath"] in blobs.objects

    # The general file listing does not expose knowledge blobs either
    listed = FileService(blobs, ONE_MB).list()
    assert [f["name"] for f in listed] == [general["fileName"]]
    assert client.delete(f"/files/{knowledge['filePath']}").status_code == 404
    assert knowledge["filePath"] in blobs.objects
