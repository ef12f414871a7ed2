"""Shared fixtures: in-memory document store, in-memory blobs and a scripted LLM."""
import os
import tempfile
from datetime import datetime, timezone

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BUCKET_NAME"] = "test-bucket"
os.environ["AZURE_OPENAI_ENDPOINT"] = "https://example.openai.azure.com/"
os.environ["AZURE_OPENAI_API_KEY"] = "test-key"
os.environ["AZURE_OPENAI_DEPLOYMENT_NAME"] = "gpt-test"
os.environ["AZURE_OPENAI_API_VERSION"] = "2025-01-01-preview"
os.environ["MAX_FILE_SIZE_MB"] = "1"
os.environ["ENV"] = "test"
os.environ["LOGS_DIR"] = tempfile.mkdtemp(prefix="o9-logs-")

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.services.document_store import DocumentStore
from app.utils.errors import BlobNotFoundError, StorageError

GENERATED_CODE = (
    "define('o9.DemoProject',['o9/data/query', 'o9/data/cellset'],function(){\n"
    "    var ActionButtonCall = function(o9Params) { return RuleOutputToUI; };\n"
    "    return { ActionButtonCall:ActionButtonCall };\n"
    "});"
)


class FakeBlobStore:
    def __init__(self):
        self.objects = {}
        self.broken_keys = set()

    def ensure_bucket(self):
        pass

    def url_for(self, key):
        return f"https://test-bucket.example/{key}"

    def upload(self, key, data, content_type, metadata=None, content_disposition=None):
        self.objects[key] = {
            "data": data,
            "contentType": content_type,
            "metadata": metadata or {},
            "lastModified": datetime.now(timezone.utc),
        }
        return self.url_for(key)

    def download(self, key):
        if key in self.broken_keys:
            raise StorageError(f"Failed to download blob: {key}")
        if key not in self.objects:
            raise BlobNotFoundError(key)
        return self.objects[key]["data"]

    def get_properties(self, key):
        if key not in self.objects:
            raise BlobNotFoundError(key)
        obj = self.objects[key]
        return {
            "contentType": obj["contentType"],
            "contentLength": len(obj["data"]),
            "lastModified": obj["lastModified"],
            "metadata": obj["metadata"],
        }

    def exists(self, key):
        return key in self.objects

    def delete(self, key):
        self.objects.pop(key, None)

    def list_blobs(self, prefix=""):
        for key in sorted(self.objects):
            if key.startswith(prefix):
                obj = self.objects[key]
                yield {"name": key, "size": len(obj["data"]), "lastModified": obj["lastModified"]}


class ScriptedLLM:
    def __init__(self, response=GENERATED_CODE):
        self.response = response
        self.error = None
        self.calls = []

    async def generate_completion(self, messages, max_tokens=4000):
        self.calls.append({"messages": messages, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def store():
    document_store = DocumentStore("sqlite://")
    document_store.initialize()
    return document_store


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def client(store, blobs, llm):
    app.state.document_store = store
    app.state.blob_store = blobs
    app.state.llm_client = llm
    yield TestClient(app)
    app.state.document_store = None
    app.state.blob_store = None
    app.state.llm_client = None


@pytest.fixture
def binding(client):
    response = client.post("/bindings", json={
        "name": "Price Update",
        "actionButtonType": "Mass Edit/Add",
        "description": "Update price for selected SKUs",
        "fields": [
            {"name": "SKU", "dataType": "array", "classification": "dimension", "required": True},
            {"name": "Price", "dataType": "number", "classification": "measure", "required": True},
        ],
    })
    assert response.status_code == 201
    return response.json()["fieldBinding"]
