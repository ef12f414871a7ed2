import os
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from app.services.document_store import DocumentStore
from app.services.field_binding_service import utc_now_iso
from app.utils import logger
from app.utils.errors import DocumentNotFoundError, InvalidInputError, StorageError
from app.utils.s3_utils import S3BlobStore

CONTAINER = "knowledgeBase"
KNOWLEDGE_TYPE = "knowledge"
EXAMPLE_FILE_TYPE = "application/javascript"
JAVASCRIPT_TYPES = ("application/javascript", "text/javascript")
# Every knowledge blob lives under this prefix, general files never do
BLOB_PREFIX = "knowledge"

ALLOWED_MIME_TYPES = {
    "application/javascript",
    "text/javascript",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "text/markdown",
    "text/plain",
    "application/pdf",
}
ALLOWED_EXTENSIONS = (".js", ".md")

MAX_UPLOAD_FILES = 10


class FileTooLargeError(InvalidInputError):
    pass


@dataclass
class IncomingFile:
    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def is_allowed_knowledge_file(file: IncomingFile) -> bool:
    return (file.content_type or "") in ALLOWED_MIME_TYPES or file.filename.lower().endswith(ALLOWED_EXTENSIONS)


def normalized_content_type(file: IncomingFile) -> str:
    # Browsers send .js as octet-stream or text/javascript; store one type
    if file.filename.lower().endswith(".js") or (file.content_type or "").lower() in JAVASCRIPT_TYPES:
        return EXAMPLE_FILE_TYPE
    if file.filename.lower().endswith(".md") and not file.content_type:
        return "text/markdown"
    return file.content_type or "application/octet-stream"


def safe_original_name(filename: str) -> str:
    name = os.path.basename((filename or "").replace("\\", "/"))
    return name or "upload"


def safe_category(category: Optional[str], default: str) -> str:
    """Blob key segment: letters, digits, '-' and '_' only."""
    cleaned = re.sub(r"[^A-Za-z0-9_-]", "", category or "")
    return cleaned or default


def attachment_disposition(filename: str) -> str:
    """
    Content-Disposition for a download. The plain filename is reduced to
    printable ASCII without quotes or backslashes; the full name goes into
    filename* (RFC 5987) when that reduction changed it.
    """
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "", filename or "").strip() or "download"
    value = f'attachment; filename="{fallback}"'
    if fallback != filename:
        value += f"; filename*=UTF-8''{quote(filename or '', safe='')}"
    return value


class KnowledgeService:
    """
    Knowledge-base entries: one metadata document per blob.
    The pair is written and removed together.
    """

    def __init__(self, store: DocumentStore, blobs: S3BlobStore, max_file_size: int):
        self.store = store
        self.blobs = blobs
        self.max_file_size = max_file_size

    def _check_upload(self, files: List[IncomingFile]):
        if not files:
            raise InvalidInputError("No files uploaded")
        if len(files) > MAX_UPLOAD_FILES:
            raise InvalidInputError(f"At most {MAX_UPLOAD_FILES} files can be uploaded at once")
        for file in files:
            if file.size > self.max_file_size:
                raise FileTooLargeError(f"File {file.filename} exceeds the maximum size of {self.max_file_size} bytes")
            if not is_allowed_knowledge_file(file):
                raise InvalidInputError("Invalid file type. Only JS, images, markdown, and PDF files are allowed.")

    def upload(
        self,
        files: List[IncomingFile],
        category: Optional[str],
        action_button_type: Optional[str],
        description: Optional[str],
    ) -> List[Dict[str, Any]]:
        self._check_upload(files)
        category = safe_category(category, "general")
        results = []
        for file in files:
            file_id = str(uuid.uuid4())
            original_name = safe_original_name(file.filename)
            blob_key = f"{BLOB_PREFIX}/{category}/{file_id}-{original_name}"
            content_type = normalized_content_type(file)

            blob_url = self.blobs.upload(blob_key, file.data, content_type)
            item = {
                "id": file_id,
                "type": KNOWLEDGE_TYPE,
                "category": category,
                "actionButtonType": action_button_type,
                "fileName": original_name,
                "filePath": blob_key,
                "fileType": content_type,
                "fileSize": file.size,
                "description": description,
                "uploadedAt": utc_now_iso(),
                "blobUrl": blob_url,
            }
            try:
                created = self.store.create(CONTAINER, item)
            except StorageError:
                # Do not leave an orphaned blob behind
                logger.warning(f"Metadata write failed for {blob_key}, removing uploaded blob")
                self.blobs.delete(blob_key)
                raise
            results.append(created)
            logger.info(f"Uploaded knowledge file {original_name} as {blob_key}")
        return results

    def list(self, category: Optional[str] = None, action_button_type: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = {"type": KNOWLEDGE_TYPE}
        if category:
            filters["category"] = category
        if action_button_type:
            filters["actionButtonType"] = action_button_type
        return self.store.query(CONTAINER, filters=filters, order_by="uploadedAt")

    def get(self, item_id: str) -> Dict[str, Any]:
        return self.store.read(CONTAINER, item_id, KNOWLEDGE_TYPE)

    def get_content(self, item_id: str) -> Dict[str, Any]:
        item = self.get(item_id)
        data = self.blobs.download(item["filePath"])
        return {"item": item, "data": data}

    def search(
        self,
        search_query: Optional[str] = None,
        category: Optional[str] = None,
        action_button_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        filters = {"type": KNOWLEDGE_TYPE}
        if category:
            filters["category"] = category
        if action_button_type:
            filters["actionButtonType"] = action_button_type

        predicate = None
        if search_query:
            needle = search_query.lower()

            def predicate(item):
                return needle in (item.get("fileName") or "").lower() or needle in (item.get("description") or "").lower()

        return self.store.query(CONTAINER, filters=filters, order_by="uploadedAt", predicate=predicate)

    def delete(self, item_id: str) -> None:
        item = self.get(item_id)
        self.blobs.delete(item["filePath"])
        self.store.delete(CONTAINER, item_id, KNOWLEDGE_TYPE)
        logger.info(f"Deleted knowledge item {item_id} ({item['filePath']})")

    def stats(self) -> Dict[str, Any]:
        groups: Dict[tuple, Dict[str, Any]] = {}
        for item in self.store.query(CONTAINER, filters={"type": KNOWLEDGE_TYPE}):
            key = (item.get("category"), item.get("actionButtonType"))
            group = groups.setdefault(key, {
                "category": key[0],
                "actionButtonType": key[1],
                "count": 0,
                "totalSize": 0,
            })
            group["count"] += 1
            group["totalSize"] += item.get("fileSize") or 0
        categories = list(groups.values())
        return {
            "totalFiles": sum(g["count"] for g in categories),
            "totalSize": sum(g["totalSize"] for g in categories),
            "categories": categories,
        }

    def fetch_examples(self, action_button_type: str, limit: int = 3) -> List[Dict[str, Any]]:
        """
        Best-effort retrieval of the newest example scripts for a button type.
        A failed query yields no examples; a failed download skips that example.
        """
        try:
            entries = self.store.query(
                CONTAINER,
                filters={
                    "type": KNOWLEDGE_TYPE,
                    "actionButtonType": action_button_type,
                    "fileType": EXAMPLE_FILE_TYPE,
                },
                order_by="uploadedAt",
            )
        except StorageError as e:
            logger.warning(f"Knowledge base query failed, continuing without examples: {e}")
            return []
        logger.info(f"Found {len(entries)} knowledge base examples for {action_button_type}")

        examples = []
        for entry in entries[:limit]:
            try:
                content = self.blobs.download(entry["filePath"]).decode("utf-8")
            except (StorageError, UnicodeDecodeError, KeyError) as e:
                logger.warning(f"Could not download example {entry.get('fileName')}: {e}")
                continue
            examples.append({
                "fileName": entry.get("fileName"),
                "description": entry.get("description"),
                "content": content,
            })
        logger.info(f"Loaded {len(examples)} example codes")
        return examples

    def find_orphans(self) -> Dict[str, List[str]]:
        """
        Metadata entries whose blob is gone, and blobs under the knowledge
        prefix that no metadata entry points at. General files are never listed.
        """
        items = self.store.query(CONTAINER, filters={"type": KNOWLEDGE_TYPE})
        known_paths = {item["filePath"] for item in items}

        missing_blobs = [item["id"] for item in items if not self.blobs.exists(item["filePath"])]
        orphaned_blobs = [
            blob["name"]
            for blob in self.blobs.list_blobs(prefix=f"{BLOB_PREFIX}/")
            if blob["name"] not in known_paths
        ]
        return {"missingBlobs": missing_blobs, "orphanedBlobs": orphaned_blobs}

    def remove_orphans(self, orphans: Dict[str, List[str]]) -> int:
        removed = 0
        for item_id in orphans.get("missingBlobs", []):
            try:
                self.store.delete(CONTAINER, item_id, KNOWLEDGE_TYPE)
                removed += 1
            except DocumentNotFoundError:
                continue
        for key in orphans.get("orphanedBlobs", []):
            self.blobs.delete(key)
            removed += 1
        return removed

    def upload_folder(
        self,
        folder: str,
        category: str,
        action_button_type: str,
        description: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Register every .js file under a local folder as a knowledge example."""
        files = []
        for root, _, names in os.walk(folder):
            for name in sorted(names):
                if not name.lower().endswith(".js"):
                    continue
                with open(os.path.join(root, name), "rb") as f:
                    files.append(IncomingFile(filename=name, content_type=EXAMPLE_FILE_TYPE, data=f.read()))
        results = []
        # Upload in batches to respect the per-request file limit
        for start in range(0, len(files), MAX_UPLOAD_FILES):
            batch = files[start:start + MAX_UPLOAD_FILES]
            results.extend(self.upload(batch, category, action_button_type, description))
        return results
