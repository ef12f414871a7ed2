import os
import uuid
from typing import Any, Dict, List, Optional

from app.services.field_binding_service import utc_now_iso
from app.services.knowledge_service import (
    BLOB_PREFIX,
    FileTooLargeError,
    IncomingFile,
    attachment_disposition,
    normalized_content_type,
    safe_category,
    safe_original_name,
)
from app.utils import logger
from app.utils.errors import BlobNotFoundError, InvalidInputError, StorageError
from app.utils.s3_utils import S3BlobStore

TEXT_CONTENT_PREFIXES = ("text/", "application/javascript", "application/json", "application/xml")
MAX_BULK_FILES = 20


def original_name_from_key(key: str) -> str:
    """'<category>/<uuid>-<name>' -> '<name>'"""
    base = key.split("/", 1)[-1]
    uuid_length = 36
    if len(base) > uuid_length and base[uuid_length] == "-":
        return base[uuid_length + 1:]
    return base


def is_text_content_type(content_type: Optional[str]) -> bool:
    return (content_type or "").lower().startswith(TEXT_CONTENT_PREFIXES)


def is_knowledge_key(key: str) -> bool:
    return key.startswith(f"{BLOB_PREFIX}/")


def general_category(category: Optional[str], default: str) -> str:
    category = safe_category(category, default)
    if category == BLOB_PREFIX:
        raise InvalidInputError(f"Category '{BLOB_PREFIX}' is reserved for knowledge base files")
    return category


class FileService:
    """General-purpose blob files. No metadata documents are kept for these."""

    def __init__(self, blobs: S3BlobStore, max_file_size: int):
        self.blobs = blobs
        self.max_file_size = max_file_size

    def _upload_one(self, file: IncomingFile, category: str, description: str) -> Dict[str, Any]:
        if file.size > self.max_file_size:
            raise FileTooLargeError(f"File {file.filename} exceeds the maximum size of {self.max_file_size} bytes")
        file_id = str(uuid.uuid4())
        original_name = safe_original_name(file.filename)
        key = f"{category}/{file_id}-{original_name}"
        uploaded_at = utc_now_iso()
        url = self.blobs.upload(
            key,
            file.data,
            normalized_content_type(file),
            metadata={"category": category, "description": description, "uploadedAt": uploaded_at},
            content_disposition=attachment_disposition(original_name),
        )
        return {
            "id": file_id,
            "originalName": original_name,
            "fileName": key,
            "category": category,
            "description": description,
            "size": file.size,
            "mimetype": normalized_content_type(file),
            "extension": os.path.splitext(original_name)[1],
            "url": url,
            "uploadedAt": uploaded_at,
        }

    def upload(self, file: Optional[IncomingFile], category: str = "general", description: str = "") -> Dict[str, Any]:
        if file is None:
            raise InvalidInputError("No file uploaded")
        info = self._upload_one(file, general_category(category, "general"), description or "")
        logger.info(f"Uploaded file {info['fileName']}")
        return info

    def bulk_upload(self, files: List[IncomingFile], category: str = "bulk", description: str = "") -> Dict[str, Any]:
        if not files:
            raise InvalidInputError("No files uploaded")
        if len(files) > MAX_BULK_FILES:
            raise InvalidInputError(f"At most {MAX_BULK_FILES} files can be uploaded at once")
        category = general_category(category, "bulk")
        successful, failed = [], []
        for file in files:
            try:
                info = self._upload_one(file, category, description or "")
            except (InvalidInputError, StorageError) as e:
                failed.append({"fileName": file.filename, "error": str(e)})
                continue
            successful.append({
                "id": info["id"],
                "originalName": info["originalName"],
                "fileName": info["fileName"],
                "size": info["size"],
                "url": info["url"],
            })
        logger.info(f"Bulk upload completed: {len(successful)} successful, {len(failed)} failed")
        return {
            "message": f"Bulk upload completed: {len(successful)} successful, {len(failed)} failed",
            "successful": successful,
            "failed": failed,
        }

    def list(self, category: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        prefix = f"{safe_category(category, '')}/" if category else ""
        files = []
        for blob in self.blobs.list_blobs(prefix=prefix):
            if is_knowledge_key(blob["name"]):
                continue
            properties = self.blobs.get_properties(blob["name"])
            files.append({
                "name": blob["name"],
                "originalName": original_name_from_key(blob["name"]),
                "size": blob["size"],
                "lastModified": blob["lastModified"],
                "contentType": properties.get("contentType"),
                "category": blob["name"].split("/")[0],
                "url": self.blobs.url_for(blob["name"]),
                "metadata": properties.get("metadata") or {},
            })
            if len(files) >= limit:
                break
        files.sort(key=lambda f: (f["lastModified"] is not None, f["lastModified"] or 0), reverse=True)
        return files

    def download(self, key: str) -> Dict[str, Any]:
        properties = self.blobs.get_properties(key)
        data = self.blobs.download(key)
        return {
            "data": data,
            "contentType": properties.get("contentType") or "application/octet-stream",
            "originalName": original_name_from_key(key),
        }

    def content(self, key: str) -> Dict[str, Any]:
        properties = self.blobs.get_properties(key)
        if not is_text_content_type(properties.get("contentType")):
            raise InvalidInputError("File is not a text-based file")
        data = self.blobs.download(key)
        return {
            "fileName": key,
            "contentType": properties.get("contentType"),
            "size": properties.get("contentLength"),
            "content": data.decode("utf-8", errors="replace"),
            "lastModified": properties.get("lastModified"),
        }

    def delete(self, key: str) -> None:
        # Knowledge blobs are removed together with their metadata via /knowledge
        if is_knowledge_key(key) or not self.blobs.exists(key):
            raise BlobNotFoundError(key)
        self.blobs.delete(key)
        logger.info(f"Deleted file {key}")

    def stats(self) -> Dict[str, Any]:
        categories: Dict[str, Dict[str, Any]] = {}
        total_size = 0
        total_files = 0
        for blob in self.blobs.list_blobs():
            if is_knowledge_key(blob["name"]):
                continue
            name = blob["name"].split("/")[0]
            category = categories.setdefault(name, {"name": name, "count": 0, "totalSize": 0, "files": []})
            category["count"] += 1
            category["totalSize"] += blob["size"] or 0
            category["files"].append({"name": blob["name"], "size": blob["size"] or 0, "lastModified": blob["lastModified"]})
            total_size += blob["size"] or 0
            total_files += 1
        return {"totalFiles": total_files, "totalSize": total_size, "categories": list(categories.values())}
