from typing import Optional


class StorageError(Exception):
    """Raised when the document store or blob store fails."""


class DocumentNotFoundError(StorageError):
    def __init__(self, container: str, item_id: str):
        self.container = container
        self.item_id = item_id
        super().__init__(f"Document '{item_id}' not found in container '{container}'")


class DocumentConflictError(StorageError):
    def __init__(self, container: str, item_id: str):
        self.container = container
        self.item_id = item_id
        super().__init__(f"Document '{item_id}' already exists in container '{container}'")


class PreconditionFailedError(StorageError):
    """The stored etag no longer matches the one the caller read."""

    def __init__(self, container: str, item_id: str):
        self.container = container
        self.item_id = item_id
        super().__init__(f"Document '{item_id}' in container '{container}' was modified concurrently")


class BlobNotFoundError(StorageError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Blob '{key}' not found")


class BindingNotFoundError(Exception):
    def __init__(self, binding_id: str):
        self.binding_id = binding_id
        super().__init__("Field binding configuration not found")


class LLMServiceError(Exception):
    """Transport or HTTP failure while calling the completion service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        self.message = message
        super().__init__(f"AI generation failed: {message}")


class EmptyCompletionError(LLMServiceError):
    """The completion service answered but produced no usable content."""

    def __init__(self, message: str = "No code generated from AI service"):
        super().__init__(message)

    def __str__(self):
        return self.message


class InvalidInputError(ValueError):
    """Missing or malformed client input."""
