from fastapi import Depends, Request

from app.config.settings import settings
from app.services.field_binding_service import FieldBindingService
from app.services.file_service import FileService
from app.services.generation_service import GenerationService
from app.services.knowledge_service import KnowledgeService


# Clients are built once in the lifespan and kept on app.state.
# Tests swap them by assigning fakes to app.state before the first request.

def get_document_store(request: Request):
    return request.app.state.document_store


def get_blob_store(request: Request):
    return request.app.state.blob_store


def get_llm_client(request: Request):
    return request.app.state.llm_client


def get_field_binding_service(store=Depends(get_document_store)) -> FieldBindingService:
    return FieldBindingService(store)


def get_knowledge_service(store=Depends(get_document_store), blobs=Depends(get_blob_store)) -> KnowledgeService:
    return KnowledgeService(store, blobs, settings.max_file_size_bytes)


def get_file_service(blobs=Depends(get_blob_store)) -> FileService:
    return FileService(blobs, settings.max_file_size_bytes)


def get_generation_service(
    store=Depends(get_document_store),
    bindings: FieldBindingService = Depends(get_field_binding_service),
    knowledge: KnowledgeService = Depends(get_knowledge_service),
    llm=Depends(get_llm_client),
) -> GenerationService:
    return GenerationService(
        store,
        bindings,
        knowledge,
        llm,
        max_completion_tokens=settings.max_completion_tokens,
        example_char_limit=settings.example_char_limit,
        max_examples=settings.max_examples,
    )
