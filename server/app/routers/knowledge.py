import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status

from app.dependencies import get_knowledge_service
from app.models.knowledge import KnowledgeSearchRequest
from app.services.knowledge_service import FileTooLargeError, IncomingFile, KnowledgeService, attachment_disposition
from app.utils import logger
from app.utils.errors import BlobNotFoundError, DocumentNotFoundError, InvalidInputError, StorageError

router = APIRouter(prefix="/knowledge", tags=["Knowledge Base"])


async def read_uploads(files: Optional[List[UploadFile]]) -> List[IncomingFile]:
    incoming = []
    for upload in files or []:
        incoming.append(IncomingFile(
            filename=upload.filename or "upload",
            content_type=upload.content_type,
            data=await upload.read(),
        ))
    return incoming


@router.post("/upload", summary="Upload knowledge base files")
async def upload_knowledge(
    files: Optional[List[UploadFile]] = File(None),
    category: Optional[str] = Form(None),
    action_button_type: Optional[str] = Form(None, alias="actionButtonType"),
    description: Optional[str] = Form(None),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    incoming = await read_uploads(files)
    try:
        uploaded = await asyncio.to_thread(service.upload, incoming, category, action_button_type, description)
    except FileTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"Knowledge upload error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "Files uploaded successfully", "files": uploaded}


@router.get("", summary="List knowledge base items")
def list_knowledge(
    category: Optional[str] = Query(None),
    action_button_type: Optional[str] = Query(None, alias="actionButtonType"),
    service: KnowledgeService = Depends(get_knowledge_service),
):
    try:
        return service.list(category, action_button_type)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/stats/overview", summary="Knowledge base statistics")
def knowledge_stats(service: KnowledgeService = Depends(get_knowledge_service)):
    try:
        return service.stats()
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.post("/search", summary="Search knowledge base by name or description")
def search_knowledge(payload: KnowledgeSearchRequest, service: KnowledgeService = Depends(get_knowledge_service)):
    try:
        return service.search(payload.search_query, payload.category, payload.action_button_type)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/{item_id}", summary="Fetch knowledge item metadata")
def get_knowledge_item(item_id: str, service: KnowledgeService = Depends(get_knowledge_service)):
    try:
        return service.get(item_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Knowledge item not found")
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/{item_id}/content", summary="Download knowledge file content")
def get_knowledge_content(item_id: str, service: KnowledgeService = Depends(get_knowledge_service)):
    try:
        result = service.get_content(item_id)
    except (DocumentNotFoundError, BlobNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    except StorageError as e:
        logger.error(f"Download knowledge file error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    item = result["item"]
    return Response(
        content=result["data"],
        media_type=item.get("fileType") or "application/octet-stream",
        headers={"Content-Disposition": attachment_disposition(item["fileName"])},
    )


@router.delete("/{item_id}", summary="Delete a knowledge item and its blob")
def delete_knowledge_item(item_id: str, service: KnowledgeService = Depends(get_knowledge_service)):
    try:
        service.delete(item_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Knowledge item not found")
    except StorageError as e:
        logger.error(f"Delete knowledge error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "Knowledge item deleted successfully"}
