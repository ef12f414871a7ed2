import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status

from app.dependencies import get_file_service
from app.routers.knowledge import read_uploads
from app.services.file_service import FileService
from app.services.knowledge_service import FileTooLargeError, attachment_disposition
from app.utils import logger
from app.utils.errors import BlobNotFoundError, InvalidInputError, StorageError

router = APIRouter(prefix="/files", tags=["Files"])


@router.post("/upload", summary="Upload a general file")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    category: str = Form("general"),
    description: str = Form(""),
    service: FileService = Depends(get_file_service),
):
    incoming = await read_uploads([file] if file is not None else [])
    try:
        info = await asyncio.to_thread(service.upload, incoming[0] if incoming else None, category, description)
    except FileTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"File upload error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "File uploaded successfully", "file": info}


@router.post("/bulk-upload", summary="Upload several files at once")
async def bulk_upload(
    files: Optional[List[UploadFile]] = File(None),
    category: str = Form("bulk"),
    description: str = Form(""),
    service: FileService = Depends(get_file_service),
):
    incoming = await read_uploads(files)
    try:
        return await asyncio.to_thread(service.bulk_upload, incoming, category, description)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", summary="List files")
def list_files(
    category: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    service: FileService = Depends(get_file_service),
):
    try:
        return service.list(category, limit)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/stats/categories", summary="File counts and sizes per category")
def file_stats(service: FileService = Depends(get_file_service)):
    try:
        return service.stats()
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/{key:path}/download", summary="Download a file")
def download_file(key: str, service: FileService = Depends(get_file_service)):
    try:
        result = service.download(key)
    except BlobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    except StorageError as e:
        logger.error(f"File download error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return Response(
        content=result["data"],
        media_type=result["contentType"],
        headers={"Content-Disposition": attachment_disposition(result["originalName"])},
    )


@router.get("/{key:path}/content", summary="Preview a text file")
def file_content(key: str, service: FileService = Depends(get_file_service)):
    try:
        return service.content(key)
    except BlobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.delete("/{key:path}", summary="Delete a file")
def delete_file(key: str, service: FileService = Depends(get_file_service)):
    try:
        service.delete(key)
    except BlobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    except StorageError as e:
        logger.error(f"File delete error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "File deleted successfully", "fileName": key}
