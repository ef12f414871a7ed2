from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.dependencies import get_generation_service
from app.models.generation import (
    GenerateRequest,
    GenerateResponse,
    HistoryEntry,
    RegenerateRequest,
    RegenerateResponse,
)
from app.services.generation_service import GenerationService
from app.utils import logger
from app.utils.errors import (
    BindingNotFoundError,
    DocumentNotFoundError,
    EmptyCompletionError,
    InvalidInputError,
    LLMServiceError,
    PreconditionFailedError,
    StorageError,
)

router = APIRouter(prefix="/generate", tags=["Code Generation"])


def _llm_failure(e: LLMServiceError) -> HTTPException:
    detail = str(e)
    if e.status_code is not None:
        detail = f"{detail} (upstream status {e.status_code})"
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


@router.post("", response_model=GenerateResponse, summary="Generate Action Button JavaScript code")
async def generate_code(payload: GenerateRequest, service: GenerationService = Depends(get_generation_service)):
    logger.info(f"Code generation request received for project {payload.project_name}")
    try:
        return await service.generate(payload.model_dump(by_alias=True))
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BindingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except EmptyCompletionError as e:
        logger.error(f"Completion service returned no code: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except LLMServiceError as e:
        raise _llm_failure(e)
    except StorageError as e:
        logger.error(f"Code generation storage error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error saving generated code: {str(e)}"
        )


@router.get("/history/all", response_model=List[HistoryEntry], summary="Recent generations across projects")
def generation_history(
    limit: int = Query(50, ge=1, le=500),
    service: GenerationService = Depends(get_generation_service),
):
    try:
        return service.history(limit)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/project/{project_id}", summary="All generated code for a project, newest first")
def project_codes(project_id: str, service: GenerationService = Depends(get_generation_service)):
    try:
        return service.list_for_project(project_id)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/{code_id}", summary="Fetch a generated code record")
def get_generated_code(
    code_id: str,
    project_id: str = Query(None, alias="projectId"),
    service: GenerationService = Depends(get_generation_service),
):
    try:
        return service.get(code_id, project_id)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generated code not found")
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.post("/{code_id}/regenerate", response_model=RegenerateResponse, summary="Regenerate code with modifications")
async def regenerate_code(
    code_id: str,
    payload: RegenerateRequest,
    service: GenerationService = Depends(get_generation_service),
):
    try:
        return await service.regenerate(code_id, payload.project_id, payload.modifications)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generated code not found")
    except PreconditionFailedError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Generated code was modified by another request, reload and retry"
        )
    except EmptyCompletionError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except LLMServiceError as e:
        raise _llm_failure(e)
    except StorageError as e:
        logger.error(f"Code regeneration storage error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/{code_id}/download", summary="Download generated code as a .js file")
def download_code(
    code_id: str,
    project_id: str = Query(None, alias="projectId"),
    service: GenerationService = Depends(get_generation_service),
):
    try:
        download = service.download(code_id, project_id)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generated code not found")
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return Response(
        content=download["content"],
        media_type="application/javascript",
        headers={"Content-Disposition": f'attachment; filename="{download["filename"]}"'},
    )
