from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies import get_field_binding_service
from app.models.field_binding import (
    CloneRequest,
    FieldBindingCreateRequest,
    FieldBindingUpdateRequest,
    FieldValidationRequest,
    ValidationResult,
    fields_to_documents,
)
from app.services.field_binding_service import ACTION_BUTTON_TEMPLATES, FieldBindingService, validate_fields
from app.utils import logger
from app.utils.errors import BindingNotFoundError, InvalidInputError, StorageError

router = APIRouter(prefix="/bindings", tags=["Field Bindings"])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a field binding configuration")
def create_binding(payload: FieldBindingCreateRequest, service: FieldBindingService = Depends(get_field_binding_service)):
    try:
        binding = service.create(
            payload.name,
            payload.action_button_type,
            payload.description,
            fields_to_documents(payload.fields),
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"Create field binding error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "Field binding created successfully", "fieldBinding": binding}


@router.get("", summary="List field bindings")
def list_bindings(
    action_button_type: Optional[str] = Query(None, alias="actionButtonType"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    service: FieldBindingService = Depends(get_field_binding_service),
):
    try:
        return service.list(action_button_type, is_active)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/templates/action-button-types", summary="Field templates per action button type")
def binding_templates():
    return ACTION_BUTTON_TEMPLATES


@router.post("/validate", response_model=ValidationResult, summary="Validate a field list")
def validate_binding(payload: FieldValidationRequest):
    if payload.fields is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Fields must be an array")
    return validate_fields(fields_to_documents(payload.fields))


@router.get("/{binding_id}", summary="Fetch one field binding")
def get_binding(
    binding_id: str,
    action_button_type: Optional[str] = Query(None, alias="actionButtonType"),
    service: FieldBindingService = Depends(get_field_binding_service),
):
    try:
        return service.get(binding_id, action_button_type)
    except BindingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Field binding not found")
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.put("/{binding_id}", summary="Update a field binding")
def update_binding(
    binding_id: str,
    payload: FieldBindingUpdateRequest,
    service: FieldBindingService = Depends(get_field_binding_service),
):
    updates = payload.model_dump(by_alias=True, exclude_unset=True)
    try:
        binding = service.update(binding_id, updates)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BindingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Field binding not found")
    except StorageError as e:
        logger.error(f"Update field binding error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "Field binding updated successfully", "fieldBinding": binding}


@router.post("/{binding_id}/disable", summary="Soft-disable a field binding")
def disable_binding(
    binding_id: str,
    action_button_type: Optional[str] = Query(None, alias="actionButtonType"),
    service: FieldBindingService = Depends(get_field_binding_service),
):
    try:
        binding = service.disable(binding_id, action_button_type)
    except BindingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Field binding not found")
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "Field binding disabled successfully", "fieldBinding": binding}


@router.delete("/{binding_id}", summary="Delete a field binding")
def delete_binding(
    binding_id: str,
    action_button_type: Optional[str] = Query(None, alias="actionButtonType"),
    service: FieldBindingService = Depends(get_field_binding_service),
):
    try:
        service.delete(binding_id, action_button_type)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BindingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Field binding not found")
    except StorageError as e:
        logger.error(f"Delete field binding error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "Field binding deleted successfully"}


@router.post("/{binding_id}/clone", status_code=status.HTTP_201_CREATED, summary="Clone a field binding")
def clone_binding(
    binding_id: str,
    payload: CloneRequest,
    service: FieldBindingService = Depends(get_field_binding_service),
):
    try:
        binding = service.clone(binding_id, payload.new_name, payload.action_button_type)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BindingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Original field binding not found")
    except StorageError as e:
        logger.error(f"Clone field binding error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"message": "Field binding cloned successfully", "fieldBinding": binding}
