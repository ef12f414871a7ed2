from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from app.models.base import CamelModel

DATA_TYPES = ("string", "number", "boolean", "date", "array")
CLASSIFICATIONS = ("dimension", "measure", "parameter")


class BindingField(CamelModel):
    # Kept permissive so structural problems are reported by the validator, not by FastAPI
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    data_type: Optional[str] = None
    classification: Optional[str] = None
    required: bool = False
    description: Optional[str] = None


class FieldBindingCreateRequest(CamelModel):
    name: Optional[str] = None
    action_button_type: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[BindingField]] = None


class FieldBindingUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    action_button_type: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[BindingField]] = None
    is_active: Optional[bool] = None


class FieldValidationRequest(CamelModel):
    fields: Optional[List[BindingField]] = None


class CloneRequest(CamelModel):
    new_name: Optional[str] = None
    action_button_type: Optional[str] = None


def fields_to_documents(fields: Optional[List[BindingField]]) -> Optional[List[Dict[str, Any]]]:
    if fields is None:
        return None
    return [field.model_dump(by_alias=True, exclude_none=True) for field in fields]


class ValidationSummary(CamelModel):
    total_fields: int
    dimensions: int
    measures: int
    parameters: int


class ValidationResult(CamelModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    summary: ValidationSummary
