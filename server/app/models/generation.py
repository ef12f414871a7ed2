from typing import Optional

from app.models.base import CamelModel


class GenerateRequest(CamelModel):
    project_name: Optional[str] = None
    action_button_type: Optional[str] = None
    business_logic: Optional[str] = None
    field_binding_id: Optional[str] = None
    additional_requirements: Optional[str] = None


class GenerateResponse(CamelModel):
    message: str
    code_id: str
    project_name: str
    project_id: str
    generated_code: str
    used_examples: int


class RegenerateRequest(CamelModel):
    modifications: Optional[str] = None
    project_id: Optional[str] = None


class RegenerateResponse(CamelModel):
    message: str
    code_id: str
    generated_code: str
    version: str


class HistoryEntry(CamelModel):
    id: str
    project_name: str
    project_id: str
    action_button_type: Optional[str] = None
    generated_at: str
    version: str
    status: str
