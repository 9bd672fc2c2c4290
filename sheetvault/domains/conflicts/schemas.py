from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any

from sheetvault.domains.conflicts.entities import ResolutionStrategy
from sheetvault.domains.versioning.schemas import normalize_cell_text


class ConflictResponse(BaseModel):
    """Схема для ответа с данными конфликта"""
    id: int
    workbook_id: int
    worksheet_id: int
    row: int
    col: int
    cell_reference: str
    base_commit_id: int
    head_commit_id: int
    their_user: str
    their_value: Optional[str] = None
    their_formula: Optional[str] = None
    proposed_by: str
    proposed_value: Optional[str] = None
    proposed_formula: Optional[str] = None
    status: str
    resolution: Optional[str] = None
    resolved_commit_id: Optional[int] = None


class ConflictListResponse(BaseModel):
    conflicts: List[ConflictResponse]


class ConflictErrorResponse(BaseModel):
    """Тело ответа 409"""
    detail: str
    head_commit_id: Optional[int] = None
    conflicts: List[Dict[str, Any]] = Field(default_factory=list)


class ConflictResolutionRequest(BaseModel):
    """Схема для разрешения конфликта"""
    strategy: ResolutionStrategy
    value: Optional[str] = None
    formula: Optional[str] = None

    @field_validator('value', 'formula', mode='before')
    @classmethod
    def validate_text(cls, v):
        return normalize_cell_text(v)
