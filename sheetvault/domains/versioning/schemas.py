from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime

from sheetvault.domains.versioning.entities import cell_address


def normalize_cell_text(v: Any) -> Optional[str]:
    """Пустая строка и None считаются пустой ячейкой"""
    if v is None:
        return None
    if not isinstance(v, str):
        v = str(v)
    return v if v != "" else None


class CellInput(BaseModel):
    """Ячейка из загружаемого файла"""
    row: int = Field(..., ge=0)
    col: int = Field(..., ge=0)
    address: Optional[str] = Field(None, max_length=16)
    value: Optional[str] = None
    formula: Optional[str] = None
    style: Optional[Dict[str, Any]] = None

    @field_validator('value', 'formula', mode='before')
    @classmethod
    def validate_text(cls, v):
        return normalize_cell_text(v)

    @model_validator(mode='after')
    def fill_address(self):
        if not self.address:
            self.address = cell_address(self.row, self.col)
        return self


class WorksheetInput(BaseModel):
    """Лист из загружаемого файла"""
    name: str = Field(..., min_length=1, max_length=255)
    order: int = Field(..., ge=0)
    cells: List[CellInput] = Field(default_factory=list)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Worksheet name cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_unique_cells(self):
        seen = set()
        for cell in self.cells:
            if (cell.row, cell.col) in seen:
                raise ValueError(f'Duplicate cell {cell.address} in worksheet {self.name}')
            seen.add((cell.row, cell.col))
        return self


class BootstrapRequest(BaseModel):
    """Схема первичной загрузки книги"""
    worksheets: List[WorksheetInput] = Field(..., min_length=1)


class WorkbookCreate(BaseModel):
    """Схема для создания книги"""
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()


class CellChange(BaseModel):
    """Новое состояние одной ячейки в коммите"""
    worksheet_id: int
    row: int = Field(..., ge=0)
    col: int = Field(..., ge=0)
    new_value: Optional[str] = None
    new_formula: Optional[str] = None
    new_style: Optional[Dict[str, Any]] = None

    @field_validator('new_value', 'new_formula', mode='before')
    @classmethod
    def validate_text(cls, v):
        return normalize_cell_text(v)

    @property
    def is_clear(self) -> bool:
        return self.new_value is None and self.new_formula is None

    @property
    def keeps_style(self) -> bool:
        """Стиль не передан: остается текущий. Явный null стиль сбрасывает"""
        return "new_style" not in self.model_fields_set


class CommitCreate(BaseModel):
    """Схема для создания коммита"""
    base_commit_id: int
    message: str = Field(default="Auto-save", max_length=1000)
    changes: List[CellChange] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique_cells(self):
        keys = [(c.worksheet_id, c.row, c.col) for c in self.changes]
        if len(keys) != len(set(keys)):
            raise ValueError('Each cell may appear only once per commit')
        return self


class RevertRequest(BaseModel):
    """Схема для отката к коммиту"""
    target_commit_id: int


class WorkbookResponse(BaseModel):
    """Схема для ответа с данными книги"""
    id: int
    name: str
    owner_id: str
    created_at: datetime
    updated_at: datetime
    head_commit_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class WorkbookListResponse(BaseModel):
    workbooks: List[WorkbookResponse]


class CellResponse(BaseModel):
    worksheet_id: int
    row: int
    col: int
    address: str
    value: Optional[str] = None
    formula: Optional[str] = None
    style: Optional[Dict[str, Any]] = None


class WorksheetResponse(BaseModel):
    id: int
    name: str
    order: int
    cells: List[CellResponse] = Field(default_factory=list)


class WorkbookDetailResponse(WorkbookResponse):
    """Книга с листами и текущими ячейками"""
    worksheets: List[WorksheetResponse]


class CommitResponse(BaseModel):
    """Схема для ответа с данными коммита"""
    id: int
    workbook_id: int
    parent_id: Optional[int] = None
    author_id: str
    message: str
    hash: str
    short_ref: str
    timestamp: datetime
    changes_count: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class CommitListResponse(BaseModel):
    commits: List[CommitResponse]
    limit: int
    offset: int


class CommitChangeResponse(BaseModel):
    worksheet_id: int
    row: int
    col: int
    cell_reference: str
    change_type: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    old_formula: Optional[str] = None
    new_formula: Optional[str] = None
    description: str


class CommitDetailResponse(BaseModel):
    """Коммит вместе с предрасчитанными изменениями"""
    commit: CommitResponse
    changes: List[CommitChangeResponse]


class CellVersionListResponse(BaseModel):
    commit_id: int
    versions: List[CellResponse]


class DiffResponse(BaseModel):
    """Схема для ответа с разницей между коммитами"""
    workbook_id: int
    base_commit_id: Optional[int] = None
    head_commit_id: int
    changes: List[CommitChangeResponse]
    summary: Dict[str, int]
