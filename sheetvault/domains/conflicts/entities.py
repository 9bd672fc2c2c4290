from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

from sheetvault.domains.versioning.entities import CellKey


class ConflictStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class ResolutionStrategy(str, Enum):
    """Как пользователь разрешает конфликт"""
    MINE = "mine"
    THEIRS = "theirs"
    CUSTOM = "custom"


class Conflict:
    """Две расходящиеся правки одной ячейки от разных пользователей"""

    def __init__(
        self,
        id: int,
        workbook_id: int,
        key: CellKey,
        cell_reference: str,
        base_commit_id: int,
        head_commit_id: int,
        their_user_id: str,
        proposed_by: str,
        their_value: Optional[str] = None,
        their_formula: Optional[str] = None,
        proposed_value: Optional[str] = None,
        proposed_formula: Optional[str] = None,
        proposed_style: Optional[Dict[str, Any]] = None,
        status: ConflictStatus = ConflictStatus.PENDING,
        resolution: Optional[str] = None,
        resolved_commit_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
        resolved_at: Optional[datetime] = None
    ):
        self.id = id
        self.workbook_id = workbook_id
        self.key = key
        self.cell_reference = cell_reference
        self.base_commit_id = base_commit_id
        self.head_commit_id = head_commit_id
        self.their_user_id = their_user_id
        self.their_value = their_value
        self.their_formula = their_formula
        self.proposed_by = proposed_by
        self.proposed_value = proposed_value
        self.proposed_formula = proposed_formula
        self.proposed_style = proposed_style
        self.status = status
        self.resolution = resolution
        self.resolved_commit_id = resolved_commit_id
        self.created_at = created_at or datetime.now(timezone.utc)
        self.resolved_at = resolved_at

    @property
    def is_pending(self) -> bool:
        return self.status == ConflictStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация конфликта в словарь"""
        return {
            "id": self.id,
            "workbook_id": self.workbook_id,
            "worksheet_id": self.key.worksheet_id,
            "row": self.key.row,
            "col": self.key.col,
            "cell_reference": self.cell_reference,
            "base_commit_id": self.base_commit_id,
            "head_commit_id": self.head_commit_id,
            "their_user": self.their_user_id,
            "their_value": self.their_value,
            "their_formula": self.their_formula,
            "proposed_by": self.proposed_by,
            "proposed_value": self.proposed_value,
            "proposed_formula": self.proposed_formula,
            "status": self.status.value,
            "resolution": self.resolution,
            "resolved_commit_id": self.resolved_commit_id,
        }

    def __repr__(self) -> str:
        return f"Conflict(id={self.id}, cell={self.cell_reference}, status={self.status.value})"
