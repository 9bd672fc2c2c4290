import hashlib
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SHORT_REF_LENGTH = 8


def column_letters(col: int) -> str:
    """Номер колонки (с нуля) в буквенное обозначение: 0 -> A, 26 -> AA"""
    letters = ""
    col += 1
    while col > 0:
        col, remainder = divmod(col - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def cell_address(row: int, col: int) -> str:
    return f"{column_letters(col)}{row + 1}"


def create_commit_hash(workbook_id: int, author_id: str, kind: str = "commit") -> str:
    """
    Непрозрачный уникальный токен коммита.

    Не является хешем содержимого: два коммита с одинаковым
    результатом получают разные токены.
    """
    seed = f"{workbook_id}-{author_id}-{time.time_ns()}-{uuid.uuid4().hex}-{kind}"
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()


@dataclass(frozen=True, order=True)
class CellKey:
    """Составной ключ ячейки"""

    worksheet_id: int
    row: int
    col: int


@dataclass(frozen=True)
class CellState:
    """Логическое состояние ячейки: значение, формула, стиль"""

    address: str
    value: Optional[str] = None
    formula: Optional[str] = None
    style: Optional[Dict[str, Any]] = None

    @property
    def is_empty(self) -> bool:
        return self.value is None and self.formula is None

    def same_content(self, other: "CellState") -> bool:
        return self.value == other.value and self.formula == other.formula


class Workbook:
    """Версионируемая книга"""

    def __init__(
        self,
        id: int,
        name: str,
        owner_id: str,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.id = id
        self.name = name
        self.owner_id = owner_id
        self.created_at = created_at or datetime.now(timezone.utc)
        self.updated_at = updated_at or datetime.now(timezone.utc)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Workbook):
            return False
        return self.id == other.id

    def __repr__(self) -> str:
        return f"Workbook(id={self.id}, name={self.name})"


class Worksheet:
    def __init__(self, id: int, workbook_id: int, name: str, order: int):
        self.id = id
        self.workbook_id = workbook_id
        self.name = name
        self.order = order

    def __repr__(self) -> str:
        return f"Worksheet(id={self.id}, name={self.name}, order={self.order})"


class Commit:
    """Коммит в линейной истории книги"""

    def __init__(
        self,
        id: int,
        workbook_id: int,
        author_id: str,
        message: str,
        hash: str,
        timestamp: datetime,
        parent_id: Optional[int] = None,
        changes_count: Optional[int] = None
    ):
        self.id = id
        self.workbook_id = workbook_id
        self.author_id = author_id
        self.message = message
        self.hash = hash
        self.timestamp = timestamp
        self.parent_id = parent_id
        self.changes_count = changes_count

    @property
    def short_ref(self) -> str:
        return self.hash[:SHORT_REF_LENGTH]

    @property
    def is_bootstrap(self) -> bool:
        return self.parent_id is None

    def __eq__(self, other) -> bool:
        if not isinstance(other, Commit):
            return False
        return self.id == other.id

    def __repr__(self) -> str:
        return f"Commit(id={self.id}, ref={self.short_ref}, message={self.message!r})"


class CommitChange:
    """Предрасчитанное изменение ячейки в коммите"""

    def __init__(
        self,
        commit_id: int,
        key: CellKey,
        cell_reference: str,
        change_type: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        old_formula: Optional[str] = None,
        new_formula: Optional[str] = None,
        description: str = ""
    ):
        self.commit_id = commit_id
        self.key = key
        self.cell_reference = cell_reference
        self.change_type = change_type
        self.old_value = old_value
        self.new_value = new_value
        self.old_formula = old_formula
        self.new_formula = new_formula
        self.description = description

    def __repr__(self) -> str:
        return f"CommitChange({self.cell_reference}, {self.change_type})"
