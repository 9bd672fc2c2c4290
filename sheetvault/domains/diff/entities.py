"""
Типы семантического диффа между двумя состояниями книги.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from sheetvault.domains.versioning.entities import CellKey, CellState


class ChangeType(str, Enum):
    """Тип изменения ячейки"""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass
class CellDiff:
    """Изменение одной ячейки между двумя коммитами"""

    key: CellKey
    cell_reference: str
    change_type: ChangeType
    description: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    old_formula: Optional[str] = None
    new_formula: Optional[str] = None
    new_style: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "worksheet_id": self.key.worksheet_id,
            "row": self.key.row,
            "col": self.key.col,
            "cell_reference": self.cell_reference,
            "change_type": self.change_type.value,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "old_formula": self.old_formula,
            "new_formula": self.new_formula,
            "description": self.description,
        }


def describe_change(old: Optional[CellState], new: Optional[CellState]) -> str:
    """
    Человекочитаемое описание изменения.

    Порядок правил фиксирован: добавление, удаление, формула, значение,
    затем общий случай. Первое подходящее правило выигрывает.
    """
    if old is None and new is not None:
        return f'Added value "{new.value or ""}" to cell {new.address}'
    if old is not None and new is None:
        return f"Deleted value from cell {old.address}"

    if old.formula != new.formula:
        if new.formula:
            return f"Updated formula in {new.address} to {new.formula}"
        return f'Removed formula from {new.address}, value is now "{new.value or ""}"'

    if old.value != new.value:
        return f'Changed {new.address} from "{old.value or ""}" to "{new.value or ""}"'

    return f"Updated cell {new.address}"


def added(key: CellKey, state: CellState) -> CellDiff:
    return CellDiff(
        key=key,
        cell_reference=state.address,
        change_type=ChangeType.ADDED,
        new_value=state.value,
        new_formula=state.formula,
        new_style=state.style,
        description=describe_change(None, state),
    )


def deleted(key: CellKey, state: CellState) -> CellDiff:
    return CellDiff(
        key=key,
        cell_reference=state.address,
        change_type=ChangeType.DELETED,
        old_value=state.value,
        old_formula=state.formula,
        description=describe_change(state, None),
    )


def modified(key: CellKey, old: CellState, new: CellState) -> CellDiff:
    return CellDiff(
        key=key,
        cell_reference=new.address,
        change_type=ChangeType.MODIFIED,
        old_value=old.value,
        new_value=new.value,
        old_formula=old.formula,
        new_formula=new.formula,
        new_style=new.style,
        description=describe_change(old, new),
    )
