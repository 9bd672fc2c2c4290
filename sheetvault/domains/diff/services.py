from typing import Optional, List, Dict
from sqlalchemy.ext.asyncio import AsyncSession

from sheetvault.domains.diff.entities import CellDiff, ChangeType, added, deleted, modified
from sheetvault.domains.versioning.entities import CellKey, CellState
from sheetvault.domains.versioning.services import VersionStore


def compute_diff(
    base: Optional[Dict[CellKey, CellState]],
    head: Dict[CellKey, CellState]
) -> List[CellDiff]:
    """
    Сравнение двух полных состояний по составному ключу ячейки.

    Сначала идут добавленные и измененные ячейки head, затем удаленные,
    каждая группа в порядке ключа. Неизменные ячейки не попадают в результат.
    """
    if base is None:
        return [added(key, head[key]) for key in sorted(head)]

    diffs: List[CellDiff] = []
    for key in sorted(head):
        head_cell = head[key]
        base_cell = base.get(key)
        if base_cell is None:
            diffs.append(added(key, head_cell))
        elif not base_cell.same_content(head_cell):
            diffs.append(modified(key, base_cell, head_cell))

    for key in sorted(base):
        if key not in head:
            diffs.append(deleted(key, base[key]))

    return diffs


def summarize(diffs: List[CellDiff]) -> Dict[str, int]:
    """Количество изменений по типам"""
    counts = {change_type.value: 0 for change_type in ChangeType}
    for diff in diffs:
        counts[diff.change_type.value] += 1
    return counts


class DiffEngine:
    """Семантический дифф между двумя коммитами книги"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = VersionStore(session)

    async def compare_commits(
        self,
        workbook_id: int,
        base_commit_id: Optional[int],
        head_commit_id: int
    ) -> List[CellDiff]:
        """
        Дифф base -> head. Без base все ячейки head считаются добавленными.

        Оба состояния восстанавливаются накатом дельт от первого коммита,
        а не чтением версий одного коммита.
        """
        head_state = await self.store.get_state_at(workbook_id, head_commit_id)

        base_state = None
        if base_commit_id is not None:
            base_state = await self.store.get_state_at(workbook_id, base_commit_id)

        return compute_diff(base_state, head_state)
