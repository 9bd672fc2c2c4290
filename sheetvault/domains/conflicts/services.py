import logging
from typing import Optional, List, Dict, Any, Sequence, Union
from sqlalchemy.ext.asyncio import AsyncSession

from sheetvault.core.exceptions import ConflictError, ValidationError
from sheetvault.db.repositories import CellVersionRepository
from sheetvault.domains.conflicts.entities import Conflict, ResolutionStrategy
from sheetvault.domains.versioning.entities import CellKey, Commit, cell_address
from sheetvault.domains.versioning.schemas import CellChange
from sheetvault.domains.versioning.services import VersionStore, parse_changes

logger = logging.getLogger(__name__)


class ConflictDetector:
    """
    Проверка правки, основанной на коммите base, против текущего HEAD.

    base == HEAD: коммит записывается сразу.
    base != HEAD без пересечений с коммитами (base, HEAD]: правка
    переносится на HEAD.
    Иначе по каждой пересекающейся ячейке сохраняется конфликт и коммит
    отклоняется с ConflictError. Автоматически конфликты не разрешаются.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = VersionStore(session)
        self.version_repository = CellVersionRepository(session)

    async def commit(
        self,
        workbook_id: int,
        author_id: str,
        message: str,
        base_commit_id: int,
        changed_cells: Sequence[Union[CellChange, Dict[str, Any]]]
    ) -> Commit:
        changes = parse_changes(changed_cells)

        head = await self.store.get_head(workbook_id)
        if head is None:
            raise ValidationError(f"Workbook {workbook_id} has no bootstrap commit")

        if base_commit_id != head.id:
            base = await self.store.get_commit(workbook_id, base_commit_id)
            touched = await self.version_repository.touched_since(workbook_id, base.id, head.id)
            overlapping = [
                c for c in changes
                if CellKey(c.worksheet_id, c.row, c.col) in touched
            ]

            if overlapping:
                # Закрываем транзакцию чтения до записи конфликтов
                await self.session.rollback()
                conflicts = await self._stage(workbook_id, author_id, base.id, head.id, overlapping, touched)
                raise ConflictError(
                    f"Commit based on {base.id} overlaps {len(conflicts)} cells changed up to HEAD {head.id}",
                    head_commit_id=head.id,
                    conflicts=[c.to_dict() for c in conflicts]
                )

            logger.info(f"Rebasing edit by {author_id} from commit {base.id} onto HEAD {head.id}")

        return await self.store.record_commit(
            workbook_id=workbook_id,
            author_id=author_id,
            message=message,
            changed_cells=changes,
            base_commit_id=head.id
        )

    async def _stage(
        self,
        workbook_id: int,
        author_id: str,
        base_commit_id: int,
        head_commit_id: int,
        overlapping: List[CellChange],
        touched
    ) -> List[Conflict]:
        rows = []
        for change in overlapping:
            key = CellKey(change.worksheet_id, change.row, change.col)
            their_state, their_user = touched[key]
            rows.append({
                "worksheet_id": key.worksheet_id,
                "row_idx": key.row,
                "col_idx": key.col,
                "cell_reference": their_state.address or cell_address(key.row, key.col),
                "base_commit_id": base_commit_id,
                "head_commit_id": head_commit_id,
                "their_user_id": their_user,
                "their_value": their_state.value,
                "their_formula": their_state.formula,
                "proposed_by": author_id,
                "proposed_value": change.new_value,
                "proposed_formula": change.new_formula,
                "proposed_style": None if change.keeps_style else change.new_style,
            })
        return await self.store.stage_conflicts(workbook_id, rows)


class ConflictResolutionService:
    """Явное разрешение конфликта пользователем: mine, theirs или свое значение"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = VersionStore(session)

    async def list_conflicts(self, workbook_id: int, status: Optional[str] = None) -> List[Conflict]:
        return await self.store.list_conflicts(workbook_id, status)

    async def resolve(
        self,
        workbook_id: int,
        conflict_id: int,
        strategy: Union[ResolutionStrategy, str],
        author_id: str,
        value: Optional[str] = None,
        formula: Optional[str] = None
    ) -> Commit:
        """
        Новый коммит с выбранным значением поверх текущего HEAD.

        Конфликт помечается разрешенным в той же транзакции.
        """
        try:
            strategy = ResolutionStrategy(strategy)
        except ValueError as exc:
            raise ValidationError(f"Unknown resolution strategy: {strategy}") from exc

        conflict = await self.store.get_conflict(workbook_id, conflict_id)
        if not conflict.is_pending:
            raise ValidationError(f"Conflict {conflict_id} is already resolved")

        current = await self.store.get_cell(conflict.key)
        current_style = current.style if current else None

        if strategy == ResolutionStrategy.MINE:
            new_value, new_formula = conflict.proposed_value, conflict.proposed_formula
            new_style = conflict.proposed_style if conflict.proposed_style is not None else current_style
        elif strategy == ResolutionStrategy.THEIRS:
            new_value = current.value if current else None
            new_formula = current.formula if current else None
            new_style = current_style
        else:
            new_value, new_formula, new_style = value, formula, current_style

        head = await self.store.get_head(workbook_id)
        commit = await self.store.record_commit(
            workbook_id=workbook_id,
            author_id=author_id,
            message=f"Resolve conflict in {conflict.cell_reference} ({strategy.value})",
            changed_cells=[
                CellChange(
                    worksheet_id=conflict.key.worksheet_id,
                    row=conflict.key.row,
                    col=conflict.key.col,
                    new_value=new_value,
                    new_formula=new_formula,
                    new_style=new_style
                )
            ],
            base_commit_id=head.id,
            resolved_conflict_ids=[conflict.id],
            resolution=strategy.value
        )

        logger.info(f"Conflict {conflict.id} in {conflict.cell_reference} resolved by {author_id} ({strategy.value})")
        return commit
