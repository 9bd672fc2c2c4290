import logging
from typing import Optional, List, Dict, Any, Iterable, Sequence, Union, TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from sheetvault.core.config import settings
from sheetvault.core.db import write_transaction
from sheetvault.core.exceptions import ConflictError, NotFoundError, ValidationError
from sheetvault.db.repositories import (
    WorkbookRepository, WorksheetRepository, CellRepository,
    CommitRepository, CellVersionRepository, CommitChangeRepository,
    ConflictRepository
)
from sheetvault.db.repositories.workbook_repository import to_state
from sheetvault.domains.diff.entities import ChangeType, describe_change
from sheetvault.domains.versioning.entities import (
    CellKey, CellState, Commit, CommitChange, Workbook, Worksheet,
    cell_address, create_commit_hash
)
from sheetvault.domains.versioning.schemas import BootstrapRequest, CellChange, WorksheetInput

if TYPE_CHECKING:
    from sheetvault.domains.conflicts.entities import Conflict

logger = logging.getLogger(__name__)

BOOTSTRAP_MESSAGE = "Initial Import"


def parse_changes(changed_cells: Sequence[Union[CellChange, Dict[str, Any]]]) -> List[CellChange]:
    """Проверка набора измененных ячеек; каждая ячейка не более одного раза"""
    try:
        changes = [
            c if isinstance(c, CellChange) else CellChange.model_validate(c)
            for c in changed_cells
        ]
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid cell change: {exc}") from exc

    keys = [(c.worksheet_id, c.row, c.col) for c in changes]
    if len(keys) != len(set(keys)):
        raise ValidationError("Each cell may appear only once per commit")
    return changes


class VersionStore:
    """
    Хранилище версий книги.

    Единственный компонент, который пишет в таблицы книг, листов,
    ячеек, коммитов, версий ячеек, изменений и конфликтов. Каждая
    операция записи выполняется одной транзакцией.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.workbook_repository = WorkbookRepository(session)
        self.worksheet_repository = WorksheetRepository(session)
        self.cell_repository = CellRepository(session)
        self.commit_repository = CommitRepository(session)
        self.version_repository = CellVersionRepository(session)
        self.change_repository = CommitChangeRepository(session)
        self.conflict_repository = ConflictRepository(session)
        self.batch_size = settings.cell_batch_size

    async def create_workbook(self, name: str, owner_id: str) -> Workbook:
        """Создание книги (только метаданные)"""
        async with write_transaction(self.session, "create_workbook"):
            workbook = await self.workbook_repository.create(name, owner_id)

        logger.info(f"Created workbook {workbook.id} for owner {owner_id}")
        return workbook

    async def create_bootstrap_commit(
        self,
        workbook_id: int,
        author_id: str,
        worksheets: Sequence[Union[WorksheetInput, Dict[str, Any]]]
    ) -> Commit:
        """
        Первый коммит книги: листы, ячейки и полный снимок версий.

        Ячейки пишутся пачками по cell_batch_size строк. Либо видны все
        строки, либо ни одной.
        """
        payload = self._validate_bootstrap(worksheets)

        async with write_transaction(self.session, "create_bootstrap_commit"):
            await self._lock_workbook(workbook_id)

            if await self.commit_repository.get_head(workbook_id) is not None:
                raise ValidationError(f"Workbook {workbook_id} already has a bootstrap commit")

            commit = await self.commit_repository.create(
                workbook_id=workbook_id,
                author_id=author_id,
                message=BOOTSTRAP_MESSAGE,
                hash=create_commit_hash(workbook_id, author_id, "initial")
            )

            cell_rows: List[Dict[str, Any]] = []
            version_rows: List[Dict[str, Any]] = []
            change_rows: List[Dict[str, Any]] = []

            for sheet in payload.worksheets:
                worksheet = await self.worksheet_repository.create(workbook_id, sheet.name, sheet.order)

                for cell in sheet.cells:
                    key = CellKey(worksheet.id, cell.row, cell.col)
                    state = CellState(
                        address=cell.address,
                        value=cell.value,
                        formula=cell.formula,
                        style=cell.style
                    )
                    # Пустые ячейки не занимают координату
                    if state.is_empty:
                        continue

                    cell_rows.append(self._cell_row(key, state))
                    version_rows.append(self._version_row(commit.id, key, state))
                    change_rows.append(self._change_row(commit.id, key, None, state))

            await self.cell_repository.bulk_insert(cell_rows, self.batch_size)
            await self.version_repository.bulk_insert(version_rows, self.batch_size)
            await self.change_repository.bulk_insert(change_rows, self.batch_size)
            await self.workbook_repository.touch(workbook_id)

        logger.info(
            f"Bootstrap commit {commit.short_ref} for workbook {workbook_id}: "
            f"{len(payload.worksheets)} worksheets, {len(cell_rows)} cells"
        )
        return commit

    async def record_commit(
        self,
        workbook_id: int,
        author_id: str,
        message: str,
        changed_cells: Sequence[Union[CellChange, Dict[str, Any]]],
        base_commit_id: int,
        resolved_conflict_ids: Iterable[int] = (),
        resolution: Optional[str] = None
    ) -> Commit:
        """
        Новый коммит поверх HEAD.

        Вызывающий должен пройти ConflictDetector. Если base_commit_id уже
        не HEAD, коммит отклоняется с ConflictError. Версии пишутся только
        для ячеек, состояние которых действительно изменилось.
        """
        changes = parse_changes(changed_cells)
        resolved_conflict_ids = list(resolved_conflict_ids)

        async with write_transaction(self.session, "record_commit"):
            await self._lock_workbook(workbook_id)

            head = await self.commit_repository.get_head(workbook_id)
            if head is None:
                raise ValidationError(f"Workbook {workbook_id} has no bootstrap commit")
            if head.id != base_commit_id:
                raise ConflictError(
                    f"Base commit {base_commit_id} is not HEAD {head.id} of workbook {workbook_id}",
                    head_commit_id=head.id
                )

            await self._check_worksheets(workbook_id, {c.worksheet_id for c in changes})

            commit = await self.commit_repository.create(
                workbook_id=workbook_id,
                author_id=author_id,
                message=message,
                hash=create_commit_hash(workbook_id, author_id),
                parent_id=head.id
            )

            keys = [CellKey(c.worksheet_id, c.row, c.col) for c in changes]
            existing = await self.cell_repository.get_many(keys, self.batch_size)

            version_rows: List[Dict[str, Any]] = []
            change_rows: List[Dict[str, Any]] = []

            for key, change in zip(keys, changes):
                db_cell = existing.get(key)
                old_state = to_state(db_cell) if db_cell is not None else None
                new_state = CellState(
                    address=db_cell.address if db_cell is not None else cell_address(key.row, key.col),
                    value=change.new_value,
                    formula=change.new_formula,
                    style=old_state.style if change.keeps_style and old_state else change.new_style
                )

                if new_state.is_empty:
                    if db_cell is None:
                        continue
                    await self.cell_repository.remove(db_cell)
                    version_rows.append(self._version_row(commit.id, key, CellState(address=new_state.address)))
                    change_rows.append(self._change_row(commit.id, key, old_state, None))
                    continue

                if old_state == new_state:
                    continue

                await self.cell_repository.upsert(key, new_state, db_cell)
                version_rows.append(self._version_row(commit.id, key, new_state))
                # Правка только стиля попадает в версию, но не в дифф
                if old_state is None or not old_state.same_content(new_state):
                    change_rows.append(self._change_row(commit.id, key, old_state, new_state))

            await self.version_repository.bulk_insert(version_rows, self.batch_size)
            await self.change_repository.bulk_insert(change_rows, self.batch_size)

            if resolved_conflict_ids:
                updated = await self.conflict_repository.mark_resolved(
                    resolved_conflict_ids, resolution, commit.id
                )
                if updated != len(resolved_conflict_ids):
                    raise ValidationError("Conflict is already resolved")

            await self.workbook_repository.touch(workbook_id)

        commit.changes_count = len(version_rows)
        logger.info(
            f"Commit {commit.short_ref} on workbook {workbook_id} by {author_id}: "
            f"{len(version_rows)} cells changed"
        )
        return commit

    async def stage_conflicts(self, workbook_id: int, rows: List[Dict[str, Any]]) -> List["Conflict"]:
        """
        Сохранение отклоненных правок как ожидающих конфликтов.

        Отдельная транзакция: ячейки, коммиты и версии не меняются.
        """
        async with write_transaction(self.session, "stage_conflicts"):
            conflicts = await self.conflict_repository.create_many(
                [dict(row, workbook_id=workbook_id) for row in rows]
            )

        logger.info(
            f"Staged {len(conflicts)} conflicts on workbook {workbook_id}: "
            f"{', '.join(c.cell_reference for c in conflicts)}"
        )
        return conflicts

    async def get_conflict(self, workbook_id: int, conflict_id: int) -> "Conflict":
        conflict = await self.conflict_repository.get_by_id(conflict_id)
        if conflict is None or conflict.workbook_id != workbook_id:
            raise NotFoundError(f"Conflict {conflict_id} not found in workbook {workbook_id}")
        return conflict

    async def list_conflicts(self, workbook_id: int, status: Optional[str] = None) -> List["Conflict"]:
        await self.get_workbook(workbook_id)
        return await self.conflict_repository.get_by_workbook(workbook_id, status)

    async def get_workbook(self, workbook_id: int) -> Workbook:
        workbook = await self.workbook_repository.get_by_id(workbook_id)
        if workbook is None:
            raise NotFoundError(f"Workbook {workbook_id} not found")
        return workbook

    async def list_workbooks(self, owner_id: str, limit: int = 100, offset: int = 0) -> List[Workbook]:
        return await self.workbook_repository.get_by_owner(owner_id, limit, offset)

    async def delete_workbook(self, workbook_id: int) -> None:
        """Каскадное удаление книги; единственный способ удалить историю"""
        async with write_transaction(self.session, "delete_workbook"):
            await self._lock_workbook(workbook_id)
            await self.workbook_repository.delete(workbook_id)

        logger.info(f"Deleted workbook {workbook_id}")

    async def list_worksheets(self, workbook_id: int) -> List[Worksheet]:
        await self.get_workbook(workbook_id)
        return await self.worksheet_repository.get_by_workbook(workbook_id)

    async def get_cells(self, workbook_id: int) -> Dict[CellKey, CellState]:
        """Текущая сетка (состояние на HEAD)"""
        await self.get_workbook(workbook_id)
        return await self.cell_repository.get_by_workbook(workbook_id)

    async def get_cell(self, key: CellKey) -> Optional[CellState]:
        found = await self.cell_repository.get_many([key])
        db_cell = found.get(key)
        return to_state(db_cell) if db_cell is not None else None

    async def get_head(self, workbook_id: int) -> Optional[Commit]:
        await self.get_workbook(workbook_id)
        return await self.commit_repository.get_head(workbook_id)

    async def list_commits(self, workbook_id: int, limit: int = 50, offset: int = 0) -> List[Commit]:
        """История книги, новые коммиты первыми"""
        await self.get_workbook(workbook_id)
        return await self.commit_repository.get_by_workbook(workbook_id, limit, offset)

    async def get_commit(self, workbook_id: int, commit_id: int) -> Commit:
        commit = await self.commit_repository.get_in_workbook(workbook_id, commit_id)
        if commit is None:
            raise NotFoundError(f"Commit {commit_id} not found in workbook {workbook_id}")
        return commit

    async def get_cell_versions(self, commit_id: int) -> Dict[CellKey, CellState]:
        """Собственные версии коммита: полный снимок у первого, дельта у остальных"""
        if await self.commit_repository.get_by_id(commit_id) is None:
            raise NotFoundError(f"Commit {commit_id} not found")
        return await self.version_repository.get_by_commit(commit_id)

    async def get_commit_changes(self, workbook_id: int, commit_id: int) -> List[CommitChange]:
        await self.get_commit(workbook_id, commit_id)
        return await self.change_repository.get_by_commit(commit_id)

    async def get_state_at(self, workbook_id: int, commit_id: int) -> Dict[CellKey, CellState]:
        """Полное логическое состояние книги на момент коммита"""
        await self.get_commit(workbook_id, commit_id)
        return await self.version_repository.replay(workbook_id, commit_id)

    async def _lock_workbook(self, workbook_id: int) -> Workbook:
        workbook = await self.workbook_repository.lock(workbook_id)
        if workbook is None:
            raise NotFoundError(f"Workbook {workbook_id} not found")
        return workbook

    async def _check_worksheets(self, workbook_id: int, worksheet_ids: Iterable[int]) -> None:
        known = {ws.id for ws in await self.worksheet_repository.get_by_workbook(workbook_id)}
        unknown = sorted(set(worksheet_ids) - known)
        if unknown:
            raise NotFoundError(f"Worksheets {unknown} do not belong to workbook {workbook_id}")

    def _validate_bootstrap(self, worksheets) -> BootstrapRequest:
        try:
            return BootstrapRequest.model_validate({"worksheets": list(worksheets)})
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid ingestion payload: {exc}") from exc

    @staticmethod
    def _cell_row(key: CellKey, state: CellState) -> Dict[str, Any]:
        return {
            "worksheet_id": key.worksheet_id,
            "row_idx": key.row,
            "col_idx": key.col,
            "address": state.address,
            "value": state.value,
            "formula": state.formula,
            "style": state.style,
        }

    @staticmethod
    def _version_row(commit_id: int, key: CellKey, state: CellState) -> Dict[str, Any]:
        row = VersionStore._cell_row(key, state)
        row["commit_id"] = commit_id
        return row

    @staticmethod
    def _change_row(
        commit_id: int,
        key: CellKey,
        old: Optional[CellState],
        new: Optional[CellState]
    ) -> Dict[str, Any]:
        if old is None:
            change_type = ChangeType.ADDED
        elif new is None:
            change_type = ChangeType.DELETED
        else:
            change_type = ChangeType.MODIFIED

        return {
            "commit_id": commit_id,
            "worksheet_id": key.worksheet_id,
            "row_idx": key.row,
            "col_idx": key.col,
            "cell_reference": (new or old).address,
            "change_type": change_type.value,
            "old_value": old.value if old else None,
            "new_value": new.value if new else None,
            "old_formula": old.formula if old else None,
            "new_formula": new.formula if new else None,
            "description": describe_change(old, new),
        }
