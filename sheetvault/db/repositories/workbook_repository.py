from typing import Optional, List, Dict, Iterable, Any, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, insert, tuple_
from sqlalchemy.sql import func

from sheetvault.db.base import chunked
from sheetvault.db.models import (
    Workbook as WorkbookModel,
    Worksheet as WorksheetModel,
    Cell as CellModel,
    Commit as CommitModel,
    CellVersion as CellVersionModel,
    CommitChange as CommitChangeModel,
    Conflict as ConflictModel
)
from sheetvault.domains.versioning.entities import CellKey, CellState

if TYPE_CHECKING:
    from sheetvault.domains.versioning.entities import Workbook, Worksheet


class WorkbookRepository:
    """Репозиторий для работы с книгами"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, name: str, owner_id: str) -> "Workbook":
        """Создание новой книги"""
        db_workbook = WorkbookModel(name=name, owner_id=owner_id)
        self.session.add(db_workbook)
        await self.session.flush()
        await self.session.refresh(db_workbook)
        return self._to_domain(db_workbook)

    async def get_by_id(self, workbook_id: int) -> Optional["Workbook"]:
        """Получение книги по id"""
        result = await self.session.execute(
            select(WorkbookModel).where(WorkbookModel.id == workbook_id)
        )
        db_workbook = result.scalar_one_or_none()
        return self._to_domain(db_workbook) if db_workbook else None

    async def lock(self, workbook_id: int) -> Optional["Workbook"]:
        """Блокировка строки книги до конца транзакции (сериализует коммиты)"""
        result = await self.session.execute(
            select(WorkbookModel)
            .where(WorkbookModel.id == workbook_id)
            .with_for_update()
        )
        db_workbook = result.scalar_one_or_none()
        return self._to_domain(db_workbook) if db_workbook else None

    async def get_by_owner(self, owner_id: str, limit: int = 100, offset: int = 0) -> List["Workbook"]:
        """Получение книг владельца"""
        result = await self.session.execute(
            select(WorkbookModel)
            .where(WorkbookModel.owner_id == owner_id)
            .order_by(WorkbookModel.updated_at.desc(), WorkbookModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [self._to_domain(wb) for wb in result.scalars().all()]

    async def touch(self, workbook_id: int) -> None:
        await self.session.execute(
            update(WorkbookModel)
            .where(WorkbookModel.id == workbook_id)
            .values(updated_at=func.now())
        )

    async def delete(self, workbook_id: int) -> bool:
        """Каскадное удаление книги со всей историей"""
        worksheet_ids = select(WorksheetModel.id).where(WorksheetModel.workbook_id == workbook_id)
        commit_ids = select(CommitModel.id).where(CommitModel.workbook_id == workbook_id)

        await self.session.execute(delete(ConflictModel).where(ConflictModel.workbook_id == workbook_id))
        await self.session.execute(delete(CommitChangeModel).where(CommitChangeModel.commit_id.in_(commit_ids)))
        await self.session.execute(delete(CellVersionModel).where(CellVersionModel.commit_id.in_(commit_ids)))
        # Сначала отвязываем цепочку, чтобы удалить коммиты одной командой
        await self.session.execute(
            update(CommitModel).where(CommitModel.workbook_id == workbook_id).values(parent_id=None)
        )
        await self.session.execute(delete(CommitModel).where(CommitModel.workbook_id == workbook_id))
        await self.session.execute(delete(CellModel).where(CellModel.worksheet_id.in_(worksheet_ids)))
        await self.session.execute(delete(WorksheetModel).where(WorksheetModel.workbook_id == workbook_id))
        result = await self.session.execute(delete(WorkbookModel).where(WorkbookModel.id == workbook_id))
        return result.rowcount > 0

    def _to_domain(self, db_workbook: WorkbookModel) -> "Workbook":
        """Преобразование модели БД в доменную сущность"""
        from sheetvault.domains.versioning.entities import Workbook

        return Workbook(
            id=db_workbook.id,
            name=db_workbook.name,
            owner_id=db_workbook.owner_id,
            created_at=db_workbook.created_at,
            updated_at=db_workbook.updated_at
        )


class WorksheetRepository:
    """Репозиторий для работы с листами"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, workbook_id: int, name: str, order: int) -> "Worksheet":
        db_worksheet = WorksheetModel(workbook_id=workbook_id, name=name, sheet_order=order)
        self.session.add(db_worksheet)
        await self.session.flush()
        return self._to_domain(db_worksheet)

    async def get_by_workbook(self, workbook_id: int) -> List["Worksheet"]:
        """Листы книги в порядке отображения"""
        result = await self.session.execute(
            select(WorksheetModel)
            .where(WorksheetModel.workbook_id == workbook_id)
            .order_by(WorksheetModel.sheet_order, WorksheetModel.id)
        )
        return [self._to_domain(ws) for ws in result.scalars().all()]

    def _to_domain(self, db_worksheet: WorksheetModel) -> "Worksheet":
        from sheetvault.domains.versioning.entities import Worksheet

        return Worksheet(
            id=db_worksheet.id,
            workbook_id=db_worksheet.workbook_id,
            name=db_worksheet.name,
            order=db_worksheet.sheet_order
        )


class CellRepository:
    """Репозиторий текущего состояния ячеек"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def bulk_insert(self, rows: List[Dict[str, Any]], batch_size: int) -> None:
        for batch in chunked(rows, batch_size):
            await self.session.execute(insert(CellModel), batch)

    async def get_many(self, keys: Iterable[CellKey], batch_size: int = 500) -> Dict[CellKey, CellModel]:
        """Загрузка существующих строк по составным ключам"""
        keys = list(keys)
        found: Dict[CellKey, CellModel] = {}
        for batch in chunked(keys, batch_size):
            result = await self.session.execute(
                select(CellModel).where(
                    tuple_(CellModel.worksheet_id, CellModel.row_idx, CellModel.col_idx).in_(
                        [(k.worksheet_id, k.row, k.col) for k in batch]
                    )
                )
            )
            for db_cell in result.scalars().all():
                found[CellKey(db_cell.worksheet_id, db_cell.row_idx, db_cell.col_idx)] = db_cell
        return found

    async def upsert(self, key: CellKey, state: CellState, existing: Optional[CellModel]) -> None:
        if existing is None:
            self.session.add(CellModel(
                worksheet_id=key.worksheet_id,
                row_idx=key.row,
                col_idx=key.col,
                address=state.address,
                value=state.value,
                formula=state.formula,
                style=state.style
            ))
            return

        existing.value = state.value
        existing.formula = state.formula
        existing.style = state.style

    async def remove(self, existing: CellModel) -> None:
        await self.session.delete(existing)

    async def get_by_workbook(self, workbook_id: int) -> Dict[CellKey, CellState]:
        """Текущая сетка книги"""
        result = await self.session.execute(
            select(CellModel)
            .join(WorksheetModel, CellModel.worksheet_id == WorksheetModel.id)
            .where(WorksheetModel.workbook_id == workbook_id)
            .order_by(CellModel.worksheet_id, CellModel.row_idx, CellModel.col_idx)
        )
        return {
            CellKey(c.worksheet_id, c.row_idx, c.col_idx): to_state(c)
            for c in result.scalars().all()
        }


def to_state(db_cell) -> CellState:
    """Строка ячейки или версии ячейки в CellState"""
    return CellState(
        address=db_cell.address,
        value=db_cell.value,
        formula=db_cell.formula,
        style=db_cell.style
    )
