from typing import Optional, List, Dict, Any, Tuple, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, insert, func, and_

from sheetvault.db.base import chunked
from sheetvault.db.models import (
    Worksheet as WorksheetModel,
    Commit as CommitModel,
    CellVersion as CellVersionModel,
    CommitChange as CommitChangeModel
)
from sheetvault.db.repositories.workbook_repository import to_state
from sheetvault.domains.versioning.entities import CellKey, CellState

if TYPE_CHECKING:
    from sheetvault.domains.versioning.entities import Commit, CommitChange


class CommitRepository:
    """Репозиторий для работы с коммитами"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        workbook_id: int,
        author_id: str,
        message: str,
        hash: str,
        parent_id: Optional[int] = None
    ) -> "Commit":
        """Создание нового коммита"""
        db_commit = CommitModel(
            workbook_id=workbook_id,
            parent_id=parent_id,
            author_id=author_id,
            message=message,
            hash=hash
        )
        self.session.add(db_commit)
        await self.session.flush()
        return self._to_domain(db_commit)

    async def get_by_id(self, commit_id: int) -> Optional["Commit"]:
        result = await self.session.execute(
            select(CommitModel).where(CommitModel.id == commit_id)
        )
        db_commit = result.scalar_one_or_none()
        return self._to_domain(db_commit) if db_commit else None

    async def get_in_workbook(self, workbook_id: int, commit_id: int) -> Optional["Commit"]:
        """Коммит, только если он принадлежит книге"""
        result = await self.session.execute(
            select(CommitModel).where(
                and_(CommitModel.id == commit_id, CommitModel.workbook_id == workbook_id)
            )
        )
        db_commit = result.scalar_one_or_none()
        return self._to_domain(db_commit) if db_commit else None

    async def get_head(self, workbook_id: int) -> Optional["Commit"]:
        """Последний коммит книги"""
        result = await self.session.execute(
            select(CommitModel)
            .where(CommitModel.workbook_id == workbook_id)
            .order_by(CommitModel.id.desc())
            .limit(1)
        )
        db_commit = result.scalar_one_or_none()
        return self._to_domain(db_commit) if db_commit else None

    async def get_by_workbook(self, workbook_id: int, limit: int = 50, offset: int = 0) -> List["Commit"]:
        """История книги, новые коммиты первыми, с числом измененных ячеек"""
        changes_count = (
            select(func.count(CellVersionModel.id))
            .where(CellVersionModel.commit_id == CommitModel.id)
            .correlate(CommitModel)
            .scalar_subquery()
        )
        result = await self.session.execute(
            select(CommitModel, changes_count.label("changes_count"))
            .where(CommitModel.workbook_id == workbook_id)
            .order_by(CommitModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [self._to_domain(row[0], row[1]) for row in result.all()]

    def _to_domain(self, db_commit: CommitModel, changes_count: Optional[int] = None) -> "Commit":
        """Преобразование модели БД в доменную сущность"""
        from sheetvault.domains.versioning.entities import Commit

        return Commit(
            id=db_commit.id,
            workbook_id=db_commit.workbook_id,
            parent_id=db_commit.parent_id,
            author_id=db_commit.author_id,
            message=db_commit.message,
            hash=db_commit.hash,
            timestamp=db_commit.timestamp,
            changes_count=changes_count
        )


class CellVersionRepository:
    """Репозиторий неизменяемых версий ячеек"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def bulk_insert(self, rows: List[Dict[str, Any]], batch_size: int) -> None:
        for batch in chunked(rows, batch_size):
            await self.session.execute(insert(CellVersionModel), batch)

    async def get_by_commit(self, commit_id: int) -> Dict[CellKey, CellState]:
        """Только дельта этого коммита (полный снимок лишь у первого коммита)"""
        result = await self.session.execute(
            select(CellVersionModel)
            .where(CellVersionModel.commit_id == commit_id)
            .order_by(CellVersionModel.worksheet_id, CellVersionModel.row_idx, CellVersionModel.col_idx)
        )
        return {
            CellKey(v.worksheet_id, v.row_idx, v.col_idx): to_state(v)
            for v in result.scalars().all()
        }

    async def replay(self, workbook_id: int, up_to_commit_id: int) -> Dict[CellKey, CellState]:
        """
        Восстановление логического состояния книги на момент коммита.

        Дельты накатываются по порядку начиная с первого коммита;
        пустая версия означает, что ячейку очистили.
        """
        result = await self.session.execute(
            select(CellVersionModel)
            .join(CommitModel, CellVersionModel.commit_id == CommitModel.id)
            .where(
                and_(
                    CommitModel.workbook_id == workbook_id,
                    CommitModel.id <= up_to_commit_id
                )
            )
            .order_by(CommitModel.id, CellVersionModel.id)
        )

        state: Dict[CellKey, CellState] = {}
        for version in result.scalars().all():
            key = CellKey(version.worksheet_id, version.row_idx, version.col_idx)
            cell = to_state(version)
            if cell.is_empty:
                state.pop(key, None)
            else:
                state[key] = cell
        return state

    async def touched_since(
        self,
        workbook_id: int,
        after_commit_id: int,
        up_to_commit_id: int
    ) -> Dict[CellKey, Tuple[CellState, str]]:
        """Ячейки, измененные коммитами в (after, up_to], с последним автором"""
        result = await self.session.execute(
            select(CellVersionModel, CommitModel.author_id)
            .join(CommitModel, CellVersionModel.commit_id == CommitModel.id)
            .where(
                and_(
                    CommitModel.workbook_id == workbook_id,
                    CommitModel.id > after_commit_id,
                    CommitModel.id <= up_to_commit_id
                )
            )
            .order_by(CommitModel.id, CellVersionModel.id)
        )

        touched: Dict[CellKey, Tuple[CellState, str]] = {}
        for version, author_id in result.all():
            key = CellKey(version.worksheet_id, version.row_idx, version.col_idx)
            touched[key] = (to_state(version), author_id)
        return touched


class CommitChangeRepository:
    """Репозиторий предрасчитанных изменений"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def bulk_insert(self, rows: List[Dict[str, Any]], batch_size: int) -> None:
        for batch in chunked(rows, batch_size):
            await self.session.execute(insert(CommitChangeModel), batch)

    async def get_by_commit(self, commit_id: int) -> List["CommitChange"]:
        result = await self.session.execute(
            select(CommitChangeModel)
            .join(WorksheetModel, CommitChangeModel.worksheet_id == WorksheetModel.id)
            .where(CommitChangeModel.commit_id == commit_id)
            .order_by(WorksheetModel.sheet_order, CommitChangeModel.row_idx, CommitChangeModel.col_idx)
        )
        return [self._to_domain(change) for change in result.scalars().all()]

    def _to_domain(self, db_change: CommitChangeModel) -> "CommitChange":
        from sheetvault.domains.versioning.entities import CommitChange

        return CommitChange(
            commit_id=db_change.commit_id,
            key=CellKey(db_change.worksheet_id, db_change.row_idx, db_change.col_idx),
            cell_reference=db_change.cell_reference,
            change_type=db_change.change_type,
            old_value=db_change.old_value,
            new_value=db_change.new_value,
            old_formula=db_change.old_formula,
            new_formula=db_change.new_formula,
            description=db_change.description
        )
