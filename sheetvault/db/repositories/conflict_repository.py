from typing import Optional, List, Dict, Any, Iterable, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_

from sheetvault.db.base import utcnow
from sheetvault.db.models import Conflict as ConflictModel
from sheetvault.domains.versioning.entities import CellKey

if TYPE_CHECKING:
    from sheetvault.domains.conflicts.entities import Conflict


class ConflictRepository:
    """Репозиторий для работы с конфликтами"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_many(self, rows: List[Dict[str, Any]]) -> List["Conflict"]:
        """Создание конфликтов (по одному на пересекающуюся ячейку)"""
        db_conflicts = [ConflictModel(status="pending", **row) for row in rows]
        self.session.add_all(db_conflicts)
        await self.session.flush()
        for db_conflict in db_conflicts:
            await self.session.refresh(db_conflict)
        return [self._to_domain(c) for c in db_conflicts]

    async def get_by_id(self, conflict_id: int) -> Optional["Conflict"]:
        result = await self.session.execute(
            select(ConflictModel).where(ConflictModel.id == conflict_id)
        )
        db_conflict = result.scalar_one_or_none()
        return self._to_domain(db_conflict) if db_conflict else None

    async def get_by_workbook(self, workbook_id: int, status: Optional[str] = None) -> List["Conflict"]:
        query = select(ConflictModel).where(ConflictModel.workbook_id == workbook_id)
        if status:
            query = query.where(ConflictModel.status == status)

        result = await self.session.execute(query.order_by(ConflictModel.id))
        return [self._to_domain(c) for c in result.scalars().all()]

    async def mark_resolved(self, conflict_ids: Iterable[int], resolution: str, commit_id: int) -> int:
        """Пометить конфликты разрешенными; уже разрешенные не трогаются"""
        conflict_ids = list(conflict_ids)
        if not conflict_ids:
            return 0

        result = await self.session.execute(
            update(ConflictModel)
            .where(
                and_(
                    ConflictModel.id.in_(conflict_ids),
                    ConflictModel.status == "pending"
                )
            )
            .values(
                status="resolved",
                resolution=resolution,
                resolved_commit_id=commit_id,
                resolved_at=utcnow()
            )
        )
        return result.rowcount

    def _to_domain(self, db_conflict: ConflictModel) -> "Conflict":
        """Преобразование модели БД в доменную сущность"""
        from sheetvault.domains.conflicts.entities import Conflict, ConflictStatus

        return Conflict(
            id=db_conflict.id,
            workbook_id=db_conflict.workbook_id,
            key=CellKey(db_conflict.worksheet_id, db_conflict.row_idx, db_conflict.col_idx),
            cell_reference=db_conflict.cell_reference,
            base_commit_id=db_conflict.base_commit_id,
            head_commit_id=db_conflict.head_commit_id,
            their_user_id=db_conflict.their_user_id,
            their_value=db_conflict.their_value,
            their_formula=db_conflict.their_formula,
            proposed_by=db_conflict.proposed_by,
            proposed_value=db_conflict.proposed_value,
            proposed_formula=db_conflict.proposed_formula,
            proposed_style=db_conflict.proposed_style,
            status=ConflictStatus(db_conflict.status),
            resolution=db_conflict.resolution,
            resolved_commit_id=db_conflict.resolved_commit_id,
            created_at=db_conflict.created_at,
            resolved_at=db_conflict.resolved_at
        )
