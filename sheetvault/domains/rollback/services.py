import logging
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from sheetvault.core.exceptions import ValidationError
from sheetvault.domains.diff.entities import ChangeType
from sheetvault.domains.diff.services import DiffEngine
from sheetvault.domains.versioning.entities import CellState, Commit
from sheetvault.domains.versioning.schemas import CellChange
from sheetvault.domains.versioning.services import VersionStore

logger = logging.getLogger(__name__)


class RollbackCoordinator:
    """
    Откат книги к состоянию прошлого коммита.

    История не переписывается: откат это обычный новый коммит,
    который можно сравнить и откатить как любой другой.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = VersionStore(session)
        self.diff_engine = DiffEngine(session)

    async def revert(self, workbook_id: int, target_commit_id: int, author_id: str) -> Commit:
        head = await self.store.get_head(workbook_id)
        if head is None:
            raise ValidationError(f"Workbook {workbook_id} has no commits to revert")

        target = await self.store.get_commit(workbook_id, target_commit_id)

        # target стоит на стороне head, чтобы дифф сразу давал значения для записи
        diffs = await self.diff_engine.compare_commits(workbook_id, head.id, target.id)
        current = await self.store.get_cells(workbook_id)

        changes: List[CellChange] = []
        for diff in diffs:
            if diff.change_type == ChangeType.DELETED:
                wanted = None
            else:
                wanted = CellState(
                    address=diff.cell_reference,
                    value=diff.new_value,
                    formula=diff.new_formula,
                    style=diff.new_style
                )

            if wanted == current.get(diff.key):
                continue

            changes.append(CellChange(
                worksheet_id=diff.key.worksheet_id,
                row=diff.key.row,
                col=diff.key.col,
                new_value=wanted.value if wanted else None,
                new_formula=wanted.formula if wanted else None,
                new_style=wanted.style if wanted else None
            ))

        commit = await self.store.record_commit(
            workbook_id=workbook_id,
            author_id=author_id,
            message=f"Revert to {target.short_ref}",
            changed_cells=changes,
            base_commit_id=head.id
        )

        logger.info(
            f"Workbook {workbook_id} reverted to {target.short_ref} by {author_id}: "
            f"{len(changes)} cells restored in {commit.short_ref}"
        )
        return commit
