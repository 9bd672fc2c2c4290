from sheetvault.db.repositories.workbook_repository import (
    WorkbookRepository, WorksheetRepository, CellRepository
)
from sheetvault.db.repositories.commit_repository import (
    CommitRepository, CellVersionRepository, CommitChangeRepository
)
from sheetvault.db.repositories.conflict_repository import ConflictRepository

__all__ = [
    "WorkbookRepository",
    "WorksheetRepository",
    "CellRepository",
    "CommitRepository",
    "CellVersionRepository",
    "CommitChangeRepository",
    "ConflictRepository"
]
