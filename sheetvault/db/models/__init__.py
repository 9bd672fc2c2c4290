from sheetvault.db.base import Base
from sheetvault.db.models.workbook import Workbook, Worksheet, Cell
from sheetvault.db.models.commit import Commit, CellVersion, CommitChange
from sheetvault.db.models.conflict import Conflict

__all__ = [
    "Base",
    "Workbook",
    "Worksheet",
    "Cell",
    "Commit",
    "CellVersion",
    "CommitChange",
    "Conflict"
]
