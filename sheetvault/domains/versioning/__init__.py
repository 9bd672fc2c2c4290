from sheetvault.domains.versioning.entities import (
    CellKey, CellState, Workbook, Worksheet, Commit, CommitChange,
    cell_address, column_letters, create_commit_hash
)
from sheetvault.domains.versioning.schemas import (
    CellInput, WorksheetInput, BootstrapRequest, WorkbookCreate, CellChange,
    CommitCreate, RevertRequest, WorkbookResponse, WorkbookListResponse,
    WorkbookDetailResponse, WorksheetResponse, CellResponse, CommitResponse,
    CommitListResponse, CommitChangeResponse, CommitDetailResponse,
    CellVersionListResponse, DiffResponse
)

__all__ = [
    "CellKey", "CellState", "Workbook", "Worksheet", "Commit", "CommitChange",
    "cell_address", "column_letters", "create_commit_hash",
    "CellInput", "WorksheetInput", "BootstrapRequest", "WorkbookCreate", "CellChange",
    "CommitCreate", "RevertRequest", "WorkbookResponse", "WorkbookListResponse",
    "WorkbookDetailResponse", "WorksheetResponse", "CellResponse", "CommitResponse",
    "CommitListResponse", "CommitChangeResponse", "CommitDetailResponse",
    "CellVersionListResponse", "DiffResponse"
]
