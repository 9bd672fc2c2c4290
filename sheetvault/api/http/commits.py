import logging
from fastapi import APIRouter, Depends, status, Query
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from sheetvault.core.auth import get_current_user_id
from sheetvault.core.db import get_db
from sheetvault.domains.collaboration.services import live_channel
from sheetvault.domains.conflicts.services import ConflictDetector
from sheetvault.domains.diff.services import DiffEngine, summarize
from sheetvault.domains.rollback.services import RollbackCoordinator
from sheetvault.domains.versioning.entities import CellKey, CellState, Commit
from sheetvault.domains.versioning.schemas import (
    CommitCreate, CommitResponse, CommitListResponse, CommitDetailResponse,
    CommitChangeResponse, CellResponse, CellVersionListResponse, DiffResponse,
    RevertRequest
)
from sheetvault.domains.versioning.services import VersionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workbooks/{workbook_id}", tags=["commits"])


def cell_response(key: CellKey, state: CellState) -> CellResponse:
    return CellResponse(
        worksheet_id=key.worksheet_id,
        row=key.row,
        col=key.col,
        address=state.address,
        value=state.value,
        formula=state.formula,
        style=state.style
    )


def commit_response(commit: Commit) -> CommitResponse:
    return CommitResponse(
        id=commit.id,
        workbook_id=commit.workbook_id,
        parent_id=commit.parent_id,
        author_id=commit.author_id,
        message=commit.message,
        hash=commit.hash,
        short_ref=commit.short_ref,
        timestamp=commit.timestamp,
        changes_count=commit.changes_count
    )


def announce_commit(commit: Commit) -> None:
    """Уведомление участников о новом HEAD после фиксации транзакции"""
    live_channel.publish(commit.workbook_id, "commit-created", commit_response(commit).model_dump(mode="json"))


@router.get("/commits", response_model=CommitListResponse)
async def list_commits(
    workbook_id: int,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """История коммитов, новые первыми"""
    store = VersionStore(db)
    await store.get_workbook(workbook_id)
    commits = await store.list_commits(workbook_id, limit=limit, offset=offset)

    return CommitListResponse(
        commits=[commit_response(c) for c in commits],
        limit=limit,
        offset=offset
    )


@router.post("/commits", response_model=CommitResponse, status_code=status.HTTP_201_CREATED)
async def create_commit(
    workbook_id: int,
    commit_data: CommitCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Сохранение правок поверх base_commit_id.

    При пересечении с чужими правками возвращается 409 со списком конфликтов.
    """
    detector = ConflictDetector(db)
    commit = await detector.commit(
        workbook_id=workbook_id,
        author_id=user_id,
        message=commit_data.message,
        base_commit_id=commit_data.base_commit_id,
        changed_cells=commit_data.changes
    )

    announce_commit(commit)
    return commit_response(commit)


@router.get("/commits/{commit_id}", response_model=CommitDetailResponse)
async def get_commit(
    workbook_id: int,
    commit_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Коммит с предрасчитанными изменениями"""
    store = VersionStore(db)
    commit = await store.get_commit(workbook_id, commit_id)
    changes = await store.get_commit_changes(workbook_id, commit_id)

    return CommitDetailResponse(
        commit=commit_response(commit),
        changes=[
            CommitChangeResponse(
                worksheet_id=change.key.worksheet_id,
                row=change.key.row,
                col=change.key.col,
                cell_reference=change.cell_reference,
                change_type=change.change_type,
                old_value=change.old_value,
                new_value=change.new_value,
                old_formula=change.old_formula,
                new_formula=change.new_formula,
                description=change.description
            )
            for change in changes
        ]
    )


@router.get("/commits/{commit_id}/versions", response_model=CellVersionListResponse)
async def get_commit_versions(
    workbook_id: int,
    commit_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Версии ячеек, записанные самим коммитом (для bootstrap это полный снимок)"""
    store = VersionStore(db)
    await store.get_commit(workbook_id, commit_id)
    versions = await store.get_cell_versions(commit_id)

    return CellVersionListResponse(
        commit_id=commit_id,
        versions=[cell_response(key, state) for key, state in sorted(versions.items())]
    )


@router.get("/diff", response_model=DiffResponse)
async def get_diff(
    workbook_id: int,
    head: int = Query(...),
    base: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Семантический дифф между двумя коммитами"""
    engine = DiffEngine(db)
    diffs = await engine.compare_commits(workbook_id, base, head)

    return DiffResponse(
        workbook_id=workbook_id,
        base_commit_id=base,
        head_commit_id=head,
        changes=[CommitChangeResponse(**d.to_dict()) for d in diffs],
        summary=summarize(diffs)
    )


@router.post("/revert", response_model=CommitResponse, status_code=status.HTTP_201_CREATED)
async def revert_workbook(
    workbook_id: int,
    request: RevertRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Откат книги к состоянию коммита новым коммитом"""
    coordinator = RollbackCoordinator(db)
    commit = await coordinator.revert(workbook_id, request.target_commit_id, user_id)

    announce_commit(commit)
    return commit_response(commit)
