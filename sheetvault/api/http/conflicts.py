from fastapi import APIRouter, Depends, Query
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from sheetvault.core.auth import get_current_user_id
from sheetvault.core.db import get_db
from sheetvault.domains.conflicts.entities import ConflictStatus
from sheetvault.domains.conflicts.schemas import (
    ConflictResponse, ConflictListResponse, ConflictResolutionRequest
)
from sheetvault.domains.conflicts.services import ConflictResolutionService
from sheetvault.domains.versioning.schemas import CommitResponse
from sheetvault.api.http.commits import announce_commit, commit_response

router = APIRouter(prefix="/workbooks/{workbook_id}/conflicts", tags=["conflicts"])


@router.get("/", response_model=ConflictListResponse)
async def list_conflicts(
    workbook_id: int,
    status: Optional[ConflictStatus] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Конфликты книги, по умолчанию все"""
    service = ConflictResolutionService(db)
    conflicts = await service.list_conflicts(workbook_id, status.value if status else None)

    return ConflictListResponse(
        conflicts=[ConflictResponse(**c.to_dict()) for c in conflicts]
    )


@router.post("/{conflict_id}/resolve", response_model=CommitResponse)
async def resolve_conflict(
    workbook_id: int,
    conflict_id: int,
    request: ConflictResolutionRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Разрешение конфликта новым коммитом"""
    service = ConflictResolutionService(db)
    commit = await service.resolve(
        workbook_id=workbook_id,
        conflict_id=conflict_id,
        strategy=request.strategy,
        author_id=user_id,
        value=request.value,
        formula=request.formula
    )

    announce_commit(commit)
    return commit_response(commit)
