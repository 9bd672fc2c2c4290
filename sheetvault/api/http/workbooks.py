from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession

from sheetvault.core.auth import get_current_user_id
from sheetvault.core.db import get_db
from sheetvault.domains.versioning.entities import Workbook
from sheetvault.domains.versioning.schemas import (
    WorkbookCreate, WorkbookResponse, WorkbookListResponse, WorkbookDetailResponse,
    WorksheetResponse, CellResponse, BootstrapRequest, CommitResponse
)
from sheetvault.domains.versioning.services import VersionStore
from sheetvault.api.http.commits import cell_response, commit_response

router = APIRouter(prefix="/workbooks", tags=["workbooks"])


async def workbook_response(store: VersionStore, workbook: Workbook) -> WorkbookResponse:
    head = await store.get_head(workbook.id)
    return WorkbookResponse(
        id=workbook.id,
        name=workbook.name,
        owner_id=workbook.owner_id,
        created_at=workbook.created_at,
        updated_at=workbook.updated_at,
        head_commit_id=head.id if head else None
    )


@router.post("/", response_model=WorkbookResponse, status_code=status.HTTP_201_CREATED)
async def create_workbook(
    workbook_data: WorkbookCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Создание новой книги"""
    store = VersionStore(db)
    workbook = await store.create_workbook(workbook_data.name, user_id)
    return await workbook_response(store, workbook)


@router.get("/", response_model=WorkbookListResponse)
async def list_workbooks(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Книги текущего пользователя"""
    store = VersionStore(db)
    workbooks = await store.list_workbooks(user_id, limit=per_page, offset=(page - 1) * per_page)
    return WorkbookListResponse(
        workbooks=[await workbook_response(store, wb) for wb in workbooks]
    )


@router.get("/{workbook_id}", response_model=WorkbookDetailResponse)
async def get_workbook(
    workbook_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Книга с листами и текущими ячейками"""
    store = VersionStore(db)
    workbook = await store.get_workbook(workbook_id)
    summary = await workbook_response(store, workbook)

    cells = await store.get_cells(workbook_id)
    worksheets = []
    for worksheet in await store.list_worksheets(workbook_id):
        worksheets.append(WorksheetResponse(
            id=worksheet.id,
            name=worksheet.name,
            order=worksheet.order,
            cells=[
                cell_response(key, state)
                for key, state in sorted(cells.items())
                if key.worksheet_id == worksheet.id
            ]
        ))

    return WorkbookDetailResponse(**summary.model_dump(), worksheets=worksheets)


@router.delete("/{workbook_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workbook(
    workbook_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Удаление книги вместе с историей"""
    store = VersionStore(db)
    workbook = await store.get_workbook(workbook_id)

    if workbook.owner_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the owner can delete a workbook"
        )

    await store.delete_workbook(workbook_id)


@router.post("/{workbook_id}/bootstrap", response_model=CommitResponse, status_code=status.HTTP_201_CREATED)
async def bootstrap_workbook(
    workbook_id: int,
    request: BootstrapRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Первичный импорт: полный снимок всех непустых ячеек"""
    store = VersionStore(db)
    commit = await store.create_bootstrap_commit(workbook_id, user_id, request.worksheets)
    return commit_response(commit)


@router.get("/{workbook_id}/cells", response_model=List[CellResponse])
async def get_cells(
    workbook_id: int,
    worksheet_id: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Текущее состояние ячеек книги"""
    store = VersionStore(db)
    await store.get_workbook(workbook_id)
    cells = await store.get_cells(workbook_id)

    return [
        cell_response(key, state)
        for key, state in sorted(cells.items())
        if worksheet_id is None or key.worksheet_id == worksheet_id
    ]
