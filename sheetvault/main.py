import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sheetvault.core.config import settings
from sheetvault.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from sheetvault.domains.conflicts.schemas import ConflictErrorResponse
from sheetvault.api.http import workbooks_router, commits_router, conflicts_router
from sheetvault.api.ws.sync import router as websocket_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = FastAPI(
    title="SheetVault",
    description="Версионирование электронных таблиц с историей коммитов и разрешением конфликтов",
    version="1.0.0"
)

# Настройка CORS для работы с frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    body = ConflictErrorResponse(
        detail=str(exc),
        head_commit_id=exc.head_commit_id,
        conflicts=exc.conflicts
    )
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump(mode="json"))


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_handler(request: Request, exc: StorageError):
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})


# Подключаем роутеры
app.include_router(workbooks_router)
app.include_router(commits_router)
app.include_router(conflicts_router)
app.include_router(websocket_router)


@app.get("/")
async def root():
    """Корневой эндпоинт"""
    return {
        "message": "SheetVault API",
        "version": "1.0.0",
        "docs": "/docs"
    }
