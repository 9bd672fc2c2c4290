import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sheetvault.core.config import settings
from sheetvault.core.exceptions import StorageError, VersionStoreError

logger = logging.getLogger(__name__)

# Асинхронный движок
engine = create_async_engine(settings.database_url, future=True, echo=settings.db_echo)

# Сессии
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


# Функция для dependency injection в FastAPI
async def get_db():
    async with SessionLocal() as session:
        yield session


@asynccontextmanager
async def write_transaction(session: AsyncSession, operation: str):
    """
    Все или ничего: фиксация при успехе, откат при любой ошибке.

    Ошибки БД превращаются в StorageError, доменные ошибки
    пробрасываются как есть.
    """
    try:
        yield
        await session.commit()
    except VersionStoreError:
        await session.rollback()
        raise
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error(f"{operation} failed and was rolled back: {exc}")
        raise StorageError(f"{operation} failed") from exc
    except BaseException:
        await session.rollback()
        raise
