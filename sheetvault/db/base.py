from datetime import datetime, timezone
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

# Базовый класс для моделей
Base = declarative_base()


class BaseModel(Base):
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


def chunked(items, size: int):
    """Разбиение списка на пачки фиксированного размера"""
    for start in range(0, len(items), size):
        yield items[start:start + size]


def utcnow() -> datetime:
    """Текущее время с часовым поясом UTC для колонок DateTime(timezone=True)"""
    return datetime.now(timezone.utc)
