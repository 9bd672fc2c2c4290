import os

# Настройки читаются при импорте пакета
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
import pytest_asyncio
from types import SimpleNamespace
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sheetvault.db.models import Base
from sheetvault.domains.versioning.services import VersionStore

OWNER = "alice"

INITIAL_SHEET = {
    "name": "Sheet1",
    "order": 0,
    "cells": [
        {"row": 0, "col": 0, "value": "10"},
        {"row": 0, "col": 1, "value": "20", "formula": "=A1*2"},
        {"row": 1, "col": 0, "value": "Total", "style": {"bold": True}},
        {"row": 4, "col": 4, "value": ""},
    ],
}


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session):
    return VersionStore(session)


@pytest_asyncio.fixture
async def workbook(store):
    return await store.create_workbook("Budget", OWNER)


@pytest_asyncio.fixture
async def bootstrapped(store, workbook):
    """Книга после первичного импорта одного листа"""
    commit = await store.create_bootstrap_commit(workbook.id, OWNER, [INITIAL_SHEET])
    worksheets = await store.list_worksheets(workbook.id)
    return SimpleNamespace(workbook=workbook, worksheet=worksheets[0], bootstrap=commit)
