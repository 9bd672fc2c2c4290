import pytest
import asyncio
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from sheetvault.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from sheetvault.core.db import write_transaction
from sheetvault.db.models import CellVersion as CellVersionModel
from sheetvault.db.repositories import CellVersionRepository, CommitChangeRepository, WorkbookRepository
from sheetvault.domains.diff.services import DiffEngine
from sheetvault.domains.versioning.entities import CellKey, cell_address, column_letters
from tests.conftest import OWNER, INITIAL_SHEET


def test_column_letters():
    assert column_letters(0) == "A"
    assert column_letters(25) == "Z"
    assert column_letters(26) == "AA"
    assert column_letters(701) == "ZZ"
    assert cell_address(9, 2) == "C10"


class TestBootstrap:

    @pytest.mark.asyncio
    async def test_bootstrap_writes_full_snapshot(self, store, bootstrapped):
        commit = bootstrapped.bootstrap
        ws_id = bootstrapped.worksheet.id

        assert commit.parent_id is None
        assert commit.message == "Initial Import"
        assert len(commit.hash) == 64
        assert commit.short_ref == commit.hash[:8]

        cells = await store.get_cells(bootstrapped.workbook.id)
        assert set(cells) == {CellKey(ws_id, 0, 0), CellKey(ws_id, 0, 1), CellKey(ws_id, 1, 0)}
        assert cells[CellKey(ws_id, 0, 1)].formula == "=A1*2"
        assert cells[CellKey(ws_id, 1, 0)].style == {"bold": True}
        assert cells[CellKey(ws_id, 1, 0)].address == "A2"

        versions = await store.get_cell_versions(commit.id)
        assert versions == cells

    @pytest.mark.asyncio
    async def test_second_bootstrap_is_rejected(self, store, bootstrapped):
        with pytest.raises(ValidationError):
            await store.create_bootstrap_commit(bootstrapped.workbook.id, OWNER, [INITIAL_SHEET])

    @pytest.mark.asyncio
    async def test_empty_worksheet_list_is_rejected(self, store, workbook):
        with pytest.raises(ValidationError):
            await store.create_bootstrap_commit(workbook.id, OWNER, [])

    @pytest.mark.asyncio
    async def test_duplicate_cells_are_rejected(self, store, workbook):
        sheet = {"name": "Dup", "order": 0, "cells": [{"row": 0, "col": 0}, {"row": 0, "col": 0}]}
        with pytest.raises(ValidationError):
            await store.create_bootstrap_commit(workbook.id, OWNER, [sheet])

    @pytest.mark.asyncio
    async def test_unknown_workbook(self, store):
        with pytest.raises(NotFoundError):
            await store.create_bootstrap_commit(999, OWNER, [INITIAL_SHEET])

    @pytest.mark.asyncio
    async def test_failed_bootstrap_leaves_nothing_behind(self, store, workbook, monkeypatch):
        async def failing_insert(self, rows, batch_size):
            raise OperationalError("INSERT INTO cell_versions", {}, Exception("disk full"))

        monkeypatch.setattr(CellVersionRepository, "bulk_insert", failing_insert)

        with pytest.raises(StorageError):
            await store.create_bootstrap_commit(workbook.id, OWNER, [INITIAL_SHEET])

        assert await store.get_head(workbook.id) is None
        assert await store.list_worksheets(workbook.id) == []
        assert await store.get_cells(workbook.id) == {}

    @pytest.mark.asyncio
    async def test_bootstrap_in_small_batches(self, store, workbook):
        store.batch_size = 7
        sheet = {
            "name": "Big",
            "order": 0,
            "cells": [{"row": r, "col": c, "value": f"{r}:{c}"} for r in range(10) for c in range(5)]
        }

        await store.create_bootstrap_commit(workbook.id, OWNER, [sheet])

        cells = await store.get_cells(workbook.id)
        assert len(cells) == 50


class TestRecordCommit:

    @pytest.mark.asyncio
    async def test_commit_writes_only_changed_cells(self, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id

        commit = await store.record_commit(
            wb_id, "bob", "Edit A1",
            [
                {"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "11"},
                # без изменений
                {"worksheet_id": ws_id, "row": 1, "col": 0, "new_value": "Total", "new_style": {"bold": True}},
                {"worksheet_id": ws_id, "row": 2, "col": 2, "new_value": "new"},
            ],
            base_commit_id=bootstrapped.bootstrap.id
        )

        assert commit.parent_id == bootstrapped.bootstrap.id
        assert commit.changes_count == 2

        versions = await store.get_cell_versions(commit.id)
        assert set(versions) == {CellKey(ws_id, 0, 0), CellKey(ws_id, 2, 2)}
        assert versions[CellKey(ws_id, 2, 2)].address == "C3"

        changes = await store.get_commit_changes(wb_id, commit.id)
        assert [(c.cell_reference, c.change_type) for c in changes] == [("A1", "modified"), ("C3", "added")]
        assert changes[0].description == 'Changed A1 from "10" to "11"'

    @pytest.mark.asyncio
    async def test_sparse_delta_versus_full_snapshot(self, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id

        commit = await store.record_commit(
            wb_id, "bob", "Edit A1",
            [{"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "11"}],
            base_commit_id=bootstrapped.bootstrap.id
        )

        own_versions = await store.get_cell_versions(commit.id)
        full_state = await store.get_state_at(wb_id, commit.id)

        assert len(own_versions) == 1
        assert len(full_state) == 3
        assert full_state[CellKey(ws_id, 0, 1)].formula == "=A1*2"

    @pytest.mark.asyncio
    async def test_replay_matches_current_cells(self, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id
        head = bootstrapped.bootstrap

        edits = [
            [{"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "11"}],
            [{"worksheet_id": ws_id, "row": 3, "col": 1, "new_value": "x"}],
            [{"worksheet_id": ws_id, "row": 0, "col": 1, "new_value": None, "new_formula": None}],
            [{"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "12", "new_formula": "=B4"}],
        ]
        for changes in edits:
            head = await store.record_commit(wb_id, "bob", "edit", changes, base_commit_id=head.id)

        assert await store.get_state_at(wb_id, head.id) == await store.get_cells(wb_id)

    @pytest.mark.asyncio
    async def test_clearing_a_cell_removes_it(self, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id
        key = CellKey(ws_id, 0, 1)

        commit = await store.record_commit(
            wb_id, "bob", "Clear B1",
            [{"worksheet_id": ws_id, "row": 0, "col": 1, "new_value": ""}],
            base_commit_id=bootstrapped.bootstrap.id
        )

        assert key not in await store.get_cells(wb_id)
        assert key not in await store.get_state_at(wb_id, commit.id)
        assert key in await store.get_state_at(wb_id, bootstrapped.bootstrap.id)

        changes = await store.get_commit_changes(wb_id, commit.id)
        assert changes[0].change_type == "deleted"
        assert changes[0].description == "Deleted value from cell B1"

    @pytest.mark.asyncio
    async def test_stale_base_is_rejected(self, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id
        change = [{"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "11"}]

        head = await store.record_commit(wb_id, "bob", "edit", change, base_commit_id=bootstrapped.bootstrap.id)

        with pytest.raises(ConflictError) as exc_info:
            await store.record_commit(wb_id, "carol", "edit", change, base_commit_id=bootstrapped.bootstrap.id)

        assert exc_info.value.head_commit_id == head.id
        assert (await store.get_head(wb_id)).id == head.id

    @pytest.mark.asyncio
    async def test_commit_without_bootstrap(self, store, workbook):
        with pytest.raises(ValidationError):
            await store.record_commit(workbook.id, "bob", "edit", [], base_commit_id=1)

    @pytest.mark.asyncio
    async def test_foreign_worksheet_is_rejected(self, store, bootstrapped):
        other = await store.create_workbook("Other", OWNER)
        await store.create_bootstrap_commit(other.id, OWNER, [INITIAL_SHEET])
        other_ws = (await store.list_worksheets(other.id))[0]

        with pytest.raises(NotFoundError):
            await store.record_commit(
                bootstrapped.workbook.id, "bob", "edit",
                [{"worksheet_id": other_ws.id, "row": 0, "col": 0, "new_value": "1"}],
                base_commit_id=bootstrapped.bootstrap.id
            )

    @pytest.mark.asyncio
    async def test_commit_from_other_workbook_is_not_found(self, store, bootstrapped):
        other = await store.create_workbook("Other", OWNER)

        with pytest.raises(NotFoundError):
            await store.get_commit(other.id, bootstrapped.bootstrap.id)


class TestHistory:

    @pytest.mark.asyncio
    async def test_list_commits_newest_first_with_counts(self, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id

        second = await store.record_commit(
            wb_id, "bob", "edit",
            [{"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "11"}],
            base_commit_id=bootstrapped.bootstrap.id
        )

        commits = await store.list_commits(wb_id)
        assert [c.id for c in commits] == [second.id, bootstrapped.bootstrap.id]
        assert [c.changes_count for c in commits] == [1, 3]

        page = await store.list_commits(wb_id, limit=1, offset=1)
        assert [c.id for c in page] == [bootstrapped.bootstrap.id]

    @pytest.mark.asyncio
    async def test_delete_workbook_removes_history(self, store, bootstrapped):
        wb_id = bootstrapped.workbook.id

        await store.delete_workbook(wb_id)

        with pytest.raises(NotFoundError):
            await store.get_workbook(wb_id)
        assert await store.list_workbooks(OWNER) == []


class TestStyleEdits:

    @pytest.mark.asyncio
    async def test_value_edit_keeps_style(self, store, bootstrapped):
        ws_id = bootstrapped.worksheet.id

        await store.record_commit(
            bootstrapped.workbook.id, "bob", "edit",
            [{"worksheet_id": ws_id, "row": 1, "col": 0, "new_value": "Sum"}],
            base_commit_id=bootstrapped.bootstrap.id
        )

        cell = await store.get_cell(CellKey(ws_id, 1, 0))
        assert cell.value == "Sum"
        assert cell.style == {"bold": True}

    @pytest.mark.asyncio
    async def test_explicit_null_style_clears_it(self, store, bootstrapped):
        ws_id = bootstrapped.worksheet.id

        commit = await store.record_commit(
            bootstrapped.workbook.id, "bob", "edit",
            [{"worksheet_id": ws_id, "row": 1, "col": 0, "new_value": "Total", "new_style": None}],
            base_commit_id=bootstrapped.bootstrap.id
        )

        assert (await store.get_cell(CellKey(ws_id, 1, 0))).style is None
        assert commit.changes_count == 1

    @pytest.mark.asyncio
    async def test_style_only_edit_is_versioned_but_not_a_change(self, session, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id

        commit = await store.record_commit(
            wb_id, "bob", "italic",
            [{"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "10", "new_style": {"italic": True}}],
            base_commit_id=bootstrapped.bootstrap.id
        )

        assert commit.changes_count == 1
        assert (await store.get_state_at(wb_id, commit.id))[CellKey(ws_id, 0, 0)].style == {"italic": True}
        assert await store.get_commit_changes(wb_id, commit.id) == []
        assert await DiffEngine(session).compare_commits(wb_id, bootstrapped.bootstrap.id, commit.id) == []

    @pytest.mark.asyncio
    async def test_commit_changes_match_diff_for_every_commit(self, session, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id
        edits = [
            [
                {"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "10", "new_style": {"italic": True}},
                {"worksheet_id": ws_id, "row": 1, "col": 0, "new_value": "Sum"},
            ],
            [
                {"worksheet_id": ws_id, "row": 0, "col": 1, "new_value": None},
                {"worksheet_id": ws_id, "row": 3, "col": 3, "new_value": "new", "new_style": {"fill": "red"}},
            ],
            [{"worksheet_id": ws_id, "row": 3, "col": 3, "new_value": "new", "new_style": None}],
        ]
        head = bootstrapped.bootstrap
        for changes in edits:
            head = await store.record_commit(wb_id, "bob", "edit", changes, base_commit_id=head.id)

        engine = DiffEngine(session)
        for commit in await store.list_commits(wb_id):
            stored = await store.get_commit_changes(wb_id, commit.id)
            computed = await engine.compare_commits(wb_id, commit.parent_id, commit.id)
            assert sorted((c.cell_reference, c.change_type, c.description) for c in stored) == sorted(
                (d.cell_reference, d.change_type.value, d.description) for d in computed
            )


class TestAtomicWrites:

    @pytest.mark.asyncio
    async def test_failed_commit_leaves_nothing_behind(self, session, store, bootstrapped, monkeypatch):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id
        cells_before = await store.get_cells(wb_id)
        versions_before = (
            await session.execute(select(func.count()).select_from(CellVersionModel))
        ).scalar_one()

        async def failing_insert(self, rows, batch_size):
            raise OperationalError("INSERT INTO commit_changes", {}, Exception("disk full"))

        monkeypatch.setattr(CommitChangeRepository, "bulk_insert", failing_insert)

        with pytest.raises(StorageError):
            await store.record_commit(
                wb_id, "bob", "edit",
                [
                    {"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "11"},
                    {"worksheet_id": ws_id, "row": 0, "col": 1, "new_value": None},
                    {"worksheet_id": ws_id, "row": 8, "col": 8, "new_value": "new"},
                ],
                base_commit_id=bootstrapped.bootstrap.id
            )

        assert (await store.get_head(wb_id)).id == bootstrapped.bootstrap.id
        assert await store.get_cells(wb_id) == cells_before
        versions_after = (
            await session.execute(select(func.count()).select_from(CellVersionModel))
        ).scalar_one()
        assert versions_after == versions_before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RuntimeError("boom"), asyncio.CancelledError()])
    async def test_write_transaction_rolls_back_on_any_error(self, session, error):
        repository = WorkbookRepository(session)

        with pytest.raises(type(error)):
            async with write_transaction(session, "create_workbook"):
                await repository.create("Lost", "ghost")
                raise error

        assert await repository.get_by_owner("ghost") == []

    @pytest.mark.asyncio
    async def test_commit_timestamp_is_timezone_aware(self, store, bootstrapped):
        commit = await store.record_commit(
            bootstrapped.workbook.id, "bob", "edit", [],
            base_commit_id=bootstrapped.bootstrap.id
        )

        assert commit.timestamp.tzinfo is not None
        assert bootstrapped.bootstrap.timestamp.tzinfo is not None
