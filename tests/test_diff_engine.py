import pytest

from sheetvault.domains.diff.entities import ChangeType, describe_change
from sheetvault.domains.diff.services import DiffEngine, compute_diff, summarize
from sheetvault.domains.versioning.entities import CellKey, CellState
from tests.conftest import OWNER


def state(address, value=None, formula=None, style=None):
    return CellState(address=address, value=value, formula=formula, style=style)


class TestDescribeChange:

    def test_added(self):
        assert describe_change(None, state("B1", "3")) == 'Added value "3" to cell B1'

    def test_added_without_value(self):
        assert describe_change(None, state("B1", formula="=A1")) == 'Added value "" to cell B1'

    def test_deleted(self):
        assert describe_change(state("B1", "3"), None) == "Deleted value from cell B1"

    def test_formula_wins_over_value(self):
        old = state("A1", "5")
        new = state("A1", "7", "=B1+2")
        assert describe_change(old, new) == "Updated formula in A1 to =B1+2"

    def test_formula_removed(self):
        old = state("A1", "5", "=B1+2")
        new = state("A1", "5")
        assert describe_change(old, new) == 'Removed formula from A1, value is now "5"'

    def test_value_changed(self):
        assert describe_change(state("A1", "5"), state("A1", "6")) == 'Changed A1 from "5" to "6"'

    def test_fallback(self):
        old = state("A1", "5", style={"bold": True})
        new = state("A1", "5")
        assert describe_change(old, new) == "Updated cell A1"


class TestComputeDiff:

    def test_without_base_everything_is_added(self):
        head = {
            CellKey(1, 0, 1): state("B1", "2"),
            CellKey(1, 0, 0): state("A1", "1"),
        }

        diffs = compute_diff(None, head)

        assert [d.cell_reference for d in diffs] == ["A1", "B1"]
        assert all(d.change_type == ChangeType.ADDED for d in diffs)

    def test_identical_states_produce_nothing(self):
        cells = {CellKey(1, 0, 0): state("A1", "1", "=1")}
        assert compute_diff(cells, dict(cells)) == []

    def test_style_only_change_is_ignored(self):
        base = {CellKey(1, 0, 0): state("A1", "1", style={"bold": True})}
        head = {CellKey(1, 0, 0): state("A1", "1")}
        assert compute_diff(base, head) == []

    def test_deletions_come_last(self):
        base = {CellKey(1, 0, 0): state("A1", "1"), CellKey(1, 5, 5): state("F6", "x")}
        head = {CellKey(1, 0, 0): state("A1", "2"), CellKey(1, 9, 0): state("A10", "y")}

        diffs = compute_diff(base, head)

        assert [(d.cell_reference, d.change_type.value) for d in diffs] == [
            ("A1", "modified"), ("A10", "added"), ("F6", "deleted")
        ]
        assert summarize(diffs) == {"added": 1, "modified": 1, "deleted": 1}

    def test_reverse_symmetry(self):
        base = {CellKey(1, 0, 0): state("A1", "1"), CellKey(1, 5, 5): state("F6", "x")}
        head = {CellKey(1, 0, 0): state("A1", "2"), CellKey(1, 9, 0): state("A10", "y")}

        forward = {d.key: d for d in compute_diff(base, head)}
        backward = {d.key: d for d in compute_diff(head, base)}

        assert set(forward) == set(backward)
        swapped = {
            ChangeType.ADDED: ChangeType.DELETED,
            ChangeType.DELETED: ChangeType.ADDED,
            ChangeType.MODIFIED: ChangeType.MODIFIED,
        }
        for key, diff in forward.items():
            assert backward[key].change_type == swapped[diff.change_type]
        assert backward[CellKey(1, 0, 0)].old_value == "2"
        assert backward[CellKey(1, 0, 0)].new_value == "1"


class TestDiffEngine:

    @pytest.mark.asyncio
    async def test_bootstrap_diff_lists_every_cell_as_added(self, session, bootstrapped):
        engine = DiffEngine(session)

        diffs = await engine.compare_commits(bootstrapped.workbook.id, None, bootstrapped.bootstrap.id)

        assert [d.cell_reference for d in diffs] == ["A1", "B1", "A2"]
        assert all(d.change_type == ChangeType.ADDED for d in diffs)

    @pytest.mark.asyncio
    async def test_same_commit_is_empty(self, session, bootstrapped):
        engine = DiffEngine(session)
        commit_id = bootstrapped.bootstrap.id

        assert await engine.compare_commits(bootstrapped.workbook.id, commit_id, commit_id) == []

    @pytest.mark.asyncio
    async def test_formula_scenario(self, session, store, workbook):
        bootstrap = await store.create_bootstrap_commit(
            workbook.id, OWNER,
            [{"name": "Sheet1", "order": 0, "cells": [{"row": 0, "col": 0, "value": "5"}]}]
        )
        ws_id = (await store.list_worksheets(workbook.id))[0].id
        second = await store.record_commit(
            workbook.id, OWNER, "Formula",
            [
                {"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "5", "new_formula": "=B1+2"},
                {"worksheet_id": ws_id, "row": 0, "col": 1, "new_value": "3"},
            ],
            base_commit_id=bootstrap.id
        )

        diffs = await DiffEngine(session).compare_commits(workbook.id, bootstrap.id, second.id)

        assert [d.to_dict() for d in diffs] == [
            {
                "worksheet_id": ws_id, "row": 0, "col": 0, "cell_reference": "A1",
                "change_type": "modified",
                "old_value": "5", "new_value": "5",
                "old_formula": None, "new_formula": "=B1+2",
                "description": "Updated formula in A1 to =B1+2",
            },
            {
                "worksheet_id": ws_id, "row": 0, "col": 1, "cell_reference": "B1",
                "change_type": "added",
                "old_value": None, "new_value": "3",
                "old_formula": None, "new_formula": None,
                "description": 'Added value "3" to cell B1',
            },
        ]

    @pytest.mark.asyncio
    async def test_diff_uses_full_state_not_own_versions(self, session, store, bootstrapped):
        wb_id = bootstrapped.workbook.id
        ws_id = bootstrapped.worksheet.id
        second = await store.record_commit(
            wb_id, OWNER, "edit",
            [{"worksheet_id": ws_id, "row": 0, "col": 0, "new_value": "11"}],
            base_commit_id=bootstrapped.bootstrap.id
        )
        third = await store.record_commit(
            wb_id, OWNER, "edit",
            [{"worksheet_id": ws_id, "row": 1, "col": 0, "new_value": "Sum"}],
            base_commit_id=second.id
        )

        diffs = await DiffEngine(session).compare_commits(wb_id, second.id, third.id)

        assert [(d.cell_reference, d.change_type.value) for d in diffs] == [("A2", "modified")]
