"""Create workbooks, worksheets, cells and commit history tables"""

from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "workbooks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_workbooks_owner_id", "workbooks", ["owner_id"])

    op.create_table(
        "worksheets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("workbook_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sheet_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["workbook_id"], ["workbooks.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_worksheets_workbook_id", "worksheets", ["workbook_id"])

    op.create_table(
        "cells",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("worksheet_id", sa.Integer(), nullable=False),
        sa.Column("row_idx", sa.Integer(), nullable=False),
        sa.Column("col_idx", sa.Integer(), nullable=False),
        sa.Column("address", sa.String(16), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("formula", sa.Text(), nullable=True),
        sa.Column("style", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("worksheet_id", "row_idx", "col_idx", name="uq_cells_coordinate"),
    )
    op.create_index("ix_cells_worksheet_id", "cells", ["worksheet_id"])

    op.create_table(
        "commits",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("workbook_id", sa.Integer(), nullable=False),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("author_id", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("hash", sa.String(64), nullable=False),
        sa.ForeignKeyConstraint(["workbook_id"], ["workbooks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_id"], ["commits.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("hash"),
    )
    op.create_index("ix_commits_workbook_id", "commits", ["workbook_id"])
    op.create_index("ix_commits_timestamp", "commits", ["timestamp"])

    op.create_table(
        "cell_versions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("commit_id", sa.Integer(), nullable=False),
        sa.Column("worksheet_id", sa.Integer(), nullable=False),
        sa.Column("row_idx", sa.Integer(), nullable=False),
        sa.Column("col_idx", sa.Integer(), nullable=False),
        sa.Column("address", sa.String(16), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("formula", sa.Text(), nullable=True),
        sa.Column("style", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["commit_id"], ["commits.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("commit_id", "worksheet_id", "row_idx", "col_idx", name="uq_cell_versions_commit_cell"),
    )
    op.create_index("ix_cell_versions_commit_id", "cell_versions", ["commit_id"])
    op.create_index("ix_cell_versions_worksheet_id", "cell_versions", ["worksheet_id"])

    op.create_table(
        "commit_changes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("commit_id", sa.Integer(), nullable=False),
        sa.Column("worksheet_id", sa.Integer(), nullable=False),
        sa.Column("row_idx", sa.Integer(), nullable=False),
        sa.Column("col_idx", sa.Integer(), nullable=False),
        sa.Column("cell_reference", sa.String(16), nullable=False),
        sa.Column("change_type", sa.String(16), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("old_formula", sa.Text(), nullable=True),
        sa.Column("new_formula", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(["commit_id"], ["commits.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_commit_changes_commit_id", "commit_changes", ["commit_id"])
    op.create_index("ix_commit_changes_worksheet_id", "commit_changes", ["worksheet_id"])

    op.create_table(
        "conflicts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("workbook_id", sa.Integer(), nullable=False),
        sa.Column("worksheet_id", sa.Integer(), nullable=False),
        sa.Column("row_idx", sa.Integer(), nullable=False),
        sa.Column("col_idx", sa.Integer(), nullable=False),
        sa.Column("cell_reference", sa.String(16), nullable=False),
        sa.Column("base_commit_id", sa.Integer(), nullable=False),
        sa.Column("head_commit_id", sa.Integer(), nullable=False),
        sa.Column("their_user_id", sa.String(255), nullable=False),
        sa.Column("their_value", sa.Text(), nullable=True),
        sa.Column("their_formula", sa.Text(), nullable=True),
        sa.Column("proposed_by", sa.String(255), nullable=False),
        sa.Column("proposed_value", sa.Text(), nullable=True),
        sa.Column("proposed_formula", sa.Text(), nullable=True),
        sa.Column("proposed_style", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("resolution", sa.String(16), nullable=True),
        sa.Column("resolved_commit_id", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["workbook_id"], ["workbooks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["base_commit_id"], ["commits.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["head_commit_id"], ["commits.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["resolved_commit_id"], ["commits.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_conflicts_workbook_id", "conflicts", ["workbook_id"])
    op.create_index("ix_conflicts_worksheet_id", "conflicts", ["worksheet_id"])
    op.create_index("ix_conflicts_status", "conflicts", ["status"])


def downgrade() -> None:
    op.drop_table("conflicts")
    op.drop_table("commit_changes")
    op.drop_table("cell_versions")
    op.drop_table("commits")
    op.drop_table("cells")
    op.drop_table("worksheets")
    op.drop_table("workbooks")
