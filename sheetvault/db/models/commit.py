from sqlalchemy import Column, String, Text, Integer, ForeignKey, DateTime, JSON, UniqueConstraint

from sheetvault.db.base import Base, utcnow


class Commit(Base):
    __tablename__ = "commits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workbook_id = Column(Integer, ForeignKey("workbooks.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("commits.id", ondelete="CASCADE"), nullable=True)
    author_id = Column(String(255), nullable=False)
    message = Column(Text, nullable=False, default="")
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    hash = Column(String(64), nullable=False, unique=True)


class CellVersion(Base):
    """Неизменяемый снимок ячейки в коммите"""
    __tablename__ = "cell_versions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    commit_id = Column(Integer, ForeignKey("commits.id", ondelete="CASCADE"), nullable=False, index=True)
    worksheet_id = Column(Integer, ForeignKey("worksheets.id", ondelete="CASCADE"), nullable=False, index=True)
    row_idx = Column(Integer, nullable=False)
    col_idx = Column(Integer, nullable=False)
    address = Column(String(16), nullable=False)
    value = Column(Text, nullable=True)
    formula = Column(Text, nullable=True)
    style = Column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("commit_id", "worksheet_id", "row_idx", "col_idx", name="uq_cell_versions_commit_cell"),
    )


class CommitChange(Base):
    """Предрасчитанная строка диффа для быстрого показа истории"""
    __tablename__ = "commit_changes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    commit_id = Column(Integer, ForeignKey("commits.id", ondelete="CASCADE"), nullable=False, index=True)
    worksheet_id = Column(Integer, ForeignKey("worksheets.id", ondelete="CASCADE"), nullable=False, index=True)
    row_idx = Column(Integer, nullable=False)
    col_idx = Column(Integer, nullable=False)
    cell_reference = Column(String(16), nullable=False)
    change_type = Column(String(16), nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    old_formula = Column(Text, nullable=True)
    new_formula = Column(Text, nullable=True)
    description = Column(Text, nullable=False, default="")
