from sqlalchemy import Column, String, Text, Integer, ForeignKey, DateTime, JSON, UniqueConstraint, Index
from sqlalchemy.sql import func

from sheetvault.db.base import Base, BaseModel


class Workbook(BaseModel):
    __tablename__ = "workbooks"

    name = Column(String(255), nullable=False)
    owner_id = Column(String(255), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Worksheet(BaseModel):
    __tablename__ = "worksheets"

    workbook_id = Column(Integer, ForeignKey("workbooks.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sheet_order = Column(Integer, nullable=False)


class Cell(Base):
    """Текущее состояние ячейки на момент HEAD"""
    __tablename__ = "cells"

    id = Column(Integer, primary_key=True, autoincrement=True)
    worksheet_id = Column(Integer, ForeignKey("worksheets.id", ondelete="CASCADE"), nullable=False)
    row_idx = Column(Integer, nullable=False)
    col_idx = Column(Integer, nullable=False)
    address = Column(String(16), nullable=False)
    value = Column(Text, nullable=True)
    formula = Column(Text, nullable=True)
    style = Column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("worksheet_id", "row_idx", "col_idx", name="uq_cells_coordinate"),
        Index("ix_cells_worksheet_id", "worksheet_id"),
    )
