from sqlalchemy import Column, String, Text, Integer, ForeignKey, DateTime, JSON

from sheetvault.db.base import BaseModel


class Conflict(BaseModel):
    __tablename__ = "conflicts"

    workbook_id = Column(Integer, ForeignKey("workbooks.id", ondelete="CASCADE"), nullable=False, index=True)
    worksheet_id = Column(Integer, ForeignKey("worksheets.id", ondelete="CASCADE"), nullable=False, index=True)
    row_idx = Column(Integer, nullable=False)
    col_idx = Column(Integer, nullable=False)
    cell_reference = Column(String(16), nullable=False)
    base_commit_id = Column(Integer, ForeignKey("commits.id", ondelete="CASCADE"), nullable=False)
    head_commit_id = Column(Integer, ForeignKey("commits.id", ondelete="CASCADE"), nullable=False)

    # Уже закоммиченная правка ("theirs")
    their_user_id = Column(String(255), nullable=False)
    their_value = Column(Text, nullable=True)
    their_formula = Column(Text, nullable=True)

    # Отклоненная правка ("mine")
    proposed_by = Column(String(255), nullable=False)
    proposed_value = Column(Text, nullable=True)
    proposed_formula = Column(Text, nullable=True)
    proposed_style = Column(JSON, nullable=True)

    status = Column(String(16), nullable=False, default="pending", index=True)
    resolution = Column(String(16), nullable=True)
    resolved_commit_id = Column(Integer, ForeignKey("commits.id", ondelete="CASCADE"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
