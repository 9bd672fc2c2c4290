from sheetvault.domains.diff.entities import (
    ChangeType, CellDiff, describe_change
)

__all__ = ["ChangeType", "CellDiff", "describe_change"]
