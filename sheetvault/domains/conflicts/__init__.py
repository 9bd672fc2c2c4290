from sheetvault.domains.conflicts.entities import Conflict, ConflictStatus, ResolutionStrategy
from sheetvault.domains.conflicts.schemas import (
    ConflictResponse, ConflictListResponse, ConflictErrorResponse, ConflictResolutionRequest
)

__all__ = [
    "Conflict", "ConflictStatus", "ResolutionStrategy",
    "ConflictResponse", "ConflictListResponse", "ConflictErrorResponse",
    "ConflictResolutionRequest"
]
