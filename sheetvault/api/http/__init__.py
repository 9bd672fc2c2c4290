from sheetvault.api.http.workbooks import router as workbooks_router
from sheetvault.api.http.commits import router as commits_router
from sheetvault.api.http.conflicts import router as conflicts_router

__all__ = [
    "workbooks_router",
    "commits_router",
    "conflicts_router"
]
