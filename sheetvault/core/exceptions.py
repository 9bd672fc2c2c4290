from typing import Any, Dict, List, Optional


class VersionStoreError(Exception):
    """Базовая ошибка хранилища версий"""


class NotFoundError(VersionStoreError):
    """Книга, лист или коммит не найдены (или принадлежат другой книге)"""


class ValidationError(VersionStoreError):
    """Некорректные входные данные"""


class StorageError(VersionStoreError):
    """Сбой транзакционной записи; транзакция уже откачена"""


class ConflictError(VersionStoreError):
    """
    Коммит основан на устаревшем HEAD.

    conflicts пуст, если это простая проверка устаревшей базы,
    и содержит по записи на ячейку, если правки пересеклись.
    """

    def __init__(
        self,
        message: str,
        head_commit_id: Optional[int] = None,
        conflicts: Optional[List[Dict[str, Any]]] = None
    ):
        super().__init__(message)
        self.head_commit_id = head_commit_id
        self.conflicts = conflicts or []
