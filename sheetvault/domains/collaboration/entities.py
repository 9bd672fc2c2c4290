import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any

# Палитра курсоров участников
USER_COLORS = ["#3B82F6", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6", "#EC4899"]


class Participant:
    """Участник совместного редактирования книги"""

    def __init__(self, workbook_id: int, user_id: str, user_name: Optional[str] = None):
        self.connection_id = uuid.uuid4().hex
        self.workbook_id = workbook_id
        self.user_id = user_id
        self.user_name = user_name or user_id
        self.joined_at = datetime.now(timezone.utc)
        self.last_activity = datetime.now(timezone.utc)
        self.color = self._generate_user_color()

    def update_activity(self) -> None:
        self.last_activity = datetime.now(timezone.utc)

    def _generate_user_color(self) -> str:
        """Цвет зависит только от user_id, чтобы не меняться между подключениями"""
        hash_value = sum(ord(ch) for ch in self.user_id)
        return USER_COLORS[hash_value % len(USER_COLORS)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "color": self.color,
            "joined_at": self.joined_at.isoformat(),
        }

    def __repr__(self) -> str:
        return f"Participant(workbook={self.workbook_id}, user={self.user_id})"


class LiveEvent:
    """Сообщение live-канала; не сохраняется и может быть потеряно"""

    def __init__(self, type: str, workbook_id: int, data: Dict[str, Any], sender: Optional[str] = None):
        self.type = type
        self.workbook_id = workbook_id
        self.data = data
        self.sender = sender

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "data": dict(self.data, connection_id=self.sender) if self.sender else self.data,
        }

    def __repr__(self) -> str:
        return f"LiveEvent({self.type}, workbook={self.workbook_id})"
