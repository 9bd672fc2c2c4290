from pydantic import BaseModel, Field
from typing import Dict, Any, Literal


class LiveMessage(BaseModel):
    """Входящее сообщение WebSocket"""
    type: Literal["cursor-move", "cell-select", "cell-edit", "ping"]
    data: Dict[str, Any] = Field(default_factory=dict)


# Входящий тип -> исходящий тип для остальных участников
RELAYED_EVENTS = {
    "cursor-move": "cursor-update",
    "cell-select": "cell-selection-update",
    "cell-edit": "cell-changed",
}
