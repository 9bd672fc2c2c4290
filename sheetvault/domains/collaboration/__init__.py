from sheetvault.domains.collaboration.entities import Participant, LiveEvent, USER_COLORS
from sheetvault.domains.collaboration.schemas import LiveMessage, RELAYED_EVENTS

__all__ = [
    "Participant", "LiveEvent", "USER_COLORS",
    "LiveMessage", "RELAYED_EVENTS"
]
