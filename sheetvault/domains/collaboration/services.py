import asyncio
import logging
from typing import Optional, List, Dict, Any

from sheetvault.core.config import settings
from sheetvault.domains.collaboration.entities import LiveEvent, Participant

logger = logging.getLogger(__name__)


class Subscription:
    """Подписка одного подключения на события книги"""

    def __init__(self, participant: Participant, queue_size: int):
        self.participant = participant
        self.queue: "asyncio.Queue[LiveEvent]" = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def offer(self, event: LiveEvent) -> bool:
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def next_event(self) -> LiveEvent:
        return await self.queue.get()


class LiveChannel:
    """
    Эфемерный канал публикации/подписки для курсоров и несохраненных правок.

    Доставка без гарантий: медленный подписчик теряет сообщения.
    Канал не обращается к БД и не участвует в транзакциях коммитов.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        # {workbook_id: {connection_id: Subscription}}
        self._subscriptions: Dict[int, Dict[str, Subscription]] = {}

    def subscribe(self, workbook_id: int, user_id: str, user_name: Optional[str] = None) -> Subscription:
        """Подключение участника к книге"""
        participant = Participant(workbook_id, user_id, user_name)
        subscription = Subscription(participant, self.queue_size)

        self._subscriptions.setdefault(workbook_id, {})[participant.connection_id] = subscription
        logger.info(f"User {user_id} joined workbook {workbook_id}")

        self.publish(workbook_id, "user-joined", participant.to_dict(), exclude=participant.connection_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Отключение участника от книги"""
        participant = subscription.participant
        workbook_subs = self._subscriptions.get(participant.workbook_id, {})
        if workbook_subs.pop(participant.connection_id, None) is None:
            return

        if not workbook_subs:
            del self._subscriptions[participant.workbook_id]

        logger.info(f"User {participant.user_id} left workbook {participant.workbook_id}")
        self.publish(participant.workbook_id, "user-left", {
            "connection_id": participant.connection_id,
            "user_id": participant.user_id,
        })

    def participants(self, workbook_id: int) -> List[Participant]:
        return [s.participant for s in self._subscriptions.get(workbook_id, {}).values()]

    def publish(
        self,
        workbook_id: int,
        event_type: str,
        data: Dict[str, Any],
        exclude: Optional[str] = None
    ) -> int:
        """Рассылка события всем участникам книги; возвращает число доставленных"""
        event = LiveEvent(event_type, workbook_id, data, sender=exclude)
        delivered = 0

        for connection_id, subscription in list(self._subscriptions.get(workbook_id, {}).items()):
            if connection_id == exclude:
                continue
            if subscription.offer(event):
                delivered += 1
            else:
                logger.warning(
                    f"Dropped {event_type} for user {subscription.participant.user_id} "
                    f"on workbook {workbook_id}: queue full"
                )

        return delivered


live_channel = LiveChannel(settings.live_queue_size)
