from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
import json
import asyncio
import logging

from sheetvault.domains.collaboration.schemas import LiveMessage, RELAYED_EVENTS
from sheetvault.domains.collaboration.services import LiveChannel, Subscription, live_channel

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    """Связка WebSocket-соединений с live-каналом книги"""

    def __init__(self, channel: LiveChannel):
        self.channel = channel

    async def connect(self, websocket: WebSocket, workbook_id: int, user_id: str) -> Subscription:
        """Подключение пользователя к книге"""
        await websocket.accept()
        subscription = self.channel.subscribe(workbook_id, user_id)

        await websocket.send_text(json.dumps({
            "type": "current-users",
            "data": {
                "connection_id": subscription.participant.connection_id,
                "users": [p.to_dict() for p in self.channel.participants(workbook_id)]
            }
        }))
        return subscription

    def disconnect(self, subscription: Subscription) -> None:
        self.channel.unsubscribe(subscription)

    async def stop(self, sender: "asyncio.Task[None]", subscription: Subscription) -> None:
        """Остановка пересылки и отключение от канала"""
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            logger.warning(f"Live sender for user {subscription.participant.user_id} failed: {exc!r}")
        self.disconnect(subscription)

    async def pump(self, websocket: WebSocket, subscription: Subscription) -> None:
        """Пересылка событий канала в сокет"""
        while True:
            event = await subscription.next_event()
            await websocket.send_text(json.dumps(event.to_dict()))

    async def handle_message(self, websocket: WebSocket, subscription: Subscription, raw: str) -> None:
        participant = subscription.participant
        try:
            message = LiveMessage.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning(f"Ignored malformed live message from user {participant.user_id}")
            return

        participant.update_activity()

        if message.type == "ping":
            await websocket.send_text(json.dumps({"type": "pong"}))
            return

        data = dict(message.data, user_id=participant.user_id, color=participant.color)
        self.channel.publish(
            participant.workbook_id,
            RELAYED_EVENTS[message.type],
            data,
            exclude=participant.connection_id
        )


manager = ConnectionManager(live_channel)


@router.websocket("/workbooks/{workbook_id}/live/{user_id}")
async def websocket_endpoint(websocket: WebSocket, workbook_id: int, user_id: str):
    """WebSocket эндпоинт присутствия и несохраненных правок"""
    subscription = await manager.connect(websocket, workbook_id, user_id)
    sender = asyncio.create_task(manager.pump(websocket, subscription))

    try:
        while True:
            data = await websocket.receive_text()
            await manager.handle_message(websocket, subscription, data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket closed for user {user_id} on workbook {workbook_id}")
    finally:
        await manager.stop(sender, subscription)
