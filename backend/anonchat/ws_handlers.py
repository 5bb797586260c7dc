"""
Обработка сообщений WebSocket: join, message, next.
Закрытие соединения превращается в событие disconnect.
"""
import json
import logging
import uuid

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from .constants import JOIN, MESSAGE, NEXT
from .pairing import Disconnect, Event, Join, Matchmaker, Message, Next
from .ws_manager import WSManager

logger = logging.getLogger(__name__)


def parse_event(raw: str) -> Event | None:
    """
    Разобрать JSON-фрейм клиента в событие.
    Возвращает None для невалидного JSON или неизвестного type.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    t = data.get("type")
    if t == JOIN:
        return Join(username=data.get("username"))
    if t == MESSAGE:
        return Message(text=data.get("text"))
    if t == NEXT:
        return Next()
    return None


async def ws_loop(ws: WebSocket, matchmaker: Matchmaker, manager: WSManager) -> None:
    conn_id = str(uuid.uuid4())
    await ws.accept()
    manager.connect(ws, conn_id)
    await matchmaker.connect(conn_id)
    logger.info("WS: connected conn=%s from %s", conn_id, ws.client)
    try:
        while True:
            raw = await ws.receive_text()
            event = parse_event(raw)
            if event is None:
                logger.warning("WS: malformed frame from conn=%s ignored", conn_id)
                continue
            await matchmaker.handle(conn_id, event)
    except WebSocketDisconnect as e:
        logger.info("WS: client disconnected code=%s conn=%s", e.code, conn_id)
    except Exception as e:
        logger.exception("WS: error conn=%s: %s", conn_id, e)
    finally:
        manager.disconnect(conn_id)
        await matchmaker.handle(conn_id, Disconnect())
        logger.info("WS: disconnected conn=%s", conn_id)
