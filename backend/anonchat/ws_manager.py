"""
Менеджер WebSocket: подключения по conn_id и отправка событий конкретному клиенту.
"""
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Connection:
    def __init__(self, ws: WebSocket, conn_id: str):
        self.ws = ws
        self.conn_id = conn_id

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        await self.ws.send_json({"type": event, **payload})


class WSManager:
    def __init__(self):
        self._by_id: dict[str, Connection] = {}

    def connect(self, ws: WebSocket, conn_id: str) -> Connection:
        conn = Connection(ws, conn_id)
        self._by_id[conn_id] = conn
        return conn

    def disconnect(self, conn_id: str) -> None:
        self._by_id.pop(conn_id, None)

    async def emit_to(self, conn_id: str, event: str, payload: dict[str, Any]) -> bool:
        conn = self._by_id.get(conn_id)
        if not conn:
            return False
        try:
            await conn.emit(event, payload)
            return True
        except Exception as e:
            logger.warning("emit_to %s (%s): %s", conn_id, event, e)
            return False
