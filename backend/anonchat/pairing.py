"""
Пейринг собеседников и пересылка сообщений (in-memory).
Одно место ожидания (waiting slot): второй подключившийся сразу получает пару.
Переходы состояний — чистая функция apply(); handle() выполняет её под
блокировкой и рассылает исходящие события уже после её снятия.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .constants import (
    ENDED,
    ERROR,
    MATCHED,
    MESSAGE,
    PARTNER_DISCONNECTED,
    PARTNER_LEFT,
    SEARCHING_NEW_PARTNER,
    WAITING,
    WAITING_FOR_PARTNER,
    matched_text,
)
from .registry import InvalidName, SessionRegistry

logger = logging.getLogger(__name__)


class State(str, Enum):
    UNJOINED = "unjoined"
    WAITING = "waiting"
    PAIRED = "paired"
    IDLE = "idle"  # собеседник ушёл, сам в очередь не встаёт
    TERMINATED = "terminated"


@dataclass(frozen=True)
class Join:
    username: Any = None


@dataclass(frozen=True)
class Message:
    text: Any = None


@dataclass(frozen=True)
class Next:
    pass


@dataclass(frozen=True)
class Disconnect:
    pass


Event = Join | Message | Next | Disconnect


@dataclass(frozen=True)
class Outbound:
    conn_id: str
    event: str
    payload: dict[str, Any] = field(default_factory=dict)


class Emitter(Protocol):
    async def emit_to(self, conn_id: str, event: str, payload: dict[str, Any]) -> bool: ...


class Matchmaker:
    def __init__(self, emitter: Emitter | None = None, max_name_length: int = 32):
        self._emitter = emitter
        self._registry = SessionRegistry(max_name_length=max_name_length)
        self._waiting: str | None = None
        self._lock = asyncio.Lock()
        # Очередь исходящих на каждое подключение: порядок задаётся под self._lock
        self._outbox: dict[str, deque[Outbound]] = {}
        self._send_locks: dict[str, asyncio.Lock] = {}

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def waiting(self) -> str | None:
        """id подключения в слоте ожидания или None."""
        return self._waiting

    def state_of(self, conn_id: str) -> State:
        entry = self._registry.get(conn_id)
        if entry is None:
            return State.TERMINATED
        if entry.partner_id:
            return State.PAIRED
        if self._waiting == conn_id:
            return State.WAITING
        if entry.display_name is None:
            return State.UNJOINED
        return State.IDLE

    def stats(self) -> dict[str, int]:
        return {
            "connections": len(self._registry),
            "waiting": 1 if self._waiting else 0,
            "pairs": self._registry.paired_count(),
        }

    async def connect(self, conn_id: str) -> None:
        async with self._lock:
            self._registry.add(conn_id)

    async def handle(self, conn_id: str, event: Event) -> list[Outbound]:
        """
        Применить событие атомарно, затем разослать исходящие события.
        События ставятся в очередь получателя ещё под блокировкой, а отправляются
        после её снятия, поэтому каждый клиент видит их в порядке переходов.
        """
        async with self._lock:
            outbound = self.apply(conn_id, event)
            for out in outbound:
                self._outbox.setdefault(out.conn_id, deque()).append(out)
            if isinstance(event, Disconnect):
                self._outbox.pop(conn_id, None)
                self._send_locks.pop(conn_id, None)
        for recipient in dict.fromkeys(out.conn_id for out in outbound):
            await self._drain(recipient)
        return outbound

    async def _drain(self, conn_id: str) -> None:
        queue = self._outbox.get(conn_id)
        if queue is None:
            return
        lock = self._send_locks.setdefault(conn_id, asyncio.Lock())
        async with lock:
            while queue:
                out = queue.popleft()
                if self._emitter is not None:
                    await self._emitter.emit_to(out.conn_id, out.event, out.payload)

    def apply(self, conn_id: str, event: Event) -> list[Outbound]:
        """
        Переход состояния для одного события. Не блокирует и ничего не отправляет;
        вызывать только под self._lock (или из тестов в одном потоке).
        """
        if not isinstance(event, Disconnect) and conn_id not in self._registry:
            logger.debug("event %s for unknown conn=%s dropped", type(event).__name__, conn_id)
            return []
        if isinstance(event, Join):
            return self._join(conn_id, event.username)
        if isinstance(event, Message):
            return self._message(conn_id, event.text)
        if isinstance(event, Next):
            return self._next(conn_id)
        if isinstance(event, Disconnect):
            return self._disconnect(conn_id)
        raise TypeError(f"unknown event {event!r}")

    def _join(self, conn_id: str, username: Any) -> list[Outbound]:
        try:
            name = self._registry.set_display_name(conn_id, username)
        except InvalidName as e:
            logger.info("join rejected conn=%s: %s", conn_id, e)
            return [Outbound(conn_id, ERROR, {"message": str(e)})]
        if self._registry.partner_of(conn_id):
            logger.debug("join from already paired conn=%s, name updated", conn_id)
            return []
        logger.info("join conn=%s name=%s", conn_id, name)
        return self._wait_or_match(conn_id, WAITING_FOR_PARTNER)

    def _message(self, conn_id: str, text: Any) -> list[Outbound]:
        partner_id = self._registry.partner_of(conn_id)
        if partner_id is None:
            logger.debug("message from unpaired conn=%s dropped", conn_id)
            return []
        if not isinstance(text, str):
            logger.debug("non-text message from conn=%s dropped", conn_id)
            return []
        sender = self._registry.display_name(conn_id)
        return [Outbound(partner_id, MESSAGE, {"sender": sender, "text": text})]

    def _next(self, conn_id: str) -> list[Outbound]:
        outbound = []
        partner_id = self._registry.unpair(conn_id)
        if partner_id is not None:
            # Брошенный собеседник в очередь не возвращается — он должен сам прислать join/next.
            logger.info("next conn=%s left partner=%s", conn_id, partner_id)
            outbound.append(Outbound(partner_id, ENDED, {"message": PARTNER_LEFT}))
        return outbound + self._wait_or_match(conn_id, SEARCHING_NEW_PARTNER)

    def _disconnect(self, conn_id: str) -> list[Outbound]:
        outbound = []
        partner_id = self._registry.unpair(conn_id)
        if partner_id is not None:
            outbound.append(Outbound(partner_id, ENDED, {"message": PARTNER_DISCONNECTED}))
        if self._waiting == conn_id:
            self._waiting = None
        self._registry.remove(conn_id)
        logger.info("disconnect conn=%s partner=%s", conn_id, partner_id)
        return outbound

    def _wait_or_match(self, conn_id: str, waiting_text: str) -> list[Outbound]:
        """Занять слот ожидания или сразу составить пару с тем, кто в нём."""
        other = self._waiting
        if other is None or other == conn_id:
            self._waiting = conn_id
            return [Outbound(conn_id, WAITING, {"message": waiting_text})]
        self._waiting = None
        self._registry.pair(other, conn_id)
        logger.info("matched %s <-> %s", other, conn_id)
        return [
            Outbound(conn_id, MATCHED, {"message": matched_text(self._registry.display_name(other))}),
            Outbound(other, MATCHED, {"message": matched_text(self._registry.display_name(conn_id))}),
        ]
