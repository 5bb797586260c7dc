"""
Реестр сессий: имя и текущий собеседник для каждого активного подключения.
Связь partner хранится по id подключения в обе стороны, владельцем
состояния является только Matchmaker.
"""
from dataclasses import dataclass

from .constants import USERNAME_REQUIRED, USERNAME_TOO_LONG


class InvalidName(ValueError):
    """Пустое, отсутствующее или слишком длинное имя при join."""


class InvariantViolation(AssertionError):
    """Ошибка в самом движке: повторный пейринг или пейринг с собой."""


@dataclass
class SessionEntry:
    conn_id: str
    display_name: str | None = None
    partner_id: str | None = None


class SessionRegistry:
    def __init__(self, max_name_length: int = 32):
        self.max_name_length = max_name_length
        self._entries: dict[str, SessionEntry] = {}

    def __contains__(self, conn_id: str) -> bool:
        return conn_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, conn_id: str) -> SessionEntry:
        entry = self._entries.get(conn_id)
        if entry is None:
            entry = self._entries[conn_id] = SessionEntry(conn_id)
        return entry

    def ids(self) -> list[str]:
        return list(self._entries)

    def get(self, conn_id: str) -> SessionEntry | None:
        return self._entries.get(conn_id)

    def display_name(self, conn_id: str) -> str:
        """Имя для показа собеседнику; у безымянного подключения — user_<id>."""
        entry = self._entries.get(conn_id)
        if entry and entry.display_name:
            return entry.display_name
        return f"user_{conn_id[:8]}"

    def partner_of(self, conn_id: str) -> str | None:
        entry = self._entries.get(conn_id)
        return entry.partner_id if entry else None

    def paired_count(self) -> int:
        """Количество пар (каждая пара считается один раз)."""
        return sum(1 for e in self._entries.values() if e.partner_id) // 2

    def set_display_name(self, conn_id: str, name) -> str:
        """Подключение должно быть уже добавлено через add()."""
        if not isinstance(name, str) or not name.strip():
            raise InvalidName(USERNAME_REQUIRED)
        name = name.strip()
        if len(name) > self.max_name_length:
            raise InvalidName(USERNAME_TOO_LONG)
        self._entries[conn_id].display_name = name
        return name

    def pair(self, a: str, b: str) -> None:
        if a == b:
            raise InvariantViolation(f"self-pairing of {a}")
        ea, eb = self._entries.get(a), self._entries.get(b)
        if ea is None or eb is None:
            raise InvariantViolation(f"pairing unknown connection {a if ea is None else b}")
        if ea.partner_id or eb.partner_id:
            raise InvariantViolation(f"pairing already paired connection ({a}, {b})")
        ea.partner_id = b
        eb.partner_id = a

    def unpair(self, conn_id: str) -> str | None:
        """
        Разорвать пару. Обратная ссылка снимается, только если она указывает на conn_id.
        Возвращает id бывшего собеседника или None. Повторный вызов — no-op.
        """
        entry = self._entries.get(conn_id)
        if entry is None or entry.partner_id is None:
            return None
        partner_id, entry.partner_id = entry.partner_id, None
        partner = self._entries.get(partner_id)
        if partner is not None and partner.partner_id == conn_id:
            partner.partner_id = None
        return partner_id

    def remove(self, conn_id: str) -> None:
        self._entries.pop(conn_id, None)
