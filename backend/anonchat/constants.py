"""Имена событий и тексты сообщений (контракт с клиентами)."""

# Входящие события
JOIN = "join"
MESSAGE = "message"
NEXT = "next"

# Исходящие события (плюс MESSAGE при пересылке)
WAITING = "waiting"
MATCHED = "matched"
ENDED = "ended"
ERROR = "error"

WAITING_FOR_PARTNER = "Waiting for another user to join..."
SEARCHING_NEW_PARTNER = "Searching for a new partner..."
PARTNER_LEFT = "Partner left. Searching for a new user..."
PARTNER_DISCONNECTED = "Your partner disconnected. Searching for a new user..."
USERNAME_REQUIRED = "Username is required"
USERNAME_TOO_LONG = "Username is too long"


def matched_text(partner_name: str) -> str:
    return f"Connected to {partner_name}!"
