"""End-to-end tests over the /ws endpoint using FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

from anonchat.main import create_app
from anonchat.pairing import Join, Message, Next
from anonchat.ws_handlers import parse_event


@pytest.fixture
def client():
    with TestClient(create_app()) as c:
        yield c


def join(ws, name):
    ws.send_json({"type": "join", "username": name})


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_scenario_match_and_relay(client):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
        join(a, "alice")
        assert a.receive_json() == {"type": "waiting", "message": "Waiting for another user to join..."}
        join(b, "bob")
        assert b.receive_json() == {"type": "matched", "message": "Connected to alice!"}
        assert a.receive_json() == {"type": "matched", "message": "Connected to bob!"}
        assert client.get("/stats").json() == {"connections": 2, "waiting": 0, "pairs": 1}

        a.send_json({"type": "message", "text": "hi"})
        assert b.receive_json() == {"type": "message", "sender": "alice", "text": "hi"}
        b.send_json({"type": "message", "text": "hey"})
        assert a.receive_json() == {"type": "message", "sender": "bob", "text": "hey"}


def test_scenario_next(client):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
        join(a, "alice")
        a.receive_json()
        join(b, "bob")
        b.receive_json()
        a.receive_json()

        a.send_json({"type": "next"})
        assert b.receive_json() == {"type": "ended", "message": "Partner left. Searching for a new user..."}
        assert a.receive_json() == {"type": "waiting", "message": "Searching for a new partner..."}
        assert client.get("/stats").json() == {"connections": 2, "waiting": 1, "pairs": 0}


def test_scenario_partner_disconnects(client):
    with client.websocket_connect("/ws") as b:
        with client.websocket_connect("/ws") as a:
            join(a, "alice")
            a.receive_json()
            join(b, "bob")
            b.receive_json()
            a.receive_json()
        assert b.receive_json() == {
            "type": "ended",
            "message": "Your partner disconnected. Searching for a new user...",
        }
        assert client.get("/stats").json() == {"connections": 1, "waiting": 0, "pairs": 0}


def test_scenario_waiter_disconnects(client):
    with client.websocket_connect("/ws") as a:
        join(a, "alice")
        a.receive_json()
    with client.websocket_connect("/ws") as c:
        join(c, "carol")
        assert c.receive_json()["type"] == "waiting"


def test_scenario_empty_name(client):
    with client.websocket_connect("/ws") as a:
        join(a, "")
        assert a.receive_json() == {"type": "error", "message": "Username is required"}
        join(a, "alice")
        assert a.receive_json()["type"] == "waiting"


def test_malformed_frames_are_ignored(client):
    with client.websocket_connect("/ws") as a:
        a.send_text("not json")
        a.send_json(["join"])
        a.send_json({"type": "dance"})
        join(a, "alice")
        assert a.receive_json()["type"] == "waiting"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"type": "join", "username": "alice"}', Join("alice")),
        ('{"type": "join"}', Join(None)),
        ('{"type": "message", "text": "hi"}', Message("hi")),
        ('{"type": "next"}', Next()),
        ('{"type": "disconnect"}', None),
        ('{"type": "unknown"}', None),
        ("[1, 2]", None),
        ("{broken", None),
    ],
)
def test_parse_event(raw, expected):
    assert parse_event(raw) == expected
