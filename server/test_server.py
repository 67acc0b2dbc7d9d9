"""
Tests for server wiring: environment config, the health routes and the
/ws endpoint end to end.

Run with: pytest test_server.py -v
"""

from fastapi.testclient import TestClient

from catalog import CardCatalog
from config import ServerConfig
from main import app
from room import RoomManager
from routers.health import set_health_dependencies


class TestConfig:

    def test_defaults(self, monkeypatch):
        for key in ("PORT", "WIN_SCORE", "HAND_SIZE", "MIN_PLAYERS", "CORS_ORIGINS"):
            monkeypatch.delenv(key, raising=False)
        cfg = ServerConfig.from_env()
        assert cfg.PORT == 3000
        assert cfg.game.win_score == 10
        assert cfg.game.hand_size == 7
        assert cfg.game.min_players == 2
        assert cfg.CORS_ORIGINS == ["*"]

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("WIN_SCORE", "5")
        monkeypatch.setenv("MIN_PLAYERS", "3")
        monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
        cfg = ServerConfig.from_env()
        assert cfg.game.win_score == 5
        assert cfg.game.min_players == 3
        assert cfg.CORS_ORIGINS == ["http://a.test", "http://b.test"]

    def test_bad_values_clamped(self, monkeypatch):
        monkeypatch.setenv("WIN_SCORE", "0")
        monkeypatch.setenv("MIN_PLAYERS", "1")
        monkeypatch.setenv("HAND_SIZE", "lots")
        cfg = ServerConfig.from_env()
        assert cfg.game.win_score == 1
        assert cfg.game.min_players == 2
        assert cfg.game.hand_size == 7


class TestHealth:

    def test_health(self):
        with TestClient(app) as client:
            response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["rooms"] == 0

    def test_ready_with_bundled_catalog(self):
        with TestClient(app) as client:
            response = client.get("/ready")
        assert response.status_code == 200
        checks = response.json()["checks"]["catalog"]
        assert checks["status"] == "ok"
        assert checks["red"] >= 60

    def test_not_ready_with_empty_catalog(self):
        with TestClient(app) as client:
            set_health_dependencies(room_manager=RoomManager(catalog=CardCatalog()))
            response = client.get("/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"


class TestWebSocket:

    def receive_until(self, ws, msg_type: str) -> dict:
        while True:
            message = ws.receive_json()
            if message["type"] == msg_type:
                return message

    def test_create_and_join(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as host:
                host.send_json({"type": "create_room", "player_name": "Alice"})
                joined = self.receive_until(host, "joined")
                assert joined["is_host"] is True

                with client.websocket_connect("/ws") as guest:
                    guest.send_json({"type": "join_room", "room_code": joined["room_code"], "player_name": "Bob"})
                    assert self.receive_until(guest, "joined")["is_host"] is False
                    room = self.receive_until(guest, "room_update")["room"]
                    assert [p["name"] for p in room["players"]] == ["Alice", "Bob"]

    def test_invalid_json(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.send_text("{not json")
                assert ws.receive_json()["code"] == "BAD_MESSAGE"

    def test_unknown_type(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.send_json({"type": "dance"})
                assert ws.receive_json()["code"] == "UNKNOWN_MESSAGE"
