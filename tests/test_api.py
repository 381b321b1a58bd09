from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from mowa.api import create_app
from mowa.config import Settings
from mowa.errors import UptimeError
from mowa.messages.sender import MessageSender
from mowa.system.uptime import UptimeReader, UptimeReport, format_uptime


class RecordingSender(MessageSender):
    def __init__(self) -> None:
        super().__init__()
        self.scripts: list[str] = []

    async def _run_applescript(self, script: str) -> None:
        self.scripts.append(script)


class FixedUptime(UptimeReader):
    def __init__(self, seconds: float | None) -> None:
        super().__init__()
        self._seconds = seconds

    async def read(self) -> UptimeReport:
        if self._seconds is None:
            raise UptimeError("failed to execute uptime command: exit status 1")
        return format_uptime(self._seconds)


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()


def _client(tmp_path: Path, sender: MessageSender, uptime: UptimeReader | None = None) -> TestClient:
    settings = Settings(
        storage={"dir": str(tmp_path)},
        messages={"groups": {"family": ["+15550000001", "+15550000002"]}},
    )
    return TestClient(create_app(settings, message_sender=sender, uptime_reader=uptime))


def test_health_banner_lists_endpoints(tmp_path: Path, sender: RecordingSender) -> None:
    response = _client(tmp_path, sender).get("/")

    assert response.status_code == 200
    assert response.text.startswith("Mowa API is running!")
    assert "POST /api/messages" in response.text
    assert "GET /api/storage/*" in response.text


def test_send_messages_expands_groups(tmp_path: Path, sender: RecordingSender) -> None:
    response = _client(tmp_path, sender).post(
        "/api/messages",
        json={"to": ["family", "12345"], "message": "dinner at 7"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "results": [
            {"recipient": "+15550000001", "success": True},
            {"recipient": "+15550000002", "success": True},
            {"recipient": "12345", "success": False, "error": "phone number must start with +"},
        ]
    }
    assert len(sender.scripts) == 2
    assert all('send "dinner at 7" to myBuddy' in script for script in sender.scripts)


def test_send_messages_requires_recipients(tmp_path: Path, sender: RecordingSender) -> None:
    response = _client(tmp_path, sender).post("/api/messages", json={"to": [], "message": "hi"})

    assert response.status_code == 400
    assert response.json() == {"error": "At least one recipient is required"}


def test_send_messages_requires_message(tmp_path: Path, sender: RecordingSender) -> None:
    response = _client(tmp_path, sender).post("/api/messages", json={"to": ["+15551234567"]})

    assert response.status_code == 400
    assert response.json() == {"error": "Message content is required"}


def test_send_messages_rejects_malformed_body(tmp_path: Path, sender: RecordingSender) -> None:
    response = _client(tmp_path, sender).post(
        "/api/messages",
        content=b"{broken",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request format"
    assert body["details"]
    assert sender.scripts == []


def test_uptime_endpoint(tmp_path: Path, sender: RecordingSender) -> None:
    response = _client(tmp_path, sender, FixedUptime(90061)).get("/api/uptime")

    assert response.status_code == 200
    assert response.json() == {
        "uptime": "1 day, 1 hour, 1 minute",
        "uptimeSeconds": 90061,
        "formatted": "1 day, 1 hour, 1 minute",
    }


def test_uptime_failure(tmp_path: Path, sender: RecordingSender) -> None:
    response = _client(tmp_path, sender, FixedUptime(None)).get("/api/uptime")

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to get uptime"


def test_cors_allows_any_origin(tmp_path: Path, sender: RecordingSender) -> None:
    response = _client(tmp_path, sender).options(
        "/api/storage",
        headers={"Origin": "http://example.com", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
