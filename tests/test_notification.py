from __future__ import annotations

import json

import httpx
import pytest

from config.settings import AlertSettings
from producer.notification import AlertNotifier, alert_key


@pytest.mark.asyncio
async def test_alert_is_logged_once(tmp_path) -> None:
    notifier = AlertNotifier(out_dir=tmp_path)

    first = await notifier.send_critical("Pipeline failed", "denver::a::b: boom", context={"mode": "ondemand"})
    second = await notifier.send_critical("Pipeline failed", "denver::a::b: boom")

    assert first["status"] == "logged"
    assert first["alert_key"] == alert_key("Pipeline failed", "denver::a::b: boom")
    assert second is None
    lines = (tmp_path / "alerts.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["context"] == {"mode": "ondemand"}


@pytest.mark.asyncio
async def test_webhook_receives_payload() -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(200)

    notifier = AlertNotifier(webhook_url="https://hooks.example.com/alert", transport=httpx.MockTransport(handler))
    entry = await notifier.send_critical("Pipeline failed", "boom")

    assert entry["status"] == "sent"
    assert received[0]["title"] == "Pipeline failed"
    assert received[0]["severity"] == "critical"


@pytest.mark.asyncio
async def test_webhook_failure_is_reported_not_raised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    notifier = AlertNotifier(webhook_url="https://hooks.example.com/alert", transport=httpx.MockTransport(handler))
    entry = await notifier.send_critical("Pipeline failed", "boom")

    assert entry["status"] == "webhook_failed"


def test_from_settings(tmp_path) -> None:
    notifier = AlertNotifier.from_settings(AlertSettings(webhook_url="  ", log_dir=str(tmp_path)))

    assert notifier.webhook_url is None
    assert notifier.out_dir == str(tmp_path)


@pytest.mark.asyncio
async def test_unwritable_log_dir_is_reported_not_raised(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    notifier = AlertNotifier(out_dir=blocker / "alerts")

    entry = await notifier.send_critical("Pipeline failed", "boom")

    assert entry["status"] == "log_failed"
    assert "log_path" not in entry
