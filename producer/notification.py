"""Critical-alert hook: local JSONL log plus optional webhook post."""

from __future__ import annotations

from datetime import datetime, timezone
import hashlib
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Set

import httpx

logger = logging.getLogger(__name__)


def alert_key(title: str, message: str) -> str:
    return hashlib.sha256(f"{title}\n{message}".encode("utf-8")).hexdigest()


def _write_jsonl(entry: Dict[str, Any], out_dir: str | Path) -> str:
    target = Path(out_dir)
    target.mkdir(parents=True, exist_ok=True)
    log_path = target / "alerts.jsonl"
    with log_path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry, ensure_ascii=False) + "\n")
    return str(log_path)


class AlertNotifier:
    """Send each distinct critical alert once per notifier instance.

    Delivery problems are logged, never raised, so a broken webhook cannot
    mask the failure being reported.
    """

    def __init__(
        self,
        *,
        webhook_url: Optional[str] = None,
        out_dir: str | Path | None = None,
        timeout_sec: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.webhook_url = str(webhook_url or "").strip() or None
        self.out_dir = out_dir
        self.timeout_sec = float(timeout_sec)
        self._transport = transport
        self._sent: Set[str] = set()
        self._lock = Lock()

    @classmethod
    def from_settings(cls, settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> "AlertNotifier":
        return cls(
            webhook_url=settings.webhook_url,
            out_dir=settings.log_dir,
            timeout_sec=settings.timeout_sec,
            transport=transport,
        )

    async def send_critical(
        self,
        title: str,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Return the alert entry, or ``None`` when an identical alert was already sent."""
        key = alert_key(title, message)
        with self._lock:
            if key in self._sent:
                logger.info("alert_deduplicated key=%s", key[:12])
                return None
            self._sent.add(key)

        entry: Dict[str, Any] = {
            "severity": "critical",
            "title": str(title),
            "message": str(message),
            "context": dict(context or {}),
            "alert_key": key,
            "sent_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "status": "logged",
        }
        if self.out_dir:
            try:
                entry["log_path"] = _write_jsonl(entry, self.out_dir)
            except OSError as exc:
                logger.warning("alert_log_failed out_dir=%s error=%s", self.out_dir, exc)
                entry["status"] = "log_failed"
        if self.webhook_url:
            entry["status"] = await self._post(entry)
        logger.error("critical_alert title=%s status=%s message=%s", title, entry["status"], message)
        return entry

    async def _post(self, entry: Dict[str, Any]) -> str:
        payload = {key: entry[key] for key in ("severity", "title", "message", "context", "alert_key", "sent_at")}
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_sec), transport=self._transport) as client:
                resp = await client.post(self.webhook_url, json=payload)
                resp.raise_for_status()
            return "sent"
        except httpx.HTTPError as exc:
            logger.warning("alert_webhook_failed url=%s error=%s", self.webhook_url, exc)
            return "webhook_failed"
