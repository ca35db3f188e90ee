"""Concurrent reachability probe for article source links."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Set

import httpx

from producer.sanitize import normalize_source_links
from storage.cache import MemoryCache

logger = logging.getLogger(__name__)

_RETRY_WITH_GET = {405, 501}


class SourceLinkProber:
    """HEAD-probe source links once per run.

    Links are canonicalized and de-duplicated first; each distinct URL is
    requested at most once for the lifetime of the prober. Timeouts, DNS
    failures and error statuses all count as unreachable.
    """

    def __init__(
        self,
        *,
        timeout_sec: float = 4.0,
        enabled: bool = True,
        user_agent: str = "ArticleProducer/1.0 (+link-check)",
        cache: Optional[MemoryCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_sec = float(timeout_sec)
        self.enabled = bool(enabled)
        self.user_agent = user_agent
        self._cache = cache if cache is not None else MemoryCache()
        self._transport = transport
        self.request_count = 0

    @classmethod
    def from_settings(cls, settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> "SourceLinkProber":
        return cls(
            timeout_sec=settings.timeout_sec,
            enabled=settings.enabled,
            user_agent=settings.user_agent,
            transport=transport,
        )

    async def probe(self, urls: Iterable[str]) -> Set[str]:
        """Return the subset of normalized ``urls`` that answered below HTTP 400."""
        links = normalize_source_links(urls)
        if not self.enabled or not links:
            return set()

        pending = [url for url in links if not self._cache.exists(url)]
        if pending:
            await self._probe_pending(pending)
        return {url for url in links if self._cache.get(url) is True}

    async def _probe_pending(self, pending: List[str]) -> None:
        timeout = httpx.Timeout(self.timeout_sec)
        headers = {"User-Agent": self.user_agent}
        async with httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            results = await asyncio.gather(*[self._check(client, url) for url in pending], return_exceptions=True)

        for url, result in zip(pending, results):
            reachable = result is True
            if isinstance(result, BaseException):
                logger.debug("link_probe_error url=%s error=%s", url, result)
            self._cache.set(url, reachable)
        logger.info(
            "link_probe_completed probed=%d reachable=%d",
            len(pending),
            sum(1 for url in pending if self._cache.get(url) is True),
        )

    async def _check(self, client: httpx.AsyncClient, url: str) -> bool:
        try:
            self.request_count += 1
            resp = await client.head(url)
            if resp.status_code in _RETRY_WITH_GET:
                self.request_count += 1
                resp = await client.get(url)
            return resp.status_code < 400
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.debug("link_unreachable url=%s error=%s", url, exc)
            return False
