"""URL canonicalization for article source links."""

from __future__ import annotations

import re
from typing import Iterable, List
from urllib.parse import urlparse, urlunparse


_URL_RE = re.compile(r"https?://[^\s)\]>\"']+")
_MD_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^)]+)\)")


def _strip_url_tail_noise(value: str) -> str:
    text = str(value or "").strip()
    if not text:
        return ""
    text = text.strip("\"'`<>")
    text = re.sub(r"\s+", "", text)

    # trailing markdown/json punctuation picked up from model output
    while text and text[-1] in {"\"", "'", "`", ")", "]", "}", ",", ";", ".", ">", ":"}:
        text = text[:-1].rstrip()
    return text


def canonicalize_source_url(url: str) -> str:
    """Return the canonical http(s) form of ``url`` or ``""`` when unusable.

    Scheme and host are lower-cased, default ports dropped, and both query
    string and fragment stripped. Anything that is not http/https is rejected.
    """
    value = _strip_url_tail_noise(url)
    if not value:
        return ""
    try:
        parsed = urlparse(value)
    except ValueError:
        return ""

    scheme = str(parsed.scheme or "").lower()
    if scheme not in {"http", "https"}:
        return ""

    host = str(parsed.netloc or "").strip().lower()
    if "@" in host:
        return ""
    if host.endswith(":80") and scheme == "http":
        host = host[:-3]
    elif host.endswith(":443") and scheme == "https":
        host = host[:-4]
    if not host or "." not in host.split(":")[0]:
        return ""

    path = re.sub(r"/{2,}", "/", str(parsed.path or ""))
    return urlunparse((scheme, host, path, "", "", ""))


def is_valid_http_url(url: str) -> bool:
    return bool(canonicalize_source_url(url))


def normalize_source_links(urls: Iterable[str]) -> List[str]:
    """Canonicalize and de-duplicate links, keeping first-seen order."""
    seen = set()
    out: List[str] = []
    for raw in urls or []:
        url = canonicalize_source_url(raw)
        if not url or url in seen:
            continue
        seen.add(url)
        out.append(url)
    return out


def extract_urls(text: str) -> List[str]:
    """Pull http(s) URLs out of markdown text (inline links and bare URLs)."""
    found: List[str] = []
    body = str(text or "")
    for match in _MD_LINK_RE.finditer(body):
        found.append(match.group(2))
    for match in _URL_RE.finditer(_MD_LINK_RE.sub(" ", body)):
        found.append(match.group(0))
    return normalize_source_links(found)
