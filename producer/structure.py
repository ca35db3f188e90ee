"""Structural signature of an article body and duplicate-structure lookup."""

from __future__ import annotations

import re
from typing import List, Protocol


HEADING_RE = re.compile(r"^#{2,3}\s+\S")
_WS_RE = re.compile(r"\s+")


class SignatureCounter(Protocol):
    def count_published_with_signature(self, signature: str) -> int:
        ...


def heading_lines(content: str) -> List[str]:
    """Level-2/3 markdown heading lines, in document order."""
    out: List[str] = []
    for line in str(content or "").splitlines():
        stripped = line.strip()
        if HEADING_RE.match(stripped):
            out.append(stripped)
    return out


def build_signature(content: str) -> str:
    """Fingerprint the heading layout of ``content``.

    Each heading is lower-cased with whitespace collapsed; headings are joined
    with ``|``. Content without level-2/3 headings yields ``""`` which callers
    treat as "unscored".
    """
    parts = [_WS_RE.sub(" ", line).lower() for line in heading_lines(content)]
    return "|".join(parts)


def count_duplicated_structure(signature: str, repository: SignatureCounter) -> int:
    if not signature:
        return 0
    return max(0, int(repository.count_published_with_signature(signature)))
