"""Deterministic fakes for producer ports, shared across test modules."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Set

from core import ArticleDraft, ArticleOutline, ProducerRequest


GOOD_CONTENT = "\n".join(
    [
        "## Bike Repair in Denver: What to Expect",
        "",
        "Most neighborhood shops in Denver handle tune-ups, flat fixes and brake adjustments on a walk-in basis, "
        "while wheel builds and suspension service usually need a booking.",
        "",
        "## How to Verify in Denver Today",
        "",
        "Call ahead to confirm opening hours, ask whether parts for your model are in stock, and request a written "
        "estimate before leaving the bike.",
        "",
        "## Typical Costs",
        "",
        "A basic tune-up ranges from 60 to 120 dollars. Tubeless conversions, hydraulic brake bleeds and drivetrain "
        "replacements are priced separately.",
        "",
        "## Choosing a Shop",
        "",
        "Look for mechanics who explain the problem before starting work, publish their labor rates, and keep a short "
        "queue during peak season. Independent shops and chain stores both offer warranties on labor, usually thirty days.",
        "",
        "## FAQ",
        "",
        "### How long does a standard tune-up take?",
        "",
        "Two to four business days during spring, often same day in winter.",
        "",
        "### Can I bring my own parts?",
        "",
        "Many shops accept customer parts but charge a higher labor rate for installation.",
        "",
        "## Sources",
        "",
        "- https://www.denvergov.org/bike",
        "- https://www.bikeleague.org/resources",
    ]
)


def build_request(**overrides: Any) -> ProducerRequest:
    data = {"topic": "Bike Repair", "city": "Denver", "keyword": "bike repair denver", "language": "en"}
    data.update(overrides)
    return ProducerRequest(**data)


def build_outline(**overrides: Any) -> ArticleOutline:
    data: Dict[str, Any] = {
        "title": "Bike Repair in Denver",
        "audience": "Denver commuters with a bike that needs service",
        "intent": "Find a reliable shop and a fair price this week",
        "sections": ["What to Expect", "How to Verify in Denver Today", "Typical Costs", "FAQ"],
        "decision_checklist": [
            "Ask for a written estimate",
            "Confirm parts availability",
            "Check the labor warranty",
            "Compare two shops",
        ],
        "key_takeaways": ["Book early in spring", "Get estimates in writing", "Warranties cover labor"],
        "common_mistakes": ["Skipping the estimate", "Waiting until peak season", "Ignoring warranty terms"],
        "faq_questions": ["How long does a tune-up take?", "Can I bring my own parts?"],
        "source_links": ["https://www.denvergov.org/bike"],
    }
    data.update(overrides)
    return ArticleOutline(**data)


def build_good_draft(**overrides: Any) -> ArticleDraft:
    data: Dict[str, Any] = {
        "title": "Bike Repair in Denver: A Practical Guide",
        "description": "Where to get a bike repaired in Denver, what common services cost, and how to confirm "
        "hours and parts before you go.",
        "slug": "bike-repair-denver",
        "tags": ["bike-repair", "denver", "cycling"],
        "audience": "Denver commuters with a bike that needs service",
        "intent": "Find a reliable shop and a fair price this week",
        "key_takeaways": ["Book early in spring", "Get estimates in writing", "Warranties cover labor"],
        "decision_checklist": [
            "Ask for a written estimate",
            "Confirm parts availability",
            "Check the labor warranty",
            "Compare two shops",
        ],
        "common_mistakes": ["Skipping the estimate", "Waiting until peak season", "Ignoring warranty terms"],
        "evidence_notes": ["Prices collected from three shop menus", "Hours checked on official city pages"],
        "content": GOOD_CONTENT,
        "source_links": ["https://www.denvergov.org/bike", "https://www.bikeleague.org/resources"],
    }
    data.update(overrides)
    return ArticleDraft(**data)


def build_weak_draft(**overrides: Any) -> ArticleDraft:
    """Soft failures only, scoring 66: revisable but not acceptable."""
    data: Dict[str, Any] = {
        "audience": "",
        "intent": "",
        "key_takeaways": [],
        "decision_checklist": [],
        "common_mistakes": [],
        "evidence_notes": [],
        "tags": ["bike"],
        "description": "Short description.",
    }
    data.update(overrides)
    return build_good_draft(**data)


class ScriptedGenerator:
    """Generator whose replies are scripted per call; exceptions are raised."""

    def __init__(
        self,
        *,
        outlines: Optional[List[Any]] = None,
        drafts: Optional[List[Any]] = None,
        revisions: Optional[List[Any]] = None,
        default_outline: Any = None,
        default_draft: Any = None,
        default_revision: Any = None,
    ) -> None:
        self._outlines = list(outlines or [])
        self._drafts = list(drafts or [])
        self._revisions = list(revisions or [])
        self._default_outline = default_outline if default_outline is not None else build_outline()
        self._default_draft = default_draft if default_draft is not None else build_good_draft()
        self._default_revision = default_revision if default_revision is not None else build_good_draft()
        self.outline_calls = 0
        self.draft_calls = 0
        self.revise_calls: List[Dict[str, Any]] = []
        self.model_version = "fake:scripted"

    @staticmethod
    def _reply(queue: List[Any], default: Any) -> Any:
        value = queue.pop(0) if queue else default
        if isinstance(value, BaseException):
            raise value
        return value

    async def generate_outline(self, topic: str, city: str, keyword: str, language: str) -> ArticleOutline:
        self.outline_calls += 1
        return self._reply(self._outlines, self._default_outline)

    async def generate_draft(self, outline, topic: str, city: str, keyword: str, language: str) -> ArticleDraft:
        self.draft_calls += 1
        return self._reply(self._drafts, self._default_draft)

    async def revise_draft(self, draft, failure_codes, failure_messages, score_summary, language) -> ArticleDraft:
        self.revise_calls.append(
            {
                "draft": draft,
                "failure_codes": list(failure_codes),
                "failure_messages": list(failure_messages),
                "score_summary": dict(score_summary),
                "language": language,
            }
        )
        return self._reply(self._revisions, self._default_revision)


class FailingGenerator(ScriptedGenerator):
    """Every outline call blows up."""

    def __init__(self, error: Optional[BaseException] = None) -> None:
        super().__init__()
        self._error = error or RuntimeError("model unavailable")

    async def generate_outline(self, topic: str, city: str, keyword: str, language: str) -> ArticleOutline:
        self.outline_calls += 1
        raise self._error


class FakeProber:
    def __init__(self, reachable: Optional[Iterable[str]] = None) -> None:
        self.reachable: Set[str] = set(reachable or [])
        self.calls: List[List[str]] = []

    async def probe(self, urls: Iterable[str]) -> Set[str]:
        links = list(urls)
        self.calls.append(links)
        return {url for url in links if url in self.reachable}
