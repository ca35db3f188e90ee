from __future__ import annotations

from fakes import GOOD_CONTENT
from producer.structure import build_signature, count_duplicated_structure, heading_lines


class CountingRepo:
    def __init__(self, value: int = 0) -> None:
        self.value = value
        self.calls = []

    def count_published_with_signature(self, signature: str) -> int:
        self.calls.append(signature)
        return self.value


def test_heading_lines_keep_only_level_two_and_three() -> None:
    content = "# Title\n## First\n### Second\n#### Deep\n##NoSpace\n  ## Indented  "

    assert heading_lines(content) == ["## First", "### Second", "## Indented"]


def test_signature_lowercases_and_collapses_whitespace() -> None:
    content = "## How  To   Verify\nbody\n### FAQ Items\n"

    assert build_signature(content) == "## how to verify|### faq items"


def test_signature_of_reference_article() -> None:
    signature = build_signature(GOOD_CONTENT)

    assert signature.split("|")[0] == "## bike repair in denver: what to expect"
    assert signature.count("|") == 7
    assert signature.endswith("## sources")

def test_signature_ignores_body_text_but_not_heading_order() -> None:
    lines = GOOD_CONTENT.splitlines()
    rewritten = "\n".join(
        line if not line.strip() or line.startswith("#") else f"Rewritten paragraph {index}."
        for index, line in enumerate(lines)
    )
    first, second = lines.index("## Typical Costs"), lines.index("## Choosing a Shop")
    reordered = list(lines)
    reordered[first], reordered[second] = reordered[second], reordered[first]

    signature = build_signature(GOOD_CONTENT)

    assert rewritten != GOOD_CONTENT
    assert build_signature(GOOD_CONTENT) == signature
    assert build_signature(rewritten) == signature
    assert build_signature("\n".join(reordered)) != signature



def test_empty_signature_is_never_looked_up() -> None:
    repo = CountingRepo(value=9)

    assert build_signature("plain text only") == ""
    assert count_duplicated_structure("", repo) == 0
    assert repo.calls == []


def test_duplicate_count_comes_from_repository() -> None:
    repo = CountingRepo(value=4)

    assert count_duplicated_structure("## a|## b", repo) == 4
    assert repo.calls == ["## a|## b"]
