from __future__ import annotations

from datetime import datetime, timezone

from core import QualityContext, QualityPolicy
from fakes import GOOD_CONTENT, build_good_draft, build_weak_draft
from producer.quality import count_bigram_excess, count_repeated_lines, evaluate


def test_draft_meeting_every_rule_scores_full_marks() -> None:
    checked = datetime(2026, 1, 5, tzinfo=timezone.utc)
    report = evaluate(build_good_draft(), checked_at=checked)

    assert report.passed is True
    assert report.score_total == 100
    assert report.score_max == 100
    assert report.failures == []
    assert report.checked_at == checked
    assert report.metrics.heading_count == 8
    assert report.metrics.faq_questions == 2
    assert report.metrics.valid_source_links_count == 2


def test_score_total_is_sum_of_dimensions_and_each_dimension_is_bounded() -> None:
    report = evaluate(build_weak_draft())
    dims = report.dimensions
    parts = [dims.structure, dims.specificity, dims.anti_repetition, dims.safety]

    assert report.score_total == sum(item.score for item in parts)
    assert all(0 <= item.score <= item.max == 25 for item in parts)
    assert report.score_total == 66
    assert report.hard_failure_count == 0
    assert report.passed is False


def test_missing_title_is_a_hard_failure_even_with_high_score() -> None:
    report = evaluate(build_good_draft(title=""))

    assert report.score_total == 96
    assert report.hard_failure_count == 1
    assert report.failure_codes == ["title-required"]
    assert report.passed is False


def test_empty_draft_clamps_structure_at_zero() -> None:
    report = evaluate(build_good_draft(title="", description="", content="", tags=["x"], source_links=[]))

    assert report.dimensions.structure.score == 0
    assert report.hard_failure_count == 4
    assert {"title-required", "description-required", "content-required", "content-min-length"} <= set(
        report.failure_codes
    )


def test_forbidden_term_zeroes_safety_and_fails_hard() -> None:
    policy = QualityPolicy(forbidden_terms=["casino", "Scam"])
    draft = build_good_draft(content=GOOD_CONTENT + "\n\nAvoid any SCAM offers and casino flyers.")
    report = evaluate(draft, QualityContext(policy=policy))

    assert report.dimensions.safety.score == 0
    assert report.hard_failure_count == 2
    assert [item.rule for item in report.failures] == ["forbidden-term", "forbidden-term"]
    assert report.failure_codes == ["forbidden-term"]
    assert report.passed is False


def test_default_forbidden_terms_are_checked_in_description() -> None:
    draft = build_good_draft(description=build_good_draft().description + " 诈骗")
    report = evaluate(draft)

    assert report.dimensions.safety.score == 0
    assert report.passed is False


def test_description_out_of_range_is_soft() -> None:
    report = evaluate(build_good_draft(description="Too short."))

    assert report.failure_codes == ["description-range"]
    assert report.hard_failure_count == 0
    assert report.soft_failure_count == 1
    assert report.score_total == 97
    assert report.passed is True

def test_duplicate_tags_do_not_satisfy_tag_range() -> None:
    draft = build_good_draft(tags=["Cycling", "cycling", " CYCLING ", "denver"])
    report = evaluate(draft)

    assert draft.tags == ["Cycling", "denver"]
    assert report.failure_codes == ["tags-range"]
    assert report.metrics.tags_count == 2
    assert report.passed is True



def test_min_score_threshold_is_applied_to_pass() -> None:
    draft = build_good_draft(description="Too short.")

    assert evaluate(draft, QualityContext(policy=QualityPolicy(min_score=97))).passed is True
    assert evaluate(draft, QualityContext(policy=QualityPolicy(min_score=98))).passed is False


def test_repeated_long_lines_are_case_and_whitespace_insensitive() -> None:
    once = "Call the shop before you ride over today."
    content_two = "\n".join([GOOD_CONTENT, once, once.upper()])
    content_three = "\n".join([GOOD_CONTENT, once, once.upper(), "  call the   shop before you ride over TODAY. "])

    assert count_repeated_lines(content_two) == 1
    assert count_repeated_lines(content_three) == 2
    assert "repeated-lines" not in evaluate(build_good_draft(content=content_two)).failure_codes

    report = evaluate(build_good_draft(content=content_three))
    assert "repeated-lines" in report.failure_codes
    assert report.dimensions.anti_repetition.score == 15


def test_short_lines_do_not_count_as_repeated() -> None:
    assert count_repeated_lines("Yes.\nYes.\nYes.\nYes.") == 0


def test_repeated_bigrams_beyond_allowance_fail() -> None:
    spam = " ".join(["fresh tires"] * 12)
    draft = build_good_draft(content=GOOD_CONTENT + "\n\n" + spam)
    report = evaluate(draft)

    assert count_bigram_excess(spam) == 17
    assert "repeated-bigrams" in report.failure_codes
    assert report.score_total == 92


def test_short_tokens_are_ignored_for_bigrams() -> None:
    assert count_bigram_excess(" ".join(["to be"] * 20)) == 0


def test_faq_and_evidence_rules() -> None:
    content = GOOD_CONTENT.replace("### How long does a standard tune-up take?", "### Turnaround")
    report = evaluate(build_good_draft(content=content, evidence_notes=["same note", "Same   note"]))

    assert "faq-presence" in report.failure_codes
    assert "evidence-notes" in report.failure_codes
    assert report.dimensions.anti_repetition.score == 18


def test_specificity_requires_unique_items() -> None:
    draft = build_good_draft(
        key_takeaways=["Book early", "book early", "Get estimates"],
        decision_checklist=["a check", "A check", "b check", "c check"],
    )
    report = evaluate(draft)

    assert "key-takeaways-quality" in report.failure_codes
    assert "decision-checklist-quality" in report.failure_codes
    assert report.dimensions.specificity.score == 15


def test_source_links_minimum_counts_only_valid_links() -> None:
    draft = build_good_draft(source_links=["https://www.denvergov.org/bike", "ftp://files.example.com/a"])
    report = evaluate(draft)

    assert report.metrics.source_links_count == 2
    assert report.metrics.valid_source_links_count == 1
    assert report.failure_codes == ["source-links-minimum"]
    assert report.dimensions.structure.score == 22


def test_unreachable_links_fail_only_when_policy_forbids_them() -> None:
    strict = QualityPolicy(allow_unreachable_source_links=False)
    draft = build_good_draft()

    blocked = evaluate(draft, QualityContext(reachable_source_links_count=1, policy=strict))
    assert blocked.failure_codes == ["source-links-minimum"]

    ok = evaluate(draft, QualityContext(reachable_source_links_count=2, policy=strict))
    assert ok.failure_codes == []

    lenient = evaluate(draft, QualityContext(reachable_source_links_count=0))
    assert lenient.failure_codes == []


def test_duplicated_structure_severity_follows_policy() -> None:
    draft = build_good_draft()

    soft = evaluate(draft, QualityContext(duplicated_structure_count=4))
    assert soft.failure_codes == ["duplicated-structure"]
    assert soft.hard_failure_count == 0
    assert soft.score_total == 95
    assert soft.passed is True

    at_ceiling = evaluate(draft, QualityContext(duplicated_structure_count=3))
    assert at_ceiling.failure_codes == []

    hard_policy = QualityPolicy(duplicated_structure_severity="hard")
    hard = evaluate(draft, QualityContext(duplicated_structure_count=4, policy=hard_policy))
    assert hard.hard_failure_count == 1
    assert hard.passed is False


def test_evaluation_is_deterministic_apart_from_timestamp() -> None:
    draft = build_weak_draft()
    first = evaluate(draft).model_dump(exclude={"checked_at"})
    second = evaluate(draft).model_dump(exclude={"checked_at"})

    assert first == second
