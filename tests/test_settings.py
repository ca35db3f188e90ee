from __future__ import annotations

from config.settings import DEFAULT_FORBIDDEN_TERMS, QualitySettings, Settings
from core import QualityPolicy


def test_quality_defaults_match_policy_defaults() -> None:
    policy = QualityPolicy.from_settings(QualitySettings())

    assert policy == QualityPolicy()
    assert policy.min_score == 70
    assert policy.duplicated_structure_severity == "soft"
    assert policy.forbidden_terms == DEFAULT_FORBIDDEN_TERMS


def test_forbidden_terms_accept_comma_separated_env(monkeypatch) -> None:
    monkeypatch.setenv("QUALITY_FORBIDDEN_TERMS", "casino, scam ,,")
    monkeypatch.setenv("QUALITY_MIN_SCORE", "80")

    settings = QualitySettings()

    assert settings.forbidden_terms == ["casino", "scam"]
    assert settings.min_score == 80


def test_aggregate_settings_defaults() -> None:
    settings = Settings()

    assert settings.producer.max_attempts == 3
    assert settings.producer.max_revisions == 2
    assert settings.lock.key == "424242"
    assert settings.lock.lease_seconds == 1200
    assert settings.storage.backend == "json"
