"""
Tests for the config module.
"""

import pytest
from pydantic import ValidationError

from src.gmail_labeler.config import CATEGORY_NAMES, Category, Settings, is_valid_category


def _settings(**overrides) -> Settings:
    values = {
        "_env_file": None,
        "google_client_id": "client-id",
        "google_client_secret": "client-secret",
        "groq_api_key": "groq-key",
        "anthropic_api_key": None,
        "classifier_mode": "auto",
        "environment": "development",
    }
    values.update(overrides)
    return Settings(**values)


def test_category_order_and_count():
    assert len(CATEGORY_NAMES) == 16
    assert CATEGORY_NAMES[0] == "Important"
    assert CATEGORY_NAMES[-1] == "Other"
    assert "Error" not in CATEGORY_NAMES


@pytest.mark.parametrize(
    "value, expected",
    [("Work", True), ("Spamming", True), ("work", False), (" Work", False), ("", False), (None, False)],
)
def test_is_valid_category(value, expected):
    assert is_valid_category(value) is expected


def test_defaults():
    settings = _settings()

    assert settings.max_emails == 10
    assert settings.groq_temperature == 0.3
    assert settings.fallback_category == Category.OTHER
    assert settings.categories_list == list(CATEGORY_NAMES)


@pytest.mark.parametrize(
    "mode, key, expected",
    [
        ("auto", None, "single"),
        ("auto", "   ", "single"),
        ("auto", "sk-ant", "tiered"),
        ("single", "sk-ant", "single"),
        ("tiered", None, "tiered"),
    ],
)
def test_effective_classifier_mode(mode, key, expected):
    settings = _settings(classifier_mode=mode, anthropic_api_key=key)
    assert settings.effective_classifier_mode == expected


def test_max_emails_is_bounded():
    with pytest.raises(ValidationError):
        _settings(max_emails=11)


def test_invalid_mode_rejected():
    with pytest.raises(ValidationError):
        _settings(classifier_mode="parallel")


@pytest.mark.parametrize("environment, expected", [("production", True), (" Production ", True), ("development", False)])
def test_is_production(environment, expected):
    assert _settings(environment=environment).is_production is expected
