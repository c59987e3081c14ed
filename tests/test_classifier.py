"""
Tests for the classifier module.
"""

import pytest
from unittest.mock import MagicMock, patch

from src.gmail_labeler.backends import AnthropicBackend, GroqBackend, RetryingBackend
from src.gmail_labeler.classifier import EmailClassifier, build_classifier, build_prompt
from src.gmail_labeler.config import CATEGORY_NAMES, Settings
from src.gmail_labeler.models import Backend, ClassificationOutcome


def _backend(*outcomes, tag=Backend.PRIMARY):
    backend = MagicMock()
    backend.tag = tag
    backend.classify.side_effect = list(outcomes)
    return backend


@pytest.fixture
def settings():
    """Real settings object with test keys (no .env involved)."""
    return Settings(
        _env_file=None,
        google_client_id="client-id",
        google_client_secret="client-secret",
        groq_api_key="groq-key",
        anthropic_api_key=None,
        classifier_mode="auto",
        classifier_retry_delay_seconds=0,
    )


class TestBuildPrompt:
    """Tests for prompt construction."""

    def test_prompt_lists_every_category_and_fields(self):
        prompt = build_prompt("Invoice #42", "billing@shop.example", "Your order shipped")

        for category in CATEGORY_NAMES:
            assert f'"{category}"' in prompt
        assert "From: billing@shop.example" in prompt
        assert "Subject: Invoice #42" in prompt
        assert "Body Preview: Your order shipped" in prompt
        assert '{"category": "category name"}' in prompt


class TestEmailClassifier:
    """Tests for the backend chain."""

    def test_first_valid_outcome_wins(self):
        """The secondary backend answers first; primary is not called."""
        secondary = _backend(
            ClassificationOutcome(category="Work", backend=Backend.SECONDARY, tokens=10, cost=0.1),
            tag=Backend.SECONDARY,
        )
        primary = _backend()

        outcome = EmailClassifier([secondary, primary]).classify("s", "f", "b")

        assert outcome.category == "Work"
        assert outcome.backend == Backend.SECONDARY
        primary.classify.assert_not_called()

    def test_falls_through_to_primary(self):
        """A failed secondary falls through to the primary backend."""
        secondary = _backend(None, tag=Backend.SECONDARY)
        primary = _backend(ClassificationOutcome(category="Finance", backend=Backend.PRIMARY, tokens=5, cost=0.0))

        outcome = EmailClassifier([secondary, primary]).classify("s", "f", "b")

        assert outcome.category == "Finance"
        assert outcome.backend == Backend.PRIMARY

    def test_exhausted_chain_returns_static_fallback(self):
        """Every backend failing yields Other/fallback with zero usage."""
        outcome = EmailClassifier([_backend(None), _backend(None)]).classify("s", "f", "b")

        assert outcome == ClassificationOutcome(
            category="Other", backend=Backend.FALLBACK, tokens=0, cost=0.0
        )

    def test_no_backends_returns_fallback(self):
        outcome = EmailClassifier([], fallback_category="Automated").classify("s", "f", "")
        assert outcome.category == "Automated"
        assert outcome.backend == Backend.FALLBACK

    def test_body_is_truncated_in_prompt(self):
        """Only the first N body characters reach the backends, marked with an ellipsis."""
        primary = _backend(None)
        body = "x" * 40 + "TAIL"

        EmailClassifier([primary], body_excerpt_chars=40).classify("s", "f", body)

        prompt = primary.classify.call_args.args[0]
        assert "x" * 40 + "..." in prompt
        assert "TAIL" not in prompt

    def test_invalid_fallback_category_rejected(self):
        with pytest.raises(ValueError):
            EmailClassifier([], fallback_category="Misc")

    def test_close_closes_every_backend(self):
        backends = [_backend(), _backend(tag=Backend.SECONDARY)]

        EmailClassifier(backends).close()

        for backend in backends:
            backend.close.assert_called_once_with()


class TestClassifierReplies:
    """End-to-end through real backends with mocked SDK clients."""

    def test_valid_reply_from_primary(self):
        client = MagicMock()
        client.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content="Newsletter"))],
            usage=MagicMock(total_tokens=321),
        )
        classifier = EmailClassifier([GroqBackend(client, model="llama")])

        outcome = classifier.classify("Weekly digest", "news@example.com", "Top stories")

        assert outcome.category == "Newsletter"
        assert outcome.backend == Backend.PRIMARY
        assert outcome.tokens == 321

    @pytest.mark.parametrize("reply", ["", "Random", "newsletter"])
    def test_invalid_reply_exhausts_to_fallback(self, reply):
        client = MagicMock()
        client.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content=reply))],
            usage=MagicMock(total_tokens=10),
        )
        classifier = EmailClassifier(
            [RetryingBackend(GroqBackend(client, model="llama"), max_retries=2, sleep=MagicMock())]
        )

        outcome = classifier.classify("s", "f", "b")

        assert outcome.category == "Other"
        assert outcome.backend == Backend.FALLBACK
        assert outcome.tokens == 0
        assert outcome.cost == 0.0
        assert client.chat.completions.create.call_count == 3


class TestBuildClassifier:
    """Tests for mode selection."""

    def test_single_mode_without_secondary_key(self, settings):
        with patch("src.gmail_labeler.classifier.Groq") as groq_cls, patch(
            "src.gmail_labeler.classifier.Anthropic"
        ) as anthropic_cls:
            classifier = build_classifier(settings)

        assert settings.effective_classifier_mode == "single"
        assert len(classifier.backends) == 1
        retrying = classifier.backends[0]
        assert isinstance(retrying, RetryingBackend)
        assert retrying.max_retries == 2
        assert isinstance(retrying.inner, GroqBackend)
        assert retrying.inner.track_usage is False
        assert classifier.body_excerpt_chars == 1000
        groq_cls.assert_called_once_with(api_key="groq-key")
        anthropic_cls.assert_not_called()

    def test_tiered_mode_with_secondary_key(self, settings):
        settings.anthropic_api_key = "anthropic-key"

        with patch("src.gmail_labeler.classifier.Groq"), patch(
            "src.gmail_labeler.classifier.Anthropic"
        ) as anthropic_cls:
            classifier = build_classifier(settings)

        assert settings.effective_classifier_mode == "tiered"
        assert [type(b) for b in classifier.backends] == [AnthropicBackend, GroqBackend]
        assert classifier.backends[1].track_usage is True
        assert classifier.body_excerpt_chars == 500
        anthropic_cls.assert_called_once_with(api_key="anthropic-key")

    def test_forced_tiered_mode_without_secondary_key(self, settings):
        settings.classifier_mode = "tiered"

        with patch("src.gmail_labeler.classifier.Groq"), patch(
            "src.gmail_labeler.classifier.Anthropic"
        ):
            classifier = build_classifier(settings)

        assert [type(b) for b in classifier.backends] == [GroqBackend]
