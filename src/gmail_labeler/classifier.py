"""AI-assisted email classification.

Objective:
    Turn a message's (subject, sender, body) into a
    :class:`src.gmail_labeler.models.ClassificationOutcome` whose category is
    always one of :class:`src.gmail_labeler.config.Category`.

Core strategy:
    1. Cap the body to a short excerpt.
    2. Build one instruction embedding the category list, a rationale per
       category and the message fields.
    3. Ask each configured backend in order; the first valid category wins.
    4. When every backend is exhausted, return the static default category
       tagged ``fallback`` with zero usage.

Modes (see :func:`build_classifier`):
    - ``tiered``: Anthropic (if configured) then Groq, one call each, with
      token and cost accounting.
    - ``single``: Groq only, retried with a fixed delay, without accounting.

High-level call tree:
    - :func:`build_classifier` -> :class:`EmailClassifier`
    - :meth:`EmailClassifier.classify`
        - :func:`src.gmail_labeler.extractor.make_excerpt`
        - :func:`build_prompt`
        - :meth:`src.gmail_labeler.backends.ClassifierBackend.classify` (each)
"""

import logging
from typing import Sequence

from anthropic import Anthropic
from groq import Groq

from .backends import AnthropicBackend, ClassifierBackend, GroqBackend, RetryingBackend
from .config import CATEGORY_NAMES, Category, Settings, is_valid_category
from .extractor import make_excerpt
from .models import Backend, ClassificationOutcome

logger = logging.getLogger(__name__)

CATEGORY_DESCRIPTIONS: dict[Category, str] = {
    Category.IMPORTANT: "Critical emails requiring immediate attention (work deadlines, personal emergencies)",
    Category.URGENT: "Time-sensitive matters that need a quick response",
    Category.WORK: "Professional communications from colleagues, clients, or work-related services",
    Category.PERSONAL: "Messages from friends, family, or personal contacts",
    Category.FINANCE: "Banking, bills, financial statements, investment updates",
    Category.SALES: "Marketing emails trying to sell products or services",
    Category.PROMOTIONS: "Discounts, deals, promotional offers",
    Category.NEWSLETTER: "Regular updates from subscribed services",
    Category.SOCIAL: "Social media notifications, event invitations",
    Category.SHOPPING: "Order confirmations, shipping updates, e-commerce",
    Category.ENTERTAINMENT: "Movies, games, streaming services",
    Category.HEALTH: "Medical appointments, health insurance, fitness",
    Category.EDUCATION: "Course updates, academic communications",
    Category.AUTOMATED: "System notifications, confirmations, receipts",
    Category.SPAMMING: "Unwanted, suspicious, or irrelevant emails",
    Category.OTHER: "Anything not covered by the categories above",
}


def build_prompt(subject: str, sender: str, body_excerpt: str) -> str:
    """Build the classification instruction for one message.

    Args:
        subject: Message subject.
        sender: Raw ``From`` header.
        body_excerpt: Already-truncated body text.

    Returns:
        str: Prompt text requesting ``{"category": "<name>"}``.
    """
    category_lines = "\n".join(
        f'- "{category.value}": {description}'
        for category, description in CATEGORY_DESCRIPTIONS.items()
    )

    return f"""Analyze this email and classify it into exactly one of the following categories: [{", ".join(CATEGORY_NAMES)}].

Consider these signals to tell important mail apart from automated or sales mail:
1. Sender address domain (personal vs corporate vs marketing platforms)
2. Subject line patterns (urgency, personal names vs generic marketing)
3. Body content (personalized vs generic, action required vs informational)
4. Language (formal vs casual, specific vs generic)

Categories:
{category_lines}

Email Details:
From: {sender}
Subject: {subject}
Body Preview: {body_excerpt}

Return only this JSON and nothing else: {{"category": "category name"}}"""


class EmailClassifier:
    """
    Classify messages by walking a chain of backends.

    The classifier itself holds no client state; backends are constructed
    outside and injected, which keeps tests free of network calls.

    Attributes:
        backends: Backends tried in order.
        body_excerpt_chars: Body characters embedded in the prompt.
        fallback_category: Category returned when every backend fails.
    """

    def __init__(
        self,
        backends: Sequence[ClassifierBackend],
        body_excerpt_chars: int = 500,
        fallback_category: str = Category.OTHER.value,
    ) -> None:
        if not is_valid_category(fallback_category):
            raise ValueError(f"Fallback category is not a known category: {fallback_category!r}")

        self.backends = list(backends)
        self.body_excerpt_chars = body_excerpt_chars
        self.fallback_category = fallback_category

    def classify(self, subject: str, sender: str, body: str) -> ClassificationOutcome:
        """
        Classify a single message.

        Never raises for backend failures: the static default is the floor.

        Args:
            subject: Message subject.
            sender: Raw ``From`` header.
            body: Extracted plain-text body.

        Returns:
            ClassificationOutcome: Category, backend tag and usage.
        """
        excerpt = make_excerpt(body or "", self.body_excerpt_chars)
        prompt = build_prompt(subject, sender, excerpt)

        for backend in self.backends:
            outcome = backend.classify(prompt)
            if outcome is not None and is_valid_category(outcome.category):
                logger.info(
                    f"Classified '{subject[:50]}' as {outcome.category} ({outcome.backend.value})"
                )
                return outcome

        logger.warning(
            "All classification backends exhausted; falling back to %s (subject=%s)",
            self.fallback_category,
            subject[:50],
        )
        return ClassificationOutcome(
            category=self.fallback_category,
            backend=Backend.FALLBACK,
            tokens=0,
            cost=0.0,
        )

    def close(self) -> None:
        """Close every backend's SDK client."""
        for backend in self.backends:
            backend.close()


def build_classifier(settings: Settings) -> EmailClassifier:
    """Construct the classifier and its backends from settings.

    Args:
        settings: Application settings with API keys and mode.

    Returns:
        EmailClassifier: Ready-to-use classifier.
    """
    mode = settings.effective_classifier_mode
    fallback = Category(settings.fallback_category).value
    groq_client = Groq(api_key=settings.groq_api_key)

    if mode == "single":
        primary = GroqBackend(
            groq_client,
            model=settings.groq_model,
            temperature=settings.groq_temperature,
            track_usage=False,
        )
        logger.info("Classifier mode: single (primary backend with retries)")
        return EmailClassifier(
            [
                RetryingBackend(
                    primary,
                    max_retries=settings.classifier_max_retries,
                    delay_seconds=settings.classifier_retry_delay_seconds,
                )
            ],
            body_excerpt_chars=settings.single_mode_body_excerpt_chars,
            fallback_category=fallback,
        )

    backends: list[ClassifierBackend] = []
    if settings.has_secondary_backend:
        backends.append(
            AnthropicBackend(
                Anthropic(api_key=settings.anthropic_api_key),
                model=settings.anthropic_model,
                max_tokens=settings.anthropic_max_tokens,
                input_cost_per_million=settings.anthropic_input_cost_per_million,
                output_cost_per_million=settings.anthropic_output_cost_per_million,
            )
        )
    backends.append(
        GroqBackend(
            groq_client,
            model=settings.groq_model,
            temperature=settings.groq_temperature,
            cost_per_million_tokens=settings.groq_cost_per_million_tokens,
        )
    )
    logger.info(f"Classifier mode: tiered ({len(backends)} backends)")
    return EmailClassifier(
        backends,
        body_excerpt_chars=settings.body_excerpt_chars,
        fallback_category=fallback,
    )
