"""LLM classification backends.

Objective:
    Wrap each classification service behind the same small interface so the
    classifier can try them in sequence (chain of responsibility).

Contract:
    ``backend.classify(prompt)`` returns a
    :class:`src.gmail_labeler.models.ClassificationOutcome` when the service
    replied with a valid category, and ``None`` when it is exhausted for this
    prompt (transport error, empty reply, unparseable reply, unknown
    category). Backends never raise for those conditions; they log and
    return ``None``.

High-level call tree:
    - :class:`AnthropicBackend` (secondary, input/output token pricing)
    - :class:`GroqBackend` (primary, flat per-token pricing)
    - :class:`RetryingBackend` (bounded retries with a fixed delay)
    - :func:`parse_category`
        - :func:`extract_first_json_object`
"""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .config import is_valid_category
from .models import Backend, ClassificationOutcome

logger = logging.getLogger(__name__)

TOKENS_PER_MILLION = 1_000_000


def _strip_code_fences(text: str) -> str:
    # Remove ```json ... ``` and generic ``` ... ``` wrappers.
    return re.sub(r"```(?:json)?\s*|```", "", text, flags=re.IGNORECASE)


def extract_first_json_object(response_text: str) -> Optional[dict]:
    """Decode the first JSON object found in a model reply.

    Models are asked for raw JSON but sometimes wrap it in Markdown fences or
    prose. Scanning starts at each ``{`` until one decodes.

    Args:
        response_text: Raw model reply.

    Returns:
        Optional[dict]: Decoded object, or None when no object decodes.
    """
    if not response_text:
        return None

    cleaned = _strip_code_fences(response_text)

    decoder = json.JSONDecoder()
    start = cleaned.find("{")
    while start != -1:
        try:
            data, _ = decoder.raw_decode(cleaned[start:])
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass
        start = cleaned.find("{", start + 1)

    return None


def parse_category(response_text: Optional[str]) -> Optional[str]:
    """Read a category from a model reply.

    Accepted shapes:
        - a bare category name (``Work``), surrounding whitespace ignored
        - a JSON object with a ``category`` field (``{"category": "Work"}``)

    The value must match a category name exactly. Both backends accept
    both shapes, including a JSON object wrapped in fences or prose, because
    the prompt asks for JSON while small models often answer with the bare
    name.

    Args:
        response_text: Raw model reply.

    Returns:
        Optional[str]: Category name, or None if the reply is unusable.
    """
    if not response_text:
        return None

    stripped = response_text.strip()
    if is_valid_category(stripped):
        return stripped

    data = extract_first_json_object(stripped)
    if data is None:
        return None

    category = data.get("category")
    if is_valid_category(category):
        return category
    return None


class ClassifierBackend(ABC):
    """A classification service that may or may not produce a category."""

    tag: Backend

    @abstractmethod
    def classify(self, prompt: str) -> Optional[ClassificationOutcome]:
        """Return an outcome, or None when this backend is exhausted."""

    def close(self) -> None:
        """Release the underlying SDK client."""
        client = getattr(self, "client", None)
        if client is not None:
            client.close()


class AnthropicBackend(ClassifierBackend):
    """
    Secondary backend using the Anthropic Messages API.

    Cost uses separate input and output rates.

    Attributes:
        client: ``anthropic.Anthropic`` client.
        model: Model name.
    """

    tag = Backend.SECONDARY

    def __init__(
        self,
        client: Any,
        model: str,
        max_tokens: int = 20,
        input_cost_per_million: float = 0.80,
        output_cost_per_million: float = 4.00,
    ) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.input_cost_per_million = input_cost_per_million
        self.output_cost_per_million = output_cost_per_million

    def classify(self, prompt: str) -> Optional[ClassificationOutcome]:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            logger.warning(f"Anthropic API error: {e}")
            return None

        text = "".join(
            getattr(block, "text", "")
            for block in (response.content or [])
            if getattr(block, "type", None) == "text"
        )
        category = parse_category(text)
        if category is None:
            logger.warning(
                "Anthropic reply unusable (response_text=%s)", text[:200].replace("\n", "\\n")
            )
            return None

        usage = getattr(response, "usage", None)
        input_tokens = int(getattr(usage, "input_tokens", 0) or 0)
        output_tokens = int(getattr(usage, "output_tokens", 0) or 0)
        cost = (
            input_tokens * self.input_cost_per_million
            + output_tokens * self.output_cost_per_million
        ) / TOKENS_PER_MILLION

        return ClassificationOutcome(
            category=category,
            backend=self.tag,
            tokens=input_tokens + output_tokens,
            cost=cost,
        )


class GroqBackend(ClassifierBackend):
    """
    Primary backend using Groq chat completions.

    Called at a low temperature to keep replies stable. When
    ``track_usage`` is False the outcome carries no tokens or cost.

    Attributes:
        client: ``groq.Groq`` client.
        model: Model name.
    """

    tag = Backend.PRIMARY

    def __init__(
        self,
        client: Any,
        model: str,
        temperature: float = 0.3,
        cost_per_million_tokens: float = 1.25,
        track_usage: bool = True,
    ) -> None:
        self.client = client
        self.model = model
        self.temperature = temperature
        self.cost_per_million_tokens = cost_per_million_tokens
        self.track_usage = track_usage

    def classify(self, prompt: str) -> Optional[ClassificationOutcome]:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
            )
            response_text = (response.choices[0].message.content or "").strip()
        except Exception as e:
            logger.warning(f"Groq API error: {e}")
            return None

        logger.debug(f"Groq response: {response_text}")

        category = parse_category(response_text)
        if category is None:
            logger.warning(
                "Groq reply unusable (response_text=%s)",
                response_text[:200].replace("\n", "\\n"),
            )
            return None

        if not self.track_usage:
            return ClassificationOutcome(category=category, backend=self.tag)

        usage = getattr(response, "usage", None)
        total_tokens = int(getattr(usage, "total_tokens", 0) or 0)
        return ClassificationOutcome(
            category=category,
            backend=self.tag,
            tokens=total_tokens,
            cost=total_tokens * self.cost_per_million_tokens / TOKENS_PER_MILLION,
        )


class RetryingBackend(ClassifierBackend):
    """Retry an inner backend a bounded number of times.

    Total attempts are ``1 + max_retries`` with a fixed ``delay_seconds``
    pause between attempts.
    """

    def __init__(
        self,
        inner: ClassifierBackend,
        max_retries: int = 2,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inner = inner
        self.max_retries = max_retries
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    @property
    def tag(self) -> Backend:  # type: ignore[override]
        return self.inner.tag

    def close(self) -> None:
        self.inner.close()

    def classify(self, prompt: str) -> Optional[ClassificationOutcome]:
        attempts = 1 + self.max_retries
        for attempt in range(1, attempts + 1):
            outcome = self.inner.classify(prompt)
            if outcome is not None:
                return outcome

            if attempt < attempts:
                logger.info(
                    "Classification attempt %s/%s failed; retrying in %ss",
                    attempt,
                    attempts,
                    self.delay_seconds,
                )
                self._sleep(self.delay_seconds)

        logger.warning(f"Classification failed after {attempts} attempts")
        return None
