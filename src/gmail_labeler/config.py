"""Application configuration and settings.

Objective:
    Provide a single source of truth for runtime configuration used across the
    application (Google OAuth, Groq, Anthropic, classification behavior and
    batch processing).

Responsibilities:
    - Define the canonical set of email categories (:class:`Category`).
    - Load environment-driven settings via :class:`Settings` (Pydantic
      BaseSettings).
    - Provide small helpers derived from settings (e.g. which classifier mode
      is effectively active).

High-level call tree:
    - :func:`get_settings` -> returns :class:`Settings`
    - :class:`Settings`
        - :attr:`Settings.categories_list`
        - :attr:`Settings.has_secondary_backend`
        - :attr:`Settings.effective_classifier_mode`
    - :func:`is_valid_category`

Operational notes:
    - ``Settings`` loads from ``.env`` by default via ``pydantic-settings``.
    - Most modules accept a ``Settings`` object explicitly to enable testing;
      the web app falls back to :func:`get_settings` when not provided.
"""

from enum import Enum
from typing import Literal, Optional
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Category reported for messages whose pipeline failed
ERROR_CATEGORY = "Error"

# Hard ceiling on the number of messages handled per batch
MAX_BATCH_SIZE = 10


class Category(str, Enum):
    """Canonical, ordered set of categories used by the system.

    These values are referenced by:
    - the LLM prompt
    - reply validation
    - Gmail label creation and the unread search query

    The Enum values are the user-facing label names.
    """

    IMPORTANT = "Important"
    URGENT = "Urgent"
    WORK = "Work"
    PERSONAL = "Personal"
    FINANCE = "Finance"
    SALES = "Sales"
    PROMOTIONS = "Promotions"
    NEWSLETTER = "Newsletter"
    SOCIAL = "Social"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    HEALTH = "Health"
    EDUCATION = "Education"
    AUTOMATED = "Automated"
    SPAMMING = "Spamming"
    OTHER = "Other"


CATEGORY_NAMES: tuple[str, ...] = tuple(cat.value for cat in Category)


def is_valid_category(value: Optional[str]) -> bool:
    """Return True when ``value`` is exactly one of the category names.

    Matching is case-sensitive and does not trim; callers are responsible for
    normalizing model output before validating it.
    """
    return isinstance(value, str) and value in CATEGORY_NAMES


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The settings model is flat and human-editable via `.env`. Most fields map
    directly to environment variables.

    Attributes:
        google_client_id: Google OAuth client ID.
        google_client_secret: Google OAuth client secret.
        google_redirect_uri: OAuth callback URL registered with Google.
        groq_api_key: Groq API key (primary classification backend).
        groq_model: Groq model to use for classification.
        anthropic_api_key: Optional Anthropic API key (secondary backend).
        anthropic_model: Anthropic model to use for classification.
        classifier_mode: ``auto``, ``tiered`` or ``single``.
        max_emails: Number of messages to process per batch.
        environment: ``development`` or ``production`` (cookie security).
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Google OAuth Configuration
    google_client_id: str = Field(..., description="Google OAuth client ID")
    google_client_secret: str = Field(..., description="Google OAuth client secret")
    google_redirect_uri: str = Field(
        default="http://localhost:8000/api/auth/callback",
        description="OAuth redirect URI registered in Google Cloud Console",
    )

    # Groq Configuration (primary backend)
    groq_api_key: str = Field(..., description="Groq API key")
    groq_model: str = Field(
        default="llama-3.1-8b-instant", description="Groq model name"
    )
    groq_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the primary backend",
    )
    groq_cost_per_million_tokens: float = Field(
        default=1.25,
        ge=0.0,
        description="Flat USD price per million tokens (input and output combined)",
    )

    # Anthropic Configuration (secondary backend)
    anthropic_api_key: Optional[str] = Field(
        default=None,
        description="Anthropic API key. When omitted the secondary backend is disabled.",
    )
    anthropic_model: str = Field(
        default="claude-3-haiku-20240307", description="Anthropic model name"
    )
    anthropic_max_tokens: int = Field(
        default=20, ge=1, description="Maximum tokens in the Anthropic reply"
    )
    anthropic_input_cost_per_million: float = Field(
        default=0.80, ge=0.0, description="USD price per million input tokens"
    )
    anthropic_output_cost_per_million: float = Field(
        default=4.00, ge=0.0, description="USD price per million output tokens"
    )

    # Classification Settings
    classifier_mode: Literal["auto", "tiered", "single"] = Field(
        default="auto",
        description=(
            "'tiered' tries Anthropic then Groq once each and reports usage. "
            "'single' retries Groq without usage accounting. "
            "'auto' picks 'tiered' when an Anthropic key is configured."
        ),
    )
    classifier_max_retries: int = Field(
        default=2, ge=0, le=5, description="Additional primary attempts in single mode"
    )
    classifier_retry_delay_seconds: float = Field(
        default=1.0, ge=0.0, description="Fixed delay between single-mode attempts"
    )
    body_excerpt_chars: int = Field(
        default=500, ge=1, description="Body characters embedded in the tiered prompt"
    )
    single_mode_body_excerpt_chars: int = Field(
        default=1000, ge=1, description="Body characters embedded in the single-mode prompt"
    )
    fallback_category: Category = Field(
        default=Category.OTHER, description="Static category when every backend fails"
    )

    # Processing Settings
    max_emails: int = Field(
        default=MAX_BATCH_SIZE,
        ge=1,
        le=MAX_BATCH_SIZE,
        description="Messages per batch",
    )
    environment: str = Field(default="development", description="Deployment environment")
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def categories_list(self) -> list[str]:
        """
        Get list of all valid category names.

        This list is used when building the prompt and when deciding which
        account labels are managed by this application.

        Returns:
            list[str]: List of category names.
        """
        return list(CATEGORY_NAMES)

    @property
    def has_secondary_backend(self) -> bool:
        """Whether an Anthropic key is configured.

        Returns:
            bool: True if the secondary backend can be used.
        """
        return bool((self.anthropic_api_key or "").strip())

    @property
    def effective_classifier_mode(self) -> str:
        """Resolve ``auto`` into a concrete classifier mode.

        Returns:
            str: ``"tiered"`` or ``"single"``.
        """
        if self.classifier_mode == "auto":
            return "tiered" if self.has_secondary_backend else "single"
        return self.classifier_mode

    @property
    def is_production(self) -> bool:
        """Whether cookies should be marked ``Secure``."""
        return self.environment.strip().lower() == "production"


def get_settings() -> Settings:
    """
    Load and return application settings.

    This helper is a convenience for production code. For tests, you typically
    construct a :class:`Settings` instance directly or pass a mocked settings
    object.

    Returns:
        Settings: Application settings instance.

    Raises:
        ValidationError: If required environment variables are missing.
    """
    return Settings()
