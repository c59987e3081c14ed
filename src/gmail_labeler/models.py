"""Pydantic data models used across the application.

Objective:
    Centralize all strongly-typed data structures representing:
    - Gmail message resources returned by the Gmail REST API
    - Gmail labels
    - Classification outcomes returned by the LLM backends
    - Per-message processing results produced by the inbox processor

Design notes:
    - These models use Pydantic aliases to match Gmail field names
      (e.g. ``mimeType`` -> :attr:`MessagePart.mime_type`).
    - ``model_config = ConfigDict(populate_by_name=True)`` is used to allow
      constructing models with either alias names or pythonic field names.

High-level structure:
    - Gmail primitives:
        - :class:`MessageHeader`
        - :class:`MessagePartBody`
        - :class:`MessagePart`
        - :class:`MessageSummary`
        - :class:`GmailMessage`
        - :class:`Label`
    - Classification primitives:
        - :class:`Backend`
        - :class:`ClassificationOutcome`
        - :class:`ProcessingResult`
    - OAuth primitives:
        - :class:`OAuthTokens`
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageHeader(BaseModel):
    """Single RFC 2822 header as returned by Gmail (``{"name", "value"}``)."""

    name: str = ""
    value: str = ""


class MessagePartBody(BaseModel):
    """Body of a MIME part.

    ``data`` holds URL-safe base64 content. It is absent for container parts
    and for attachments that must be fetched separately.
    """

    data: Optional[str] = None
    size: int = 0
    attachment_id: Optional[str] = Field(default=None, alias="attachmentId")

    model_config = ConfigDict(populate_by_name=True)


class MessagePart(BaseModel):
    """A node of the Gmail MIME payload tree."""

    part_id: str = Field(default="", alias="partId")
    mime_type: str = Field(default="", alias="mimeType")
    filename: str = ""
    headers: list[MessageHeader] = Field(default_factory=list)
    body: MessagePartBody = Field(default_factory=MessagePartBody)
    parts: Optional[list["MessagePart"]] = None

    model_config = ConfigDict(populate_by_name=True)


class MessageSummary(BaseModel):
    """Entry of a ``messages.list`` response. Only the id is meaningful."""

    id: str
    thread_id: Optional[str] = Field(default=None, alias="threadId")

    model_config = ConfigDict(populate_by_name=True)


class GmailMessage(BaseModel):
    """
    Message resource from the Gmail API (``format=full``).

    Attributes:
        id: Unique message ID.
        thread_id: Thread ID.
        label_ids: Labels currently applied to the message.
        snippet: Short preview generated by Gmail.
        payload: Root of the MIME payload tree.
    """

    id: str
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    label_ids: list[str] = Field(default_factory=list, alias="labelIds")
    snippet: str = ""
    payload: Optional[MessagePart] = None

    model_config = ConfigDict(populate_by_name=True)

    def header(self, name: str) -> Optional[str]:
        """Return the first top-level header value whose name matches exactly.

        Args:
            name: Header name, e.g. ``"Subject"``.

        Returns:
            Optional[str]: Header value, or None when missing or empty.
        """
        if not self.payload:
            return None
        for header in self.payload.headers:
            if header.name == name:
                return header.value or None
        return None

    @property
    def subject(self) -> str:
        """Subject line, ``"No Subject"`` when absent."""
        return self.header("Subject") or "No Subject"

    @property
    def sender(self) -> str:
        """Raw ``From`` header, ``"Unknown Sender"`` when absent."""
        return self.header("From") or "Unknown Sender"


class Label(BaseModel):
    """
    Gmail label.

    Attributes:
        id: Provider-assigned label ID.
        name: Display name. Managed labels use a category name.
        type: ``system`` or ``user``.
    """

    id: str
    name: str
    type: str = "user"
    label_list_visibility: Optional[str] = Field(default=None, alias="labelListVisibility")
    message_list_visibility: Optional[str] = Field(
        default=None, alias="messageListVisibility"
    )

    model_config = ConfigDict(populate_by_name=True)


class Backend(str, Enum):
    """Which classification service produced a category."""

    PRIMARY = "primary-model"
    SECONDARY = "secondary-model"
    FALLBACK = "fallback"


class ClassificationOutcome(BaseModel):
    """
    Result of classifying one message.

    ``tokens`` and ``cost`` are ``None`` when the backend ran without usage
    accounting (single mode).

    Attributes:
        category: Category name.
        backend: Backend that produced the category.
        tokens: Tokens reported by the backend.
        cost: Estimated USD cost.
    """

    category: str
    backend: Backend
    tokens: Optional[int] = Field(default=None, ge=0)
    cost: Optional[float] = Field(default=None, ge=0.0)

    model_config = ConfigDict(frozen=True)

    @property
    def is_paid(self) -> bool:
        """True when a paid backend produced the category with usage figures."""
        return self.backend != Backend.FALLBACK and self.tokens is not None


class ProcessingResult(BaseModel):
    """
    Result of processing a single message.

    This is the primary output type returned to the CLI and web API.

    Attributes:
        id: Gmail message ID.
        subject: Message subject.
        category: Assigned category, or ``"Error"``.
        labeled: Whether the label was applied.
        model: Backend tag that produced the category.
        tokens: Tokens used (paid backends only).
        cost: Estimated USD cost (paid backends only).
        error: Error message if processing failed.
    """

    id: str
    subject: str
    category: str
    labeled: bool = True
    model: Optional[Backend] = None
    tokens: Optional[int] = None
    cost: Optional[float] = None
    error: Optional[str] = None


class OAuthTokens(BaseModel):
    """Token response of the Google OAuth token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    token_type: str = "Bearer"
