"""Plain-text extraction from Gmail message payloads.

Objective:
    Convert the MIME payload tree returned by the Gmail API into a single
    plain-text string suitable for LLM prompting.

Responsibilities:
    - Decode Gmail's URL-safe base64 part bodies.
    - Prefer a ``text/plain`` part and return it verbatim.
    - Otherwise convert the first ``text/html`` part to text, removing
      non-content elements and collapsing whitespace.
    - Build the bounded body excerpt used in prompts.

High-level call tree:
    - :func:`extract_email_body`
        - :func:`_find_part` (depth-first search through ``parts``)
        - :func:`decode_body_data`
        - :func:`html_to_text` (HTML input)
    - :func:`make_excerpt` (classifier support)

Notes:
    A missing body is not an error: every function here returns an empty
    string rather than raising.
"""

import base64
import binascii
import logging
import re
from typing import Any, Optional, Union

from bs4 import BeautifulSoup

from .models import MessagePart

logger = logging.getLogger(__name__)

# Elements whose content never reaches the extracted text
NON_CONTENT_TAGS = ["style", "script", "head", "title", "meta", "link"]

_WHITESPACE_RE = re.compile(r"\s+")

Payload = Union[MessagePart, dict[str, Any]]


def decode_body_data(data: Optional[str]) -> str:
    """Decode a Gmail ``body.data`` value.

    Gmail uses the URL-safe base64 alphabet and may omit padding. Standard
    alphabet input is accepted too.

    Args:
        data: Base64 string.

    Returns:
        str: UTF-8 text (invalid bytes replaced), or ``""`` if undecodable.
    """
    if not data:
        return ""

    normalized = data.replace("+", "-").replace("/", "_").strip()
    normalized += "=" * (-len(normalized) % 4)

    try:
        raw = base64.urlsafe_b64decode(normalized)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Failed to decode message body: {e}")
        return ""

    return raw.decode("utf-8", errors="replace")


def html_to_text(html_content: str) -> str:
    """Extract visible text from HTML.

    Removes style, script, head, title, meta and link elements, then collapses
    every whitespace run to a single space.

    Args:
        html_content: Raw HTML string.

    Returns:
        str: Plain text without markup.
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")
    for element in soup(NON_CONTENT_TAGS):
        element.decompose()

    text = soup.get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def _as_part(payload: Payload) -> MessagePart:
    if isinstance(payload, MessagePart):
        return payload
    return MessagePart.model_validate(payload)


def _find_part(parts: list[MessagePart], mime_type: str) -> Optional[MessagePart]:
    # Depth-first, in document order; nested multipart containers included.
    for part in parts:
        if part.mime_type == mime_type and part.body.data:
            return part
        if part.parts:
            found = _find_part(part.parts, mime_type)
            if found:
                return found
    return None


def extract_email_body(payload: Optional[Payload]) -> str:
    """Produce the plain-text body of a Gmail message.

    Resolution order:
        1. First ``text/plain`` part anywhere in ``parts`` (verbatim).
        2. First ``text/html`` part anywhere in ``parts`` (converted).
        3. The top-level payload's own body, by its ``mimeType``.

    Args:
        payload: ``message.payload`` as a model or raw dict.

    Returns:
        str: Extracted text, or ``""`` when nothing matches.
    """
    if not payload:
        return ""

    root = _as_part(payload)

    if root.parts:
        plain = _find_part(root.parts, "text/plain")
        if plain:
            return decode_body_data(plain.body.data)

        html = _find_part(root.parts, "text/html")
        if html:
            return html_to_text(decode_body_data(html.body.data))

    if root.body.data:
        if root.mime_type == "text/plain":
            return decode_body_data(root.body.data)
        if root.mime_type == "text/html":
            return html_to_text(decode_body_data(root.body.data))

    return ""


def make_excerpt(text: str, limit: int) -> str:
    """Cap ``text`` to ``limit`` characters, appending ``...`` when cut.

    Args:
        text: Full body text.
        limit: Maximum characters kept.

    Returns:
        str: Excerpt for the prompt.
    """
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
