"""Gmail REST API client for mail operations.

Objective:
    Provide a thin wrapper around the Gmail v1 endpoints used by this project.
    This module centralizes HTTP request construction, bearer authentication
    and Pydantic validation of responses.

Responsibilities:
    - Issue authenticated HTTP requests to Gmail (via :class:`requests`).
    - Resolve the account email address.
    - List message ids by search query and fetch full messages.
    - List and create labels, modify message labels.

High-level call tree:
    - Public API:
        - :meth:`GmailClient.get_profile_email`
        - :meth:`GmailClient.list_messages` -> :class:`src.gmail_labeler.models.MessageSummary`
        - :meth:`GmailClient.get_message` -> :class:`src.gmail_labeler.models.GmailMessage`
        - :meth:`GmailClient.list_labels` -> :class:`src.gmail_labeler.models.Label`
        - :meth:`GmailClient.create_label`
        - :meth:`GmailClient.modify_message`
    - Internal helpers:
        - :meth:`GmailClient._make_request` (auth + error handling)

Gmail endpoints used (relative to ``/gmail/v1/users/me``):
    - ``GET /profile``
    - ``GET /messages?q=...&maxResults=...``
    - ``GET /messages/{id}?format=full``
    - ``POST /messages/{id}/modify``
    - ``GET /labels``
    - ``POST /labels``

Error handling:
    - HTTP errors are logged and raised from :meth:`_make_request`.
    - Callers decide whether a failure is per-message or batch-level.
"""

import logging
from typing import AbstractSet, Optional
from urllib.parse import quote

import requests

from .models import GmailMessage, Label, MessageSummary

logger = logging.getLogger(__name__)


class GmailClient:
    """
    Client for the Gmail REST API, bound to a single OAuth access token.

    The client is state-light: one instance is created per request/batch and
    discarded afterwards.

    Attributes:
        access_token: OAuth bearer token for the user's account.
        timeout: Per-request timeout in seconds.
    """

    GMAIL_BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"

    def __init__(
        self,
        access_token: str,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize the Gmail client.

        Args:
            access_token: OAuth bearer token.
            timeout: Per-request timeout in seconds.
            session: Optional ``requests.Session`` to reuse connections. A
                session passed in stays open on :meth:`close`.
        """
        self.access_token = access_token
        self.timeout = timeout
        self._owns_session = session is None
        self._session = session or requests.Session()

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "GmailClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
        suppress_statuses: Optional[AbstractSet[int]] = None,
    ) -> dict:
        """Make an authenticated request to the Gmail API.

        This helper:
        - Adds the bearer token header.
        - Applies the client timeout.
        - Raises for non-2xx responses.
        - Returns decoded JSON or ``{}`` for empty responses.

        Args:
            method: HTTP method (GET, POST).
            endpoint: API endpoint path relative to ``users/me``.
            params: Query parameters.
            json_data: JSON body data.
            suppress_statuses: Statuses logged at DEBUG instead of ERROR.

        Returns:
            dict: Response JSON data.

        Raises:
            requests.HTTPError: If request fails.
        """
        url = f"{self.GMAIL_BASE_URL}{endpoint}"

        response = self._session.request(
            method=method,
            url=url,
            headers=self._auth_headers(),
            params=params,
            json=json_data,
            timeout=self.timeout,
        )

        if not response.ok:
            suppress = suppress_statuses and response.status_code in suppress_statuses
            if suppress:
                logger.debug(
                    "Gmail API expected non-2xx: %s - %s",
                    response.status_code,
                    response.text,
                )
            else:
                logger.error(
                    f"Gmail API error: {response.status_code} - {response.text}"
                )
            response.raise_for_status()

        if response.status_code == 204 or not response.content:
            return {}

        return response.json()

    def get_profile_email(self) -> str:
        """Return the email address of the authenticated account.

        Returns:
            str: Account email, or an empty string if Gmail omits it.
        """
        response = self._make_request("GET", "/profile")
        return response.get("emailAddress") or ""

    def list_messages(self, query: str, max_results: int = 10) -> list[MessageSummary]:
        """List message ids matching a Gmail search query.

        Only the first page is read; ``max_results`` bounds the batch.

        Args:
            query: Gmail search query, e.g. ``'is:unread -label:"Work"'``.
            max_results: Maximum number of ids to return.

        Returns:
            list[MessageSummary]: Matching messages in Gmail's order.
        """
        params = {"q": query, "maxResults": max_results}

        logger.debug(f"Listing up to {max_results} messages (q={query!r})")
        response = self._make_request("GET", "/messages", params=params)

        summaries = [
            MessageSummary.model_validate(item) for item in response.get("messages", [])
        ]
        logger.debug(f"Listed {len(summaries)} messages")
        return summaries[:max_results]

    def get_message(self, message_id: str) -> GmailMessage:
        """Fetch a full message resource.

        Args:
            message_id: Gmail message id.

        Returns:
            GmailMessage: Message with headers and MIME payload.
        """
        safe_message_id = quote(message_id, safe="")
        response = self._make_request(
            "GET", f"/messages/{safe_message_id}", params={"format": "full"}
        )
        return GmailMessage.model_validate(response)

    def modify_message(
        self,
        message_id: str,
        add_label_ids: Optional[list[str]] = None,
        remove_label_ids: Optional[list[str]] = None,
    ) -> None:
        """Add and remove labels on a message in a single call.

        Args:
            message_id: Gmail message id.
            add_label_ids: Label ids to add.
            remove_label_ids: Label ids to remove (e.g. ``"UNREAD"``).
        """
        safe_message_id = quote(message_id, safe="")
        json_data = {
            "addLabelIds": add_label_ids or [],
            "removeLabelIds": remove_label_ids or [],
        }
        self._make_request(
            "POST", f"/messages/{safe_message_id}/modify", json_data=json_data
        )
        logger.debug(
            f"Modified message {message_id} (+{add_label_ids or []} -{remove_label_ids or []})"
        )

    def list_labels(self) -> list[Label]:
        """List every label of the account (system and user).

        Returns:
            list[Label]: Labels as returned by Gmail.
        """
        response = self._make_request("GET", "/labels")

        labels = []
        for item in response.get("labels", []):
            try:
                labels.append(Label.model_validate(item))
            except Exception as e:
                logger.warning(f"Failed to parse label: {e}")
                continue

        logger.debug(f"Found {len(labels)} labels")
        return labels

    def create_label(self, name: str) -> Label:
        """Create a user label visible in both the label list and message list.

        A 409 conflict (label already exists) is logged at DEBUG and raised so
        the label manager can re-list and resolve it.

        Args:
            name: Label display name.

        Returns:
            Label: Created label.

        Raises:
            requests.HTTPError: If Gmail rejects the request.
        """
        json_data = {
            "name": name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        response = self._make_request(
            "POST", "/labels", json_data=json_data, suppress_statuses={409}
        )
        label = Label.model_validate(response)
        logger.info(f"Created label: {name}")
        return label
