"""
Shared fixtures: an in-memory Gmail account and message payload builders.
"""

import base64
import re
from typing import Optional

import pytest
import requests
from unittest.mock import MagicMock

from src.gmail_labeler.models import GmailMessage, Label, MessageSummary


def b64(text: str) -> str:
    """Encode text the way Gmail does (URL-safe, no padding)."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def plain_payload(text: str, subject: str = "Hello", sender: str = "alice@example.com") -> dict:
    """Build a single-part text/plain payload with Subject/From headers."""
    return {
        "mimeType": "text/plain",
        "headers": [
            {"name": "Subject", "value": subject},
            {"name": "From", "value": sender},
        ],
        "body": {"data": b64(text), "size": len(text)},
    }


def http_error(status_code: int) -> requests.HTTPError:
    """Create an HTTPError carrying a response with ``status_code``."""
    return requests.HTTPError(response=MagicMock(status_code=status_code))


class FakeGmailAccount:
    """In-memory stand-in for :class:`GmailClient`.

    Understands the ``is:unread -label:"Name"`` queries built by the label
    manager and honors ``max_results``.
    """

    def __init__(self, email: str = "me@example.com") -> None:
        self.email = email
        self.labels: list[Label] = [
            Label(id="INBOX", name="INBOX", type="system"),
            Label(id="UNREAD", name="UNREAD", type="system"),
        ]
        self.messages: dict[str, dict] = {}
        self.order: list[str] = []
        self.created_labels: list[str] = []
        self.fail_create_for: set[str] = set()
        self.queries: list[str] = []

    def add_message(
        self,
        message_id: str,
        text: str = "Body",
        subject: Optional[str] = None,
        unread: bool = True,
        label_ids: Optional[list[str]] = None,
    ) -> None:
        labels = set(label_ids or []) | {"INBOX"}
        if unread:
            labels.add("UNREAD")
        self.messages[message_id] = {
            "labels": labels,
            "payload": plain_payload(text, subject=subject or f"Subject {message_id}"),
        }
        self.order.append(message_id)

    def add_label(self, label_id: str, name: str) -> None:
        self.labels.append(Label(id=label_id, name=name))

    def label_names(self, message_id: str) -> set[str]:
        by_id = {label.id: label.name for label in self.labels}
        return {by_id.get(label_id, label_id) for label_id in self.messages[message_id]["labels"]}

    # GmailClient interface

    def get_profile_email(self) -> str:
        return self.email

    def list_messages(self, query: str, max_results: int = 10) -> list[MessageSummary]:
        self.queries.append(query)
        excluded = set(re.findall(r'-label:"([^"]+)"', query))
        matches = []
        for message_id in self.order:
            if "is:unread" in query and "UNREAD" not in self.messages[message_id]["labels"]:
                continue
            if self.label_names(message_id) & excluded:
                continue
            matches.append(MessageSummary(id=message_id))
        return matches[:max_results]

    def get_message(self, message_id: str) -> GmailMessage:
        if message_id not in self.messages:
            raise http_error(404)
        stored = self.messages[message_id]
        return GmailMessage.model_validate(
            {
                "id": message_id,
                "labelIds": sorted(stored["labels"]),
                "payload": stored["payload"],
            }
        )

    def modify_message(self, message_id, add_label_ids=None, remove_label_ids=None) -> None:
        labels = self.messages[message_id]["labels"]
        labels.update(add_label_ids or [])
        labels.difference_update(remove_label_ids or [])

    def list_labels(self) -> list[Label]:
        return list(self.labels)

    def create_label(self, name: str) -> Label:
        if name in self.fail_create_for:
            raise http_error(500)
        if any(label.name == name for label in self.labels):
            raise http_error(409)
        label = Label(id=f"Label_{len(self.created_labels) + 1}", name=name)
        self.labels.append(label)
        self.created_labels.append(name)
        return label


@pytest.fixture
def fake_account():
    """An empty fake Gmail account."""
    return FakeGmailAccount()
