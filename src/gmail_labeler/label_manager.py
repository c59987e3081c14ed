"""Gmail label management.

Objective:
    Map a category name to a Gmail label id, creating the label when the
    account does not have it yet, and build the search query that skips
    messages already carrying a managed label.

Responsibilities:
    - Resolve a label id by exact name (re-listing labels every call).
    - Create missing category labels.
    - Report which category labels already exist on the account.

High-level call tree:
    - :class:`LabelManager`
        - :meth:`ensure_label`
            - :meth:`GmailClient.list_labels`
            - :meth:`GmailClient.create_label`
        - :meth:`existing_category_labels`
    - :func:`build_unread_query`

Operational notes:
    - Nothing is cached between calls: labels can change between messages of
      a batch and the extra list call is cheap.
    - Label creation is opportunistic; when Gmail answers 409 (created in the
      meantime) we list again and return the existing id.
"""

import logging
from typing import Iterable, Optional

import requests

from .config import CATEGORY_NAMES
from .gmail_client import GmailClient
from .models import Label

logger = logging.getLogger(__name__)

UNREAD_QUERY = "is:unread"


def build_unread_query(label_names: Iterable[str]) -> str:
    """Build a Gmail search query for unread messages without the given labels.

    Names are double-quoted so multi-word labels work. Category names never
    contain quotes, so no further escaping is applied.

    Args:
        label_names: Label names to exclude.

    Returns:
        str: Query such as ``is:unread -label:"Work" -label:"Finance"``.
    """
    exclusions = [f'-label:"{name}"' for name in label_names]
    return " ".join([UNREAD_QUERY, *exclusions])


class LabelManager:
    """
    Manages Gmail labels for classification results.

    Attributes:
        gmail: Gmail client for label operations.
    """

    def __init__(self, gmail: GmailClient) -> None:
        """
        Initialize label manager.

        Args:
            gmail: Gmail client bound to the user's access token.
        """
        self.gmail = gmail

    def find_label(self, name: str) -> Optional[Label]:
        """
        Find a label by exact (case-sensitive) name.

        Args:
            name: Label display name.

        Returns:
            Optional[Label]: Matching label, or None.
        """
        for label in self.gmail.list_labels():
            if label.name == name:
                return label
        return None

    def ensure_label(self, name: str) -> str:
        """
        Return the id of the label named ``name``, creating it if absent.

        Calling this twice for an existing label returns the same id and
        creates nothing.

        Args:
            name: Label name (a category name).

        Returns:
            str: Gmail label id.

        Raises:
            requests.HTTPError: If listing or creation fails.
        """
        existing = self.find_label(name)
        if existing:
            return existing.id

        logger.debug(f"Creating label: {name}")
        try:
            return self.gmail.create_label(name).id
        except requests.HTTPError as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            if status_code != 409:
                raise

            # Reason: 409 means another request created the label after our list call.
            logger.debug(f"Label already exists, re-listing: {name}")
            resolved = self.find_label(name)
            if resolved:
                return resolved.id
            raise

    def existing_category_labels(self) -> list[str]:
        """
        List names of category labels that already exist on the account.

        Failures are logged and treated as "no labels" so that a batch can
        still run (without exclusions).

        Returns:
            list[str]: Category names present as labels, in account order.
        """
        try:
            labels = self.gmail.list_labels()
        except requests.RequestException as e:
            logger.error(f"Error getting category label names: {e}")
            return []

        return [label.name for label in labels if label.name in CATEGORY_NAMES]
