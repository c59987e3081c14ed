"""Inbox processing workflow.

Objective:
    Coordinate the end-to-end workflow for one batch:
    1) Resolve the account email (best-effort)
    2) Build the unread query excluding already-labeled messages
    3) List up to ``max_emails`` message ids
    4) For each message: fetch, extract body, classify, ensure label,
       apply label and mark read
    5) Return per-message results suitable for the web API and CLI

Responsibilities:
    - Compose the injected components (Gmail client, classifier, label
      manager) without embedding classification rules.
    - Contain per-message failures so one message never aborts a batch.

High-level call tree:
    - :class:`InboxProcessor`
        - :meth:`InboxProcessor.process_inbox`
            - :meth:`InboxProcessor._list_candidates`
                - :meth:`LabelManager.existing_category_labels`
                - :func:`build_unread_query`
                - :meth:`GmailClient.list_messages`
            - for each message: :meth:`InboxProcessor.process_single`
                - :meth:`GmailClient.get_message`
                - :func:`extract_email_body`
                - :meth:`EmailClassifier.classify`
                - :meth:`LabelManager.ensure_label`
                - :meth:`GmailClient.modify_message`
        - :meth:`InboxProcessor.process_message`
    - :func:`summarize_results`

Operational notes:
    - Messages are processed strictly sequentially in listing order.
    - The processor does not persist state between runs.
"""

import logging
from typing import Any, Optional

from .classifier import EmailClassifier
from .config import ERROR_CATEGORY, MAX_BATCH_SIZE
from .extractor import extract_email_body
from .gmail_client import GmailClient
from .label_manager import LabelManager, build_unread_query
from .models import Backend, MessageSummary, ProcessingResult

logger = logging.getLogger(__name__)

UNREAD_LABEL_ID = "UNREAD"
FAILED_SUBJECT = "Error processing email"


class MessageNotFoundError(LookupError):
    """Raised when a requested message is not in the current unread batch."""

    def __init__(self, message_id: str) -> None:
        super().__init__(f"Email not found or already processed: {message_id}")
        self.message_id = message_id


def _error_text(error: Exception) -> str:
    return str(error) or error.__class__.__name__


class InboxProcessor:
    """
    Orchestrates classification and labeling for one account.

    This class is "glue" code: it connects the Gmail client, classifier and
    label manager, all of which are constructed by the caller.

    Attributes:
        gmail: Gmail client bound to the user's access token.
        classifier: Email classifier.
        label_manager: Label management.
        max_emails: Batch size ceiling.
    """

    def __init__(
        self,
        gmail: GmailClient,
        classifier: EmailClassifier,
        label_manager: Optional[LabelManager] = None,
        max_emails: int = MAX_BATCH_SIZE,
    ) -> None:
        """
        Initialize the processor with its collaborators.

        Args:
            gmail: Gmail client.
            classifier: Email classifier.
            label_manager: Label manager (built from ``gmail`` if None).
            max_emails: Maximum messages per batch, capped at 10.
        """
        self.gmail = gmail
        self.classifier = classifier
        self.label_manager = label_manager or LabelManager(gmail)
        self.max_emails = max(1, min(max_emails, MAX_BATCH_SIZE))

    def resolve_account_email(self) -> str:
        """Return the account email address, or ``""`` if it can't be read."""
        try:
            return self.gmail.get_profile_email()
        except Exception as e:
            logger.warning(f"Failed to fetch user email address: {e}")
            return ""

    def _list_candidates(self) -> list[MessageSummary]:
        """List unread messages that carry none of the category labels."""
        labeled_categories = self.label_manager.existing_category_labels()
        query = build_unread_query(labeled_categories)
        return self.gmail.list_messages(query, max_results=self.max_emails)

    def process_single(self, message_id: str) -> ProcessingResult:
        """
        Process a single message: classify, label and mark read.

        Errors are caught and returned inside :class:`ProcessingResult` so that
        a batch run can continue processing other messages.

        Args:
            message_id: Gmail message id.

        Returns:
            ProcessingResult: Result of processing.
        """
        subject: Optional[str] = None
        try:
            message = self.gmail.get_message(message_id)
            subject = message.subject

            body = extract_email_body(message.payload)
            outcome = self.classifier.classify(subject, message.sender, body)

            label_id = self.label_manager.ensure_label(outcome.category)
            self.gmail.modify_message(
                message_id,
                add_label_ids=[label_id],
                remove_label_ids=[UNREAD_LABEL_ID],
            )

            return ProcessingResult(
                id=message_id,
                subject=subject,
                category=outcome.category,
                labeled=True,
                model=outcome.backend,
                tokens=outcome.tokens if outcome.is_paid else None,
                cost=outcome.cost if outcome.is_paid else None,
            )

        except Exception as e:
            logger.exception(f"Error processing email {message_id}")
            return ProcessingResult(
                id=message_id,
                subject=subject or FAILED_SUBJECT,
                category=ERROR_CATEGORY,
                labeled=False,
                error=_error_text(e),
            )

    def process_inbox(self) -> tuple[list[ProcessingResult], str]:
        """Run one batch over the unread, unlabeled messages.

        Returns:
            tuple[list[ProcessingResult], str]: Results in listing order and
            the account email (``""`` if unknown).

        Raises:
            requests.HTTPError: If listing messages fails.
        """
        account_email = self.resolve_account_email()
        candidates = self._list_candidates()

        if not candidates:
            logger.info("No emails to process")
            return [], account_email

        logger.info(f"Processing {len(candidates)} emails")

        results = []
        for i, summary in enumerate(candidates, 1):
            logger.info(f"Processing email {i}/{len(candidates)}: {summary.id}")
            results.append(self.process_single(summary.id))

        successful = sum(1 for r in results if r.labeled)
        logger.info(f"Completed: {successful} successful, {len(results) - successful} failed")

        return results, account_email

    def process_message(self, message_id: str) -> tuple[list[ProcessingResult], str]:
        """Process one specific message if it is still unread and unlabeled.

        Args:
            message_id: Gmail message id requested by the caller.

        Returns:
            tuple[list[ProcessingResult], str]: One-element result list and
            the account email.

        Raises:
            MessageNotFoundError: If the id is not in the current batch.
        """
        account_email = self.resolve_account_email()
        candidates = self._list_candidates()

        if not any(summary.id == message_id for summary in candidates):
            raise MessageNotFoundError(message_id)

        return [self.process_single(message_id)], account_email


def summarize_results(results: list[ProcessingResult]) -> dict[str, Any]:
    """Aggregate counts, tokens and cost over a result list.

    ``byModel`` lists every backend tag, with zero counts for unused ones,
    so clients can render a fixed usage table.

    Args:
        results: Processing results.

    Returns:
        dict[str, Any]: ``total``, ``successful``, ``failed``,
        ``totalTokens``, ``totalCost`` and ``byModel``
        (``{tag: {"count", "cost"}}``).
    """
    successful = sum(1 for r in results if r.labeled)

    by_model = {backend.value: {"count": 0, "cost": 0.0} for backend in Backend}
    for r in results:
        if r.model is not None:
            by_model[r.model.value]["count"] += 1
            by_model[r.model.value]["cost"] += r.cost or 0.0

    return {
        "total": len(results),
        "successful": successful,
        "failed": len(results) - successful,
        "totalTokens": sum(r.tokens or 0 for r in results),
        "totalCost": sum(r.cost or 0.0 for r in results),
        "byModel": by_model,
    }
