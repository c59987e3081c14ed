"""Command-line interface (CLI) entrypoint.

Objective:
    Provide a terminal wrapper around
    :class:`src.gmail_labeler.processor.InboxProcessor` for running one batch
    with an access token obtained elsewhere (e.g. from the web sign-in).

Responsibilities:
    - Parse arguments (access token, single message id, verbosity).
    - Configure logging (including suppressing noisy HTTP request logs).
    - Invoke the processor and print a readable summary of results.

High-level call tree:
    - :func:`main`
        - :func:`setup_logging`
            - installs :class:`_HttpxRequestInfoToDebugFilter`
        - :func:`src.gmail_labeler.classifier.build_classifier`
        - :meth:`InboxProcessor.process_inbox` / :meth:`InboxProcessor.process_message`
        - :func:`print_results`

Operational notes:
    - This module supports being run both as a package module
      (``python -m src.gmail_labeler.cli``) and as a script
      (``python src/gmail_labeler/cli.py``). The import fallback handles
      the script case.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

try:
    from .classifier import build_classifier
    from .config import get_settings
    from .gmail_client import GmailClient
    from .processor import InboxProcessor, MessageNotFoundError, summarize_results
except ImportError:  # pragma: no cover
    src_root = Path(__file__).resolve().parents[1]
    if str(src_root) not in sys.path:
        sys.path.insert(0, str(src_root))

    from gmail_labeler.classifier import build_classifier
    from gmail_labeler.config import get_settings
    from gmail_labeler.gmail_client import GmailClient
    from gmail_labeler.processor import InboxProcessor, MessageNotFoundError, summarize_results

ACCESS_TOKEN_ENV = "GMAIL_ACCESS_TOKEN"


class _HttpxRequestInfoToDebugFilter(logging.Filter):
    """Filter to suppress noisy httpx "HTTP Request:" INFO logs.

    The Groq and Anthropic SDKs log each HTTP request at INFO level through
    httpx. This filter hides those messages unless the root logger is in
    DEBUG mode.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Determine whether a log record should be emitted.

        Args:
            record: Log record emitted by the logging framework.

        Returns:
            bool: True to allow emission, False to suppress.
        """
        msg = record.getMessage()
        if record.name.startswith("httpx") and msg.startswith("HTTP Request:"):
            # Only show request logs when running in DEBUG/verbose mode.
            return logging.getLogger().isEnabledFor(logging.DEBUG)
        return True


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the application.

    This sets the root logger level and installs the
    :class:`_HttpxRequestInfoToDebugFilter` on all root handlers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    root_logger = logging.getLogger()
    downgrade_filter = _HttpxRequestInfoToDebugFilter()
    for handler in root_logger.handlers:
        handler.addFilter(downgrade_filter)


def print_results(results: list, verbose: bool = False, user_email: str = "") -> None:
    """
    Print processing results to console.

    Output format:
        - Group results by category.
        - Show the backend and cost for each labeled message.
        - Optionally print errors when ``verbose=True``.
        - Finish with counts and token/cost totals.

    Args:
        results: List of ProcessingResult objects.
        verbose: If True, print detailed information.
        user_email: Account email shown in the header.
    """
    if not results:
        print("\nNo emails processed.")
        return

    account = f" for {user_email}" if user_email else ""
    print(f"\n{'='*60}")
    print(f"PROCESSING RESULTS{account}: {len(results)} emails")
    print(f"{'='*60}\n")

    by_category: dict[str, list] = {}
    for result in results:
        by_category.setdefault(result.category, []).append(result)

    for category, items in sorted(by_category.items()):
        print(f"\n[{category}] ({len(items)} emails)")
        print("-" * 40)

        for item in items:
            status = "OK  " if item.labeled else "FAIL"
            subject = item.subject[:50] + "..." if len(item.subject) > 50 else item.subject

            details = []
            if item.model:
                details.append(item.model.value)
            if item.tokens is not None:
                details.append(f"{item.tokens} tokens")
            if item.cost is not None:
                details.append(f"${item.cost:.6f}")
            suffix = f" ({', '.join(details)})" if details else ""

            print(f"  {status} {subject}{suffix}")

            if verbose and item.error:
                print(f"      Error: {item.error}")

    summary = summarize_results(results)

    print(f"\n{'='*60}")
    print(
        f"SUMMARY: {summary['successful']} successful, {summary['failed']} failed, "
        f"{summary['totalTokens']} tokens, ${summary['totalCost']:.6f}"
    )
    print(f"{'='*60}\n")


def main(args: Optional[list[str]] = None) -> int:
    """
    Main CLI entry point.

    Pass an explicit ``args`` list instead of relying on ``sys.argv`` to
    call this from tests.

    Args:
        args: Command line arguments (uses sys.argv if None).

    Returns:
        int: Exit code (0 for success, 1 for error).
    """
    parser = argparse.ArgumentParser(
        description="Gmail AI Labeler - classify and label unread Gmail messages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  %(prog)s --access-token ya29...     Label up to 10 unread emails
  %(prog)s --email-id 18c2f...        Label one specific unread email
  %(prog)s --verbose                  Show detailed output

The access token can also be provided via {ACCESS_TOKEN_ENV}.
        """,
    )

    parser.add_argument(
        "--access-token",
        "-t",
        type=str,
        default=None,
        help=f"Gmail OAuth access token (defaults to ${ACCESS_TOKEN_ENV})",
    )

    parser.add_argument(
        "--email-id",
        "-e",
        type=str,
        default=None,
        help="Process only this message id (must be unread and unlabeled)",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    parsed_args = parser.parse_args(args)

    log_level = "DEBUG" if parsed_args.verbose else parsed_args.log_level
    setup_logging(log_level)

    logger = logging.getLogger(__name__)

    access_token = parsed_args.access_token or os.environ.get(ACCESS_TOKEN_ENV)
    if not access_token:
        print(f"\nError: an access token is required (--access-token or {ACCESS_TOKEN_ENV})\n")
        return 1

    try:
        print("\nStarting Gmail AI Labeler...\n")

        settings = get_settings()
        classifier = build_classifier(settings)
        try:
            with GmailClient(access_token) as gmail:
                processor = InboxProcessor(gmail, classifier, max_emails=settings.max_emails)

                if parsed_args.email_id:
                    results, user_email = processor.process_message(parsed_args.email_id)
                else:
                    results, user_email = processor.process_inbox()
        finally:
            classifier.close()

        print_results(results, verbose=parsed_args.verbose, user_email=user_email)

        failed = sum(1 for r in results if not r.labeled)
        return 1 if failed > 0 else 0

    except MessageNotFoundError as e:
        print(f"\nError: {e}\n")
        return 1
    except Exception as e:
        logger.exception("Fatal error")
        print(f"\nError: {e}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
