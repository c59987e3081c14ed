"""Gmail AI Labeler package.

Objective:
    Provide a Python implementation of an inbox labeling workflow:
    - Authenticate against Gmail using the Google OAuth authorization-code flow.
    - Fetch a bounded batch of unread, not-yet-labeled messages.
    - Classify each message with an LLM (Anthropic and/or Groq) into a fixed
      category set, degrading to a static default when the models fail.
    - Create the matching Gmail label when needed, apply it and mark the
      message read.

Key modules:
    - :mod:`src.gmail_labeler.auth`:
        Google OAuth URL construction and code exchange.
    - :mod:`src.gmail_labeler.gmail_client`:
        Gmail REST API wrapper for messages, labels and profile.
    - :mod:`src.gmail_labeler.extractor`:
        Plain-text extraction from Gmail MIME payloads.
    - :mod:`src.gmail_labeler.backends` / :mod:`src.gmail_labeler.classifier`:
        Prompt construction, LLM calls, reply parsing and tiered fallback.
    - :mod:`src.gmail_labeler.label_manager`:
        Label lookup/creation and the unread search query.
    - :mod:`src.gmail_labeler.processor`:
        End-to-end batch processing.
    - :mod:`src.gmail_labeler.cli` / :mod:`src.gmail_labeler.webapp`:
        User-facing entrypoints.
"""

__version__ = "0.1.0"
