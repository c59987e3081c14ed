"""FastAPI web backend for Gmail AI Labeler.

Objective:
    Provide the JSON API consumed by the browser front end: Google sign-in,
    auth status, logout and inbox processing. Business logic lives in
    :mod:`src.gmail_labeler.processor`; this module only parses requests,
    maps errors to HTTP statuses and renders responses.

High-level call tree:
    - :func:`create_app`:
        - defines routes:
            - ``GET /health`` -> :func:`health`
            - ``GET /api/auth`` -> :func:`auth_url`
            - ``POST /api/auth`` -> :func:`logout`
            - ``GET /api/auth/callback`` -> :func:`auth_callback`
            - ``GET /api/auth/check`` -> :func:`auth_check`
            - ``POST /api/gmail`` -> :func:`process_gmail`
    - :func:`get_authenticator`:
        - yields a :class:`src.gmail_labeler.auth.GoogleAuthenticator`.
    - :func:`get_processor_factory`:
        - yields a callable building an
          :class:`src.gmail_labeler.processor.InboxProcessor` for an access
          token, and closes what it opened after the request.

Data flow:
    - HTTP request -> access token -> processor.process_inbox(...) -> JSON.

Operational notes:
    - Run locally with ``python -m uvicorn src.gmail_labeler.webapp:app``.
    - Tokens live in http-only cookies (see :mod:`src.gmail_labeler.auth`).
    - For tests, :func:`get_authenticator` and :func:`get_processor_factory`
      are overridden via ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Optional

import requests
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .auth import (
    ACCESS_TOKEN_COOKIE,
    ACCESS_TOKEN_MAX_AGE,
    REFRESH_TOKEN_COOKIE,
    REFRESH_TOKEN_MAX_AGE,
    GoogleAuthenticator,
    TokenExchangeError,
)
from .classifier import build_classifier
from .config import get_settings
from .gmail_client import GmailClient
from .processor import InboxProcessor, MessageNotFoundError, summarize_results

logger = logging.getLogger(__name__)

ProcessorFactory = Callable[[str], InboxProcessor]


def get_authenticator() -> Iterator[GoogleAuthenticator]:
    """Yield a :class:`~src.gmail_labeler.auth.GoogleAuthenticator`.

    Its HTTP session is closed once the request finishes.

    Yields:
        GoogleAuthenticator: Authenticator built from environment settings.
    """

    authenticator = GoogleAuthenticator(get_settings())
    try:
        yield authenticator
    finally:
        authenticator.close()


def get_processor_factory() -> Iterator[ProcessorFactory]:
    """Yield a factory that builds an inbox processor for an access token.

    Settings, the classifier and the Gmail client are created only when the
    factory is called, so configuration errors surface inside the route's
    error handling. Everything the factory opened is closed when the request
    finishes. Tests override this dependency with a factory returning a stub
    processor.

    Yields:
        ProcessorFactory: ``access_token -> InboxProcessor``.
    """

    opened: list[Any] = []

    def factory(access_token: str) -> InboxProcessor:
        settings = get_settings()
        classifier = build_classifier(settings)
        opened.append(classifier)
        gmail = GmailClient(access_token)
        opened.append(gmail)
        return InboxProcessor(gmail, classifier, max_emails=settings.max_emails)

    try:
        yield factory
    finally:
        for resource in reversed(opened):
            resource.close()


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Routes:
        - ``GET /health``:
            Basic liveness check.
        - ``GET /api/auth``:
            Returns the Google consent URL.
        - ``POST /api/auth``:
            Clears the auth cookies.
        - ``GET /api/auth/callback``:
            Exchanges the code and stores tokens as cookies.
        - ``GET /api/auth/check``:
            Reports whether an access token cookie is present.
        - ``POST /api/gmail``:
            Classifies and labels a batch (or one message) and returns JSON.

    Returns:
        FastAPI: FastAPI app.
    """

    app = FastAPI(title="Gmail AI Labeler")

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint.

        This is intentionally simple and should not perform external calls.

        Returns:
            dict[str, str]: Health payload.
        """

        return {"status": "ok"}

    @app.get("/api/auth")
    def auth_url(
        authenticator: GoogleAuthenticator = Depends(get_authenticator),
    ) -> dict[str, str]:
        """Return the Google authorization URL.

        Returns:
            dict[str, str]: ``{"authUrl": ...}``.
        """

        return {"authUrl": authenticator.authorization_url()}

    @app.post("/api/auth")
    def logout() -> JSONResponse:
        """Log out by expiring both token cookies.

        Returns:
            JSONResponse: Confirmation payload.
        """

        response = JSONResponse({"success": True, "message": "Logged out"})
        response.delete_cookie(ACCESS_TOKEN_COOKIE)
        response.delete_cookie(REFRESH_TOKEN_COOKIE)
        return response

    @app.get("/api/auth/callback")
    def auth_callback(
        code: Optional[str] = None,
        authenticator: GoogleAuthenticator = Depends(get_authenticator),
    ) -> RedirectResponse:
        """Complete the OAuth flow.

        Redirects to ``/?success=true`` with the token cookies set, or to
        ``/?error=...`` when the code is missing or the exchange fails.

        Args:
            code: Authorization code from Google.
            authenticator: Authenticator dependency.

        Returns:
            RedirectResponse: Redirect back to the front end.
        """

        if not code:
            return RedirectResponse("/?error=no_code")

        try:
            tokens = authenticator.exchange_code(code)
        except TokenExchangeError as e:
            logger.error(f"Error exchanging code for tokens: {e}")
            return RedirectResponse("/?error=token_exchange_failed")

        secure = authenticator.settings.is_production
        response = RedirectResponse("/?success=true")
        response.set_cookie(
            ACCESS_TOKEN_COOKIE,
            tokens.access_token,
            max_age=ACCESS_TOKEN_MAX_AGE,
            httponly=True,
            secure=secure,
            samesite="lax",
        )
        if tokens.refresh_token:
            response.set_cookie(
                REFRESH_TOKEN_COOKIE,
                tokens.refresh_token,
                max_age=REFRESH_TOKEN_MAX_AGE,
                httponly=True,
                secure=secure,
                samesite="lax",
            )
        return response

    @app.get("/api/auth/check")
    def auth_check(request: Request) -> dict[str, Any]:
        """Report whether the browser holds an access token cookie.

        Args:
            request: FastAPI request.

        Returns:
            dict[str, Any]: ``authenticated`` flag and the token when present.
        """

        access_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if not access_token:
            return {"authenticated": False}
        return {"authenticated": True, "accessToken": access_token}

    @app.post("/api/gmail")
    def process_gmail(
        payload: dict[str, Any],
        processor_factory: ProcessorFactory = Depends(get_processor_factory),
    ) -> Any:
        """Classify and label unread messages.

        Expected request body:
            ``{"accessToken": "...", "emailId": "optional message id"}``

        Args:
            payload: JSON payload.
            processor_factory: Processor factory dependency.

        Returns:
            Any: ``{"results", "userEmail", "summary"}`` or an error payload.
        """

        access_token = payload.get("accessToken")
        if not access_token:
            return _error("Access token required", 400)

        email_id = payload.get("emailId")

        try:
            processor = processor_factory(access_token)
            if email_id:
                results, user_email = processor.process_message(email_id)
            else:
                results, user_email = processor.process_inbox()
        except MessageNotFoundError:
            return _error("Email not found or already processed", 404)
        except requests.HTTPError as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            if status_code in (401, 403):
                return _error("Invalid or expired access token", 401)
            logger.exception("Error in Gmail processing")
            return _error("Failed to process emails", 500)
        except Exception:
            logger.exception("Error in Gmail processing")
            return _error("Failed to process emails", 500)

        return {
            "results": [r.model_dump(mode="json", exclude_none=True) for r in results],
            "userEmail": user_email,
            "summary": summarize_results(results),
        }

    return app


app = create_app()
