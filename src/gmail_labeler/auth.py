"""Google OAuth authentication.

Objective:
    Provide the small authentication layer the web app needs for Gmail:
    building the consent URL and exchanging an authorization code for
    bearer/refresh tokens.

Responsibilities:
    - Build the Google authorization URL (offline access, forced consent so a
      refresh token is always issued).
    - Exchange the callback ``code`` at the Google token endpoint.
    - Describe the cookies used to persist the tokens.

High-level call tree:
    - :class:`GoogleAuthenticator`
        - :meth:`GoogleAuthenticator.authorization_url`
        - :meth:`GoogleAuthenticator.exchange_code`

Operational notes:
    - Tokens are kept client-side in http-only cookies; nothing is stored on
      the server.
    - Token refresh is not performed; an expired access token leads to a new
      consent round trip.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import requests
from pydantic import ValidationError

from .config import Settings
from .models import OAuthTokens

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"

# Cookie lifetimes in seconds
ACCESS_TOKEN_MAX_AGE = 60 * 60
REFRESH_TOKEN_MAX_AGE = 30 * 24 * 60 * 60


class TokenExchangeError(RuntimeError):
    """Raised when Google rejects an authorization code exchange."""


class GoogleAuthenticator:
    """
    Handles the Google OAuth authorization-code flow.

    Attributes:
        settings: Application settings containing Google OAuth credentials.
    """

    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    SCOPES = [
        "https://www.googleapis.com/auth/gmail.modify",
        "https://www.googleapis.com/auth/gmail.labels",
    ]

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        """
        Initialize the authenticator with settings.

        Args:
            settings: Application settings with Google OAuth credentials.
            session: Optional ``requests.Session`` for the token call.
        """
        self.settings = settings
        self._owns_session = session is None
        self._session = session or requests.Session()

    def close(self) -> None:
        """Close the HTTP session if this authenticator created it."""
        if self._owns_session:
            self._session.close()

    def authorization_url(self, state: Optional[str] = None) -> str:
        """
        Build the URL the browser is sent to for consent.

        Args:
            state: Optional opaque value echoed back to the callback.

        Returns:
            str: Google authorization URL.
        """
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{self.AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> OAuthTokens:
        """
        Exchange an authorization code for tokens.

        Args:
            code: ``code`` query parameter received on the callback.

        Returns:
            OAuthTokens: Access token and, usually, a refresh token.

        Raises:
            TokenExchangeError: If the request fails or Google returns an error.
        """
        data = {
            "code": code,
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "redirect_uri": self.settings.google_redirect_uri,
            "grant_type": "authorization_code",
        }

        try:
            response = self._session.post(self.TOKEN_URL, data=data, timeout=30)
        except requests.RequestException as e:
            raise TokenExchangeError(f"Failed to reach Google token endpoint: {e}") from e

        if not response.ok:
            logger.error(
                f"Token exchange failed: {response.status_code} - {response.text}"
            )
            raise TokenExchangeError(
                f"Token exchange failed with status {response.status_code}"
            )

        try:
            tokens = OAuthTokens.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenExchangeError(f"Unexpected token response: {e}") from e

        logger.debug(
            "Exchanged authorization code (refresh_token=%s)",
            "yes" if tokens.refresh_token else "no",
        )
        return tokens
