"""Authentication helpers for Gmail API."""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Callable

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from gmail_txn_sync.constants import CLIENT_SECRETS_PATH, REVOKE_URI, SCOPES, TOKEN_URI
from gmail_txn_sync.errors import MissingCredentialError, TokenRefreshError

logger = logging.getLogger(__name__)

TokenExchange = Callable[[str], str]


def refresh_access_token(refresh_token: str, client_id: str, client_secret: str) -> str:
    """Exchange a stored refresh token for a short-lived access token.

    Raises TokenRefreshError when Google rejects the token or cannot be
    reached; the caller treats that as fatal for the run.
    """
    if not refresh_token or not refresh_token.strip():
        raise MissingCredentialError("No refresh token stored")

    creds = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=SCOPES,
    )
    try:
        creds.refresh(Request())
    except (RefreshError, TransportError) as exc:
        raise TokenRefreshError(f"Token refresh failed: {exc}") from exc

    if not creds.token:
        raise TokenRefreshError("Unable to obtain access token")
    return creds.token


def token_exchange_for(settings) -> TokenExchange:
    """Bind the configured OAuth client to ``refresh_access_token``."""
    return partial(
        refresh_access_token,
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
    )


def run_consent_flow(client_secrets_path: Path | None = None) -> str:
    """Run the installed-app OAuth flow and return the granted refresh token.

    Requires OAuth client credentials downloaded from the Google Cloud
    Console.  Consent is always prompted so Google issues a refresh token
    even for a previously authorized account.
    """
    path = Path(client_secrets_path or CLIENT_SECRETS_PATH)
    if not path.exists():
        raise FileNotFoundError(
            f"Credentials file not found at {path}.\n"
            "Download your OAuth client credentials from the Google Cloud Console "
            "and save them as:\n"
            f"  {path}"
        )
    flow = InstalledAppFlow.from_client_secrets_file(str(path), SCOPES)
    creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")
    if not creds.refresh_token:
        raise TokenRefreshError("Google did not return a refresh token")
    return creds.refresh_token


def revoke_token(token: str, timeout: float = 10.0) -> bool:
    """Best-effort revocation of a Google token. Returns True on success."""
    try:
        resp = requests.post(REVOKE_URI, params={"token": token}, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Failed to revoke Google token: %s", exc)
        return False
    if not resp.ok:
        logger.warning("Failed to revoke Google token: HTTP %s", resp.status_code)
    return resp.ok
