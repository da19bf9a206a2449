from __future__ import annotations

import logging
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from .config import (
    alias_from_token_filename,
    client_secrets,
    load_client_config,
    normalize_alias,
    oauth_port,
    secrets_dir,
    token_path,
)
from .exports import read_json
from .gmail_client import GmailClient
from .oauth_callback import AuthError, AuthorizationDenied, CallbackPortInUse, OAuthCallbackServer

logger = logging.getLogger(__name__)

__all__ = [
    "SCOPES",
    "AccountStatus",
    "AuthError",
    "AuthorizationDenied",
    "CallbackPortInUse",
    "authorize",
    "get_new_token",
    "list_accounts",
]

# Read-only mail plus Drive files created by this app. Nothing broader.
SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/drive.file",
]

_DEFAULT_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
_DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class AccountStatus:
    alias: str
    email: Optional[str]

    @property
    def valid(self) -> bool:
        return self.email is not None


def _load_saved_credentials(path: Path, client_config: dict[str, Any]) -> Credentials:
    info = read_json(path)
    if not isinstance(info, dict):
        raise ValueError(f"Token file {path} is not a JSON object.")

    # Token files may predate a credentials.json rotation; the shared client wins.
    client_id, client_secret = client_secrets(client_config)
    info = {**info, "client_id": client_id, "client_secret": client_secret}
    return Credentials.from_authorized_user_info(info, SCOPES)


def _ensure_fresh(creds: Credentials, path: Optional[Path]) -> None:
    """
    Refresh an expired token in place. When path is given the refreshed token
    is written back so the next run starts from it.
    """
    if creds.valid:
        return
    if not creds.refresh_token:
        raise ValueError("Token is expired and has no refresh token.")
    creds.refresh(Request())
    if path is not None:
        path.write_text(creds.to_json(), encoding="utf-8")
        logger.debug(f"Refreshed token saved to {path}")


def _save_token(path: Path, creds: Credentials) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(creds.to_json(), encoding="utf-8")


def authorize(alias: Optional[str] = None) -> GmailClient:
    """
    Return an authenticated client for the account alias.

    Reuses the saved token when it still works (refreshing it if needed) and
    falls back to the interactive browser flow otherwise. A missing
    credentials.json is fatal and is not retried interactively.
    """
    alias = normalize_alias(alias)
    client_config = load_client_config()
    path = token_path(alias)

    try:
        creds = _load_saved_credentials(path, client_config)
        _ensure_fresh(creds, path)
        client = GmailClient(creds)
        email = client.get_profile_email()
    except Exception as e:
        # Any failure past credentials.json means the saved token is unusable.
        logger.info(f"No usable token for '{alias}' ({e}); starting interactive authorization.")
        return get_new_token(alias, client_config=client_config)

    logger.info(f"Using existing authorization for: {email}")
    return client


def get_new_token(
    alias: Optional[str] = None,
    *,
    client_config: Optional[dict[str, Any]] = None,
    open_browser: Callable[[str], Any] = webbrowser.open,
) -> GmailClient:
    """
    Run the one-shot authorization code flow: listen on the fixed local port,
    send the user to the consent page, exchange the returned code, and persist
    the token for the alias.
    """
    alias = normalize_alias(alias)
    client_config = client_config or load_client_config()
    section_key = "installed" if "installed" in client_config else "web"
    section = dict(client_config[section_key])
    section.setdefault("auth_uri", _DEFAULT_AUTH_URI)
    section.setdefault("token_uri", _DEFAULT_TOKEN_URI)
    path = token_path(alias)

    with OAuthCallbackServer(oauth_port()) as server:
        flow = Flow.from_client_config(
            {section_key: section}, scopes=SCOPES, redirect_uri=server.redirect_uri
        )
        auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")

        print("\n=== Gmail + Drive Authorization ===")
        print(f"Account alias: {alias}")
        print("Scopes:")
        print("  - gmail.readonly (read-only access to emails)")
        print("  - drive.file (only files created by this app)")
        print("\nOpening browser for authorization...")
        print(f"If it does not open, visit:\n  {auth_url}\n")
        open_browser(auth_url)

        code = server.wait_for_code()

    try:
        flow.fetch_token(code=code)
    except Exception as e:
        raise AuthError(f"Token exchange failed: {e}") from e

    creds = flow.credentials
    _save_token(path, creds)
    logger.info(f"Token saved to {path}")
    return GmailClient(creds)


def list_accounts() -> list[AccountStatus]:
    """
    Report every saved token and the account it resolves to.
    Diagnostic only: expired tokens are refreshed in memory but never written back.
    """
    client_config = load_client_config()
    d = secrets_dir()
    if not d.exists():
        return []

    out: list[AccountStatus] = []
    for p in sorted(d.iterdir()):
        alias = alias_from_token_filename(p.name)
        if alias is None or not p.is_file():
            continue
        try:
            creds = _load_saved_credentials(p, client_config)
            _ensure_fresh(creds, None)
            email: Optional[str] = GmailClient(creds).get_profile_email()
        except Exception as e:
            logger.debug(f"Token for '{alias}' unusable: {e}")
            email = None
        out.append(AccountStatus(alias=alias, email=email))

    return sorted(out, key=lambda s: s.alias)
