from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Optional

DEFAULT_ALIAS = "default"
DEFAULT_OAUTH_PORT = 8849

_TOKEN_PREFIX = "token"
_TOKEN_SUFFIX = ".json"


class MissingCredentialsError(FileNotFoundError):
    pass


def secrets_dir() -> Path:
    # Keep secrets out of git; secrets/ is the conventional ignored folder.
    return Path(os.environ.get("MAILEXPORT_SECRETS_DIR", "secrets")).expanduser()


def credentials_path() -> Path:
    p = os.environ.get("MAILEXPORT_CREDENTIALS")
    if p:
        return Path(p).expanduser()
    return secrets_dir() / "credentials.json"


def normalize_alias(alias: Optional[str]) -> str:
    alias = (alias or "").strip()
    return alias or DEFAULT_ALIAS


def token_filename(alias: Optional[str]) -> str:
    """
    Map an account alias to its token file name.

    The default alias is the only special case: it owns the bare "token.json"
    so that a single-account setup needs no alias at all. Every other alias
    lives in "token-<alias>.json".
    """
    alias = normalize_alias(alias)
    if alias == DEFAULT_ALIAS:
        return f"{_TOKEN_PREFIX}{_TOKEN_SUFFIX}"
    return f"{_TOKEN_PREFIX}-{alias}{_TOKEN_SUFFIX}"


def alias_from_token_filename(name: str) -> Optional[str]:
    """
    Inverse of token_filename(). Returns None for files that are not token files.
    """
    if name == f"{_TOKEN_PREFIX}{_TOKEN_SUFFIX}":
        return DEFAULT_ALIAS
    head = f"{_TOKEN_PREFIX}-"
    if name.startswith(head) and name.endswith(_TOKEN_SUFFIX):
        alias = name[len(head) : -len(_TOKEN_SUFFIX)]
        return alias or None
    return None


def token_path(alias: Optional[str]) -> Path:
    return secrets_dir() / token_filename(alias)


def exports_dir() -> Path:
    return Path(os.environ.get("MAILEXPORT_EXPORTS_DIR", "exports")).expanduser()


def default_output_dir(query: str) -> Path:
    # "from:bank@example.com" -> exports/from_bank_example_com
    slug = re.sub(r"[^A-Za-z0-9]", "_", query)[:30]
    return exports_dir() / slug


def oauth_port() -> int:
    raw = os.environ.get("MAILEXPORT_OAUTH_PORT")
    if not raw:
        return DEFAULT_OAUTH_PORT
    try:
        port = int(raw.strip())
    except ValueError:
        raise ValueError(f"MAILEXPORT_OAUTH_PORT must be an integer, got {raw!r}") from None
    if not 1 <= port <= 65535:
        raise ValueError(f"MAILEXPORT_OAUTH_PORT out of range: {port}")
    return port


def load_client_config(path: Optional[Path] = None) -> dict[str, Any]:
    """
    Load the shared OAuth client JSON (Desktop or Web app) downloaded from
    Google Cloud Console. Every alias uses the same client.
    """
    p = path or credentials_path()
    if not p.exists():
        raise MissingCredentialsError(
            f"Missing OAuth client credentials at: {p}. "
            "Download the OAuth client JSON (Desktop app) from Google Cloud Console "
            "and place it there (or set MAILEXPORT_CREDENTIALS)."
        )

    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Credentials file root must be a JSON object.")

    section = data.get("installed") or data.get("web")
    if not isinstance(section, dict):
        raise ValueError("Credentials file must contain an 'installed' or 'web' object.")
    for key in ("client_id", "client_secret"):
        if not isinstance(section.get(key), str) or not section[key].strip():
            raise ValueError(f"Credentials file is missing '{key}'.")
    return data


def client_secrets(client_config: dict[str, Any]) -> tuple[str, str]:
    section = client_config.get("installed") or client_config["web"]
    return section["client_id"], section["client_secret"]
