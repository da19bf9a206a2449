from __future__ import annotations

import base64
import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Optional

import pytest
from googleapiclient.errors import HttpError

import mailexport.gmail_client as gc


def http_error(status: int = 500, reason: str = "Backend Error") -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason=reason), b"{}")


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii")


class _Req:
    def __init__(self, payload: Any):
        self._payload = payload

    def execute(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _AttachmentsAPI:
    def __init__(self, svc: "FakeGmailService"):
        self._svc = svc

    def get(self, userId: str, messageId: str, id: str):
        self._svc.attachment_calls.append((messageId, id))
        return _Req(self._svc.attachments[(messageId, id)])


class _MessagesAPI:
    def __init__(self, svc: "FakeGmailService"):
        self._svc = svc

    def list(self, userId: str, q: str, maxResults: int, pageToken: Optional[str] = None):
        self._svc.list_calls.append({"q": q, "maxResults": maxResults, "pageToken": pageToken})
        page = self._svc.pages[pageToken]
        if isinstance(page, Exception):
            return _Req(page)
        msgs = page.get("messages", [])
        # Honour maxResults like the real API does.
        out: dict[str, Any] = {"messages": msgs[:maxResults]} if msgs else {}
        if page.get("nextPageToken"):
            out["nextPageToken"] = page["nextPageToken"]
        return _Req(out)

    def get(self, userId: str, id: str, format: str):
        assert format == "full"
        self._svc.get_calls.append(id)
        return _Req(self._svc.message_fixtures[id])

    def attachments(self) -> _AttachmentsAPI:
        return _AttachmentsAPI(self._svc)


class FakeGmailService:
    """
    Stand-in for build("gmail", "v1"): users().messages().list(...).execute() etc.
    Pages are keyed by the pageToken that requests them (None for the first page).
    """

    def __init__(self) -> None:
        self.profile: Any = {"emailAddress": "me@example.com"}
        self.pages: dict[Optional[str], Any] = {None: {}}
        self.message_fixtures: dict[str, Any] = {}
        self.attachments: dict[tuple[str, str], Any] = {}
        self.list_calls: list[dict[str, Any]] = []
        self.get_calls: list[str] = []
        self.attachment_calls: list[tuple[str, str]] = []
        self.profile_calls = 0

    def users(self) -> "FakeGmailService":
        return self

    def getProfile(self, userId: str):
        self.profile_calls += 1
        return _Req(self.profile)

    def messages(self) -> _MessagesAPI:
        return _MessagesAPI(self)

    def add_message(
        self,
        message_id: str,
        *,
        date: str = "",
        sender: str = "sender@example.com",
        subject: str = "Subject",
        parts: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        headers = [
            {"name": "Date", "value": date},
            {"name": "From", "value": sender},
            {"name": "To", "value": "me@example.com"},
            {"name": "Subject", "value": subject},
        ]
        self.message_fixtures[message_id] = {
            "id": message_id,
            "threadId": f"t-{message_id}",
            "snippet": f"snippet {message_id}",
            "labelIds": ["INBOX"],
            "payload": {"mimeType": "multipart/mixed", "headers": headers, "parts": parts or []},
        }


@pytest.fixture
def fake_service(monkeypatch: pytest.MonkeyPatch) -> FakeGmailService:
    svc = FakeGmailService()

    def fake_build(api: str, version: str, credentials):
        assert api == "gmail"
        assert version == "v1"
        return svc

    monkeypatch.setattr(gc, "build", fake_build)
    return svc


@pytest.fixture
def fake_client(fake_service: FakeGmailService) -> gc.GmailClient:
    # GmailClient only stores the credentials object.
    return gc.GmailClient(SimpleNamespace(valid=True))  # type: ignore[arg-type]


@pytest.fixture
def secrets(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    d = tmp_path / "secrets"
    d.mkdir()
    monkeypatch.setenv("MAILEXPORT_SECRETS_DIR", str(d))
    monkeypatch.delenv("MAILEXPORT_CREDENTIALS", raising=False)
    (d / "credentials.json").write_text(
        json.dumps(
            {
                "installed": {
                    "client_id": "cid.apps.googleusercontent.com",
                    "client_secret": "shh",
                    "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            }
        ),
        encoding="utf-8",
    )
    return d
