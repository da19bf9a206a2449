from __future__ import annotations

import base64
from typing import Any, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build


def _b64url_decode(data: str) -> bytes:
    """
    Gmail attachment payloads are base64url encoded; padding is sometimes dropped.
    """
    if not data:
        return b""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


class GmailClient:
    def __init__(self, creds: Credentials) -> None:
        self._creds = creds
        # cache service client
        self._svc = build("gmail", "v1", credentials=self._creds)

    @property
    def credentials(self) -> Credentials:
        return self._creds

    def get_profile_email(self, user_id: str = "me") -> str:
        profile = self._svc.users().getProfile(userId=user_id).execute()
        return profile.get("emailAddress", "") or ""

    def list_message_ids(
        self,
        query: str,
        max_results: int = 100,
        page_token: Optional[str] = None,
        user_id: str = "me",
    ) -> tuple[list[str], Optional[str]]:
        """
        One page of a Gmail search. Returns message ids and the continuation token
        (None when this was the last page).
        """
        req = (
            self._svc.users()
            .messages()
            .list(userId=user_id, q=query, maxResults=max_results, pageToken=page_token)
        )
        resp = req.execute()
        msgs = resp.get("messages", []) or []
        ids = [m["id"] for m in msgs if m.get("id")]
        return ids, resp.get("nextPageToken") or None

    def get_message_full(self, message_id: str, user_id: str = "me") -> dict[str, Any]:
        req = self._svc.users().messages().get(userId=user_id, id=message_id, format="full")
        return req.execute()

    def get_attachment_bytes(self, message_id: str, attachment_id: str, user_id: str = "me") -> bytes:
        req = (
            self._svc.users()
            .messages()
            .attachments()
            .get(userId=user_id, messageId=message_id, id=attachment_id)
        )
        resp = req.execute()
        return _b64url_decode(resp.get("data", "") or "")
