from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class AttachmentDescriptor:
    filename: str
    mime_type: str
    size: Optional[int]
    attachment_id: str


def find_attachments(payload: dict[str, Any]) -> list[AttachmentDescriptor]:
    """
    Walk the Gmail payload tree (multipart messages may be nested) and collect
    every part that carries both a filename and a body attachmentId.

    Order is depth-first in part-list order, so a part's nested attachments come
    before its later siblings.
    """
    found: list[AttachmentDescriptor] = []
    _collect(payload or {}, found)
    return found


def _collect(node: dict[str, Any], found: list[AttachmentDescriptor]) -> None:
    for part in node.get("parts") or []:
        if not isinstance(part, dict):
            continue
        body = part.get("body") or {}
        filename = part.get("filename") or ""
        attachment_id = body.get("attachmentId") or ""
        if filename and attachment_id:
            found.append(
                AttachmentDescriptor(
                    filename=filename,
                    mime_type=part.get("mimeType") or "",
                    size=body.get("size"),
                    attachment_id=attachment_id,
                )
            )
        if part.get("parts"):
            _collect(part, found)


def get_header(payload: dict[str, Any], name: str) -> str:
    # Exact, case-sensitive match on purpose: "Date", "From", "To", "Subject".
    for h in (payload or {}).get("headers", []) or []:
        if h.get("name") == name:
            return h.get("value") or ""
    return ""


def sanitize_filename(name: str) -> str:
    """
    "My File (v2).pdf" -> "My_File__v2_.pdf"
    """
    return _UNSAFE_FILENAME_RE.sub("_", name)


def saved_attachment_name(message_id: str, filename: str) -> str:
    # Prefix with the message id so equal filenames from different messages don't collide.
    return sanitize_filename(f"{message_id}_{filename}")
