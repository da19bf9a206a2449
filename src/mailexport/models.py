from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class SavedAttachment:
    filename: str
    mime_type: str
    size: Optional[int]
    saved_as: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "mimeType": self.mime_type,
            "size": self.size,
            "savedAs": self.saved_as,
        }


@dataclass
class ExportedEmail:
    id: str
    thread_id: Optional[str]
    date: str
    from_: str
    to: str
    subject: str
    snippet: str
    labels: list[str] = field(default_factory=list)
    attachments: list[SavedAttachment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "date": self.date,
            "from": self.from_,
            "to": self.to,
            "subject": self.subject,
            "snippet": self.snippet,
            "labels": list(self.labels),
            "attachments": [a.to_dict() for a in self.attachments],
        }


@dataclass(frozen=True)
class ExportSummary:
    query: str
    account: str
    total: int
    attachments: int
    oldest: Optional[str]
    newest: Optional[str]
    senders: tuple[str, ...]
    exported_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "account": self.account,
            "total": self.total,
            "attachments": self.attachments,
            "dateRange": {"oldest": self.oldest, "newest": self.newest},
            "senders": list(self.senders),
            "exportedAt": self.exported_at,
        }


@dataclass
class ExportResult:
    emails: list[ExportedEmail]
    summary: ExportSummary
