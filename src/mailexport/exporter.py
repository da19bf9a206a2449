from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from .auth import authorize
from .config import DEFAULT_ALIAS, exports_dir, normalize_alias
from .exports import ensure_export_dirs, write_json
from .gmail_client import GmailClient
from .models import ExportedEmail, ExportResult, ExportSummary, SavedAttachment
from .parts import find_attachments, get_header, saved_attachment_name

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 500
PAGE_SIZE = 100

EMAILS_FILENAME = "emails.json"
SUMMARY_FILENAME = "summary.json"

ProgressFn = Callable[[int, int], None]


def collect_message_ids(client: GmailClient, query: str, max_results: int) -> list[str]:
    """
    Page through search results until the provider stops returning a
    continuation token or max_results ids have been collected.
    """
    ids: list[str] = []
    page_token: Optional[str] = None

    while True:
        page_ids, page_token = client.list_message_ids(
            query,
            max_results=min(PAGE_SIZE, max_results - len(ids)),
            page_token=page_token,
        )
        ids.extend(page_ids)
        if page_ids:
            logger.debug(f"Found {len(ids)} emails so far...")
        if not page_token or len(ids) >= max_results:
            break

    return ids[:max_results]


def parse_message_date(value: str) -> Optional[datetime]:
    """
    Parse a Date header ("Tue, 7 Jan 2026 09:21:00 -0500") or an ISO date.
    Returns None when neither form parses. Naive results are taken as UTC.
    """
    value = (value or "").strip()
    if not value:
        return None

    dt: Optional[datetime] = None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def sort_newest_first(emails: Sequence[ExportedEmail]) -> list[ExportedEmail]:
    # Unparsable dates go last and keep their relative order.
    dated: list[tuple[datetime, ExportedEmail]] = []
    undated: list[ExportedEmail] = []
    for e in emails:
        dt = parse_message_date(e.date)
        if dt is None:
            undated.append(e)
        else:
            dated.append((dt, e))

    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [e for _, e in dated] + undated


def _utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_summary(
    query: str,
    account: str,
    emails: Sequence[ExportedEmail],
    attachment_count: int,
) -> ExportSummary:
    """
    emails must already be sorted newest first.
    """
    dated = [e.date for e in emails if parse_message_date(e.date) is not None]
    if dated:
        newest, oldest = dated[0], dated[-1]
    elif emails:
        newest, oldest = emails[0].date, emails[-1].date
    else:
        newest = oldest = None

    senders = tuple(dict.fromkeys(e.from_ for e in emails))

    return ExportSummary(
        query=query,
        account=account,
        total=len(emails),
        attachments=attachment_count,
        oldest=oldest,
        newest=newest,
        senders=senders,
        exported_at=_utc_timestamp(),
    )


def _export_message(client: GmailClient, message_id: str, attachments_dir: Path) -> ExportedEmail:
    msg = client.get_message_full(message_id)
    payload = msg.get("payload", {}) or {}

    email = ExportedEmail(
        id=msg.get("id", message_id),
        thread_id=msg.get("threadId"),
        date=get_header(payload, "Date"),
        from_=get_header(payload, "From"),
        to=get_header(payload, "To"),
        subject=get_header(payload, "Subject"),
        snippet=msg.get("snippet", "") or "",
        labels=list(msg.get("labelIds", []) or []),
    )

    for att in find_attachments(payload):
        safe_name = saved_attachment_name(email.id, att.filename)
        try:
            data = client.get_attachment_bytes(email.id, att.attachment_id)
            (attachments_dir / safe_name).write_bytes(data)
        except Exception as e:
            # One bad attachment never costs the message or the run.
            logger.warning(f"Failed to download attachment {att.filename!r} from message {email.id}: {e}")
            continue

        email.attachments.append(
            SavedAttachment(
                filename=att.filename,
                mime_type=att.mime_type,
                size=att.size,
                saved_as=safe_name,
            )
        )

    return email


def search_emails(
    query: str,
    *,
    account: Optional[str] = DEFAULT_ALIAS,
    max_results: int = DEFAULT_MAX_RESULTS,
    output_dir: Optional[Path] = None,
    client: Optional[GmailClient] = None,
    progress: Optional[ProgressFn] = None,
) -> ExportResult:
    """
    Search the mailbox and export every match to output_dir:
      emails.json            messages, newest first
      summary.json           query, counts, date range, senders
      attachments/<id>_<name> raw attachment bytes

    Messages and attachments are fetched one at a time, in order.
    A search with no matches creates the directories and writes nothing else.
    """
    if max_results < 1:
        raise ValueError(f"max_results must be >= 1, got {max_results}")

    account = normalize_alias(account)
    client = client or authorize(account)
    output_dir = Path(output_dir) if output_dir is not None else exports_dir()

    logger.debug(f"Searching: {query!r} (max results: {max_results})")
    attachments_dir = ensure_export_dirs(output_dir)

    message_ids = collect_message_ids(client, query, max_results)
    logger.info(f"Total emails found: {len(message_ids)}")

    if not message_ids:
        return ExportResult(emails=[], summary=build_summary(query, account, [], 0))

    emails: list[ExportedEmail] = []
    for i, message_id in enumerate(message_ids, start=1):
        emails.append(_export_message(client, message_id, attachments_dir))
        if progress:
            progress(i, len(message_ids))

    emails = sort_newest_first(emails)
    attachment_count = sum(len(e.attachments) for e in emails)
    summary = build_summary(query, account, emails, attachment_count)

    write_json(output_dir / EMAILS_FILENAME, [e.to_dict() for e in emails])
    write_json(output_dir / SUMMARY_FILENAME, summary.to_dict())
    logger.debug(f"Exported {len(emails)} emails and {attachment_count} attachments to {output_dir}")

    return ExportResult(emails=emails, summary=summary)
