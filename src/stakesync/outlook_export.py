"""Parse user-exported Outlook CSV files (Inbox and Calendar).

Column names vary between Outlook versions and locales, so each field is
looked up from a list of candidate headers.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import getaddresses, parseaddr
from pathlib import Path

from .clock import format_iso, parse_datetime
from .errors import CsvImportError

log = logging.getLogger(__name__)

DEFAULT_INTERNAL_DOMAINS = ("bcg.com",)
_BODY_PREVIEW_CHARS = 500

_DATE_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%a %m/%d/%Y %I:%M %p",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%d %B %Y %H:%M",
    "%B %d, %Y %I:%M %p",
)

_EMAIL_SUBJECT = ["Subject"]
_EMAIL_FROM_NAME = ["From", "Sender", "From (Name)", "From: (Name)"]
_EMAIL_FROM_ADDRESS = [
    "From (Address)", "From: (Address)", "Sender Address", "From Address",
    "E-mail Address", "Email Address",
]
_EMAIL_TO = ["To", "To: (Name)", "To (Name)", "To Recipients"]
_EMAIL_CC = ["Cc", "Cc: (Name)", "Cc (Name)"]
_EMAIL_RECEIVED = [
    "Received", "Received Time", "Received Date", "Date/Time Sent", "Sent", "Sent Time",
]
_BODY = ["Body", "Body Preview", "BodyPreview", "Preview", "Description", "Notes"]

_EVENT_SUBJECT = ["Subject", "Title"]
_EVENT_START = ["Start Date", "Start", "Start Date/Time", "Begin"]
_EVENT_START_TIME = ["Start Time"]
_EVENT_END = ["End Date", "End", "End Date/Time", "Finish"]
_EVENT_END_TIME = ["End Time"]
_EVENT_ORGANIZER = ["Organizer", "Meeting Organizer", "From"]
_EVENT_ATTENDEES = ["Required Attendees", "Attendees", "Invitees", "To", "Optional Attendees"]


@dataclass(frozen=True)
class Address:
    address: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class OutlookEmail:
    id: str
    subject: str | None = None
    sender: Address | None = None
    to: tuple[Address, ...] = ()
    cc: tuple[Address, ...] = ()
    received_at: str | None = None
    body_preview: str | None = None

    def to_dict(self) -> dict:
        """Shape sent to the impact endpoint as recent inbox context."""
        return {
            "subject": self.subject,
            "from": (self.sender.address or self.sender.name) if self.sender else None,
            "bodyPreview": self.body_preview,
            "receivedDateTime": self.received_at,
        }


@dataclass(frozen=True)
class OutlookEvent:
    id: str
    subject: str | None = None
    start: str | None = None
    end: str | None = None
    organizer: Address | None = None
    attendees: tuple[Address, ...] = field(default_factory=tuple)
    body_preview: str | None = None


def is_external_email(email: str | None, internal_domains: Iterable[str] = DEFAULT_INTERNAL_DOMAINS) -> bool:
    """True for a well-formed address outside every internal domain (and its subdomains)."""
    e = (email or "").strip().lower()
    if not e or "@" not in e:
        return False
    domain = e.rsplit("@", 1)[1]
    internal = [d.strip().lower() for d in internal_domains]
    return not any(domain == d or domain.endswith(f".{d}") for d in internal)


def _norm_header(header: str | None) -> str:
    return re.sub(r"\s+", " ", str(header or "").strip().lower())


def _pick(row: dict[str, str], headers: dict[str, str], candidates: list[str]) -> str | None:
    """First non-blank value among the candidate columns."""
    for candidate in candidates:
        key = headers.get(_norm_header(candidate))
        if key is None:
            continue
        value = row.get(key)
        if value is not None and str(value).strip():
            return str(value)
    return None


def split_addresses(value: str | None) -> list[Address]:
    """Split an Outlook recipient cell (``;``, ``,`` or newline separated)."""
    text = (value or "").strip()
    if not text:
        return []
    results = []
    for part in re.split(r"[;,\n]", text):
        part = part.strip()
        if not part:
            continue
        name, address = parseaddr(part)
        if address and "@" in address:
            results.append(Address(address=address.strip(), name=name.strip() or None))
        else:
            results.append(Address(address=None, name=part.strip('"')))
    return results


def _parse_sender(name_cell: str | None, address_cell: str | None) -> Address | None:
    if not name_cell and not address_cell:
        return None
    name, address = None, None
    if name_cell:
        parsed = getaddresses([name_cell])
        display, addr = parsed[0] if parsed else ("", "")
        if addr and "@" in addr:
            name, address = display.strip() or None, addr.strip()
        else:
            name = name_cell.strip()
    if address_cell:
        address = address_cell.strip()
    return Address(address=address, name=name)


def parse_csv_datetime(value: str, *, row_label: str) -> str:
    """Normalize an exported date to ISO-8601 UTC; raise if unparseable."""
    text = value.strip()
    parsed = parse_datetime(text)
    if parsed is None:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
                break
            except ValueError:
                continue
    if parsed is None:
        raise CsvImportError(f"{row_label}: unparseable date {value!r}")
    try:
        return format_iso(parsed)
    except (ValueError, OverflowError):
        raise CsvImportError(f"{row_label}: unparseable date {value!r}") from None


def _read_rows(text: str) -> tuple[list[dict[str, str]], dict[str, str]]:
    try:
        reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
        rows = [
            row for row in reader
            if row and any(v and str(v).strip() for k, v in row.items() if k is not None)
        ]
    except csv.Error as e:
        raise CsvImportError(f"Invalid CSV: {e}") from None
    headers = {
        _norm_header(h): h for h in (reader.fieldnames or []) if h is not None
    }
    return rows, headers


def _preview(body: str | None) -> str | None:
    return body[:_BODY_PREVIEW_CHARS] if body else None


def _join_date_time(date_part: str | None, time_part: str | None) -> str | None:
    if date_part and time_part:
        return f"{date_part.strip()} {time_part.strip()}"
    return date_part


def parse_email_csv(text: str) -> list[OutlookEmail]:
    """Parse an exported mail folder into normalized email records."""
    rows, headers = _read_rows(text)
    emails = []
    for idx, row in enumerate(rows, start=1):
        received = _pick(row, headers, _EMAIL_RECEIVED)
        emails.append(
            OutlookEmail(
                id=f"email-{idx}",
                subject=_pick(row, headers, _EMAIL_SUBJECT),
                sender=_parse_sender(
                    _pick(row, headers, _EMAIL_FROM_NAME),
                    _pick(row, headers, _EMAIL_FROM_ADDRESS),
                ),
                to=tuple(split_addresses(_pick(row, headers, _EMAIL_TO))),
                cc=tuple(split_addresses(_pick(row, headers, _EMAIL_CC))),
                received_at=parse_csv_datetime(received, row_label=f"Row {idx}") if received else None,
                body_preview=_preview(_pick(row, headers, _BODY)),
            )
        )
    log.debug("Parsed %d emails from CSV", len(emails))
    return emails


def parse_calendar_csv(text: str) -> list[OutlookEvent]:
    """Parse an exported calendar into normalized event records."""
    rows, headers = _read_rows(text)
    events = []
    for idx, row in enumerate(rows, start=1):
        label = f"Row {idx}"
        start = _join_date_time(
            _pick(row, headers, _EVENT_START), _pick(row, headers, _EVENT_START_TIME)
        )
        end = _join_date_time(
            _pick(row, headers, _EVENT_END), _pick(row, headers, _EVENT_END_TIME)
        )
        organizer_cell = _pick(row, headers, _EVENT_ORGANIZER)
        organizer = None
        if organizer_cell:
            found = split_addresses(organizer_cell)
            if found and found[0].address:
                organizer = found[0]
            else:
                organizer = Address(name=organizer_cell.strip())
        events.append(
            OutlookEvent(
                id=f"event-{idx}",
                subject=_pick(row, headers, _EVENT_SUBJECT),
                start=parse_csv_datetime(start, row_label=label) if start else None,
                end=parse_csv_datetime(end, row_label=label) if end else None,
                organizer=organizer,
                attendees=tuple(split_addresses(_pick(row, headers, _EVENT_ATTENDEES))),
                body_preview=_preview(_pick(row, headers, _BODY)),
            )
        )
    log.debug("Parsed %d events from CSV", len(events))
    return events


def read_csv_file(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise CsvImportError(f"Cannot read {path}: {e}") from None
