"""Mutation pipeline: every ingestion flow funnels through the same steps.

external record -> participants -> inclusion filter -> stakeholder upsert
-> one interaction per record -> (for batches) one summary note.

Functions here are pure like the store: they take a snapshot and return an
``IngestResult`` carrying the new one. Committing it is the engine's job.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from .capture import PageCapture, SlideCapture
from .clock import Clock, now_iso
from .models import AppState, InteractionDraft, InteractionType, Provenance
from .outlook_export import (
    DEFAULT_INTERNAL_DOMAINS,
    Address,
    OutlookEmail,
    OutlookEvent,
    is_external_email,
)
from .store import add_interaction, add_note, upsert_stakeholder_by_email
from .surface import Surface

log = logging.getLogger(__name__)

# Batches are processed synchronously; records past this cap are dropped and
# reported back in ``IngestResult.dropped``.
BATCH_LIMIT = 200

EMAIL_NEXT_ACTIONS = ("Send follow-up", "Confirm next steps", "Schedule check-in")
MEETING_NEXT_ACTIONS = ("Confirm decisions", "Send recap", "Assign owners")
PAGE_NEXT_ACTIONS = ("Capture decisions", "Assign owners", "Schedule follow-ups")
SLIDE_NEXT_ACTIONS = ("Validate stakeholder reactions", "Adjust storyline", "Prep pre-wires")

InclusionPredicate = Callable[[str], bool]


@dataclass(frozen=True)
class Participant:
    address: str
    name: str | None = None


@dataclass(frozen=True)
class NormalizedRecord:
    """One external item reduced to what the pipeline needs."""

    participants: tuple[Participant, ...]
    title: str | None = None
    summary: str | None = None
    at: str | None = None
    item_id: str | None = None


@dataclass(frozen=True)
class IngestResult:
    state: AppState
    imported: int = 0
    skipped: int = 0
    total: int = 0
    dropped: int = 0


def include_all(_address: str) -> bool:
    return True


def external_only(internal_domains: Iterable[str] = DEFAULT_INTERNAL_DOMAINS) -> InclusionPredicate:
    domains = tuple(internal_domains)

    def _include(address: str) -> bool:
        return is_external_email(address, domains)

    return _include


def _participants(addresses: Iterable[Address | None]) -> tuple[Participant, ...]:
    found = []
    for a in addresses:
        if a is None or not a.address:
            continue
        found.append(Participant(address=a.address, name=a.name))
    return tuple(found)


def email_record(email: OutlookEmail) -> NormalizedRecord:
    return NormalizedRecord(
        participants=_participants([email.sender, *email.to, *email.cc]),
        title=email.subject,
        summary=email.body_preview,
        at=email.received_at,
        item_id=email.id,
    )


def event_record(event: OutlookEvent) -> NormalizedRecord:
    return NormalizedRecord(
        participants=_participants([event.organizer, *event.attendees]),
        title=event.subject,
        summary=event.body_preview,
        at=event.start,
        item_id=event.id,
    )


def link_participants(
    state: AppState,
    participants: Iterable[Participant],
    include: InclusionPredicate,
    *,
    clock: Clock | None = None,
) -> tuple[AppState, tuple[str, ...]]:
    """Upsert every included participant; return their ids in order."""
    ids: list[str] = []
    for p in participants:
        if not include(p.address):
            continue
        state, stakeholder = upsert_stakeholder_by_email(
            state, p.address, p.name, clock=clock
        )
        if stakeholder.id not in ids:
            ids.append(stakeholder.id)
    return state, tuple(ids)


def ingest_records(
    state: AppState,
    records: Sequence[NormalizedRecord],
    *,
    kind: InteractionType,
    surface: Surface,
    include: InclusionPredicate = include_all,
    fallback_title: str,
    next_actions: Sequence[str] = (),
    summary_title: str,
    summary_text: str,
    limit: int = BATCH_LIMIT,
    clock: Clock | None = None,
) -> IngestResult:
    """Append one interaction per record, then one summary note.

    Only the first ``limit`` records are processed. A record with no title,
    no summary and no included participants produces nothing. Repeated
    imports of the same file are not deduplicated.
    """
    working = state
    imported = skipped = 0
    for record in records[:limit]:
        working, participant_ids = link_participants(
            working, record.participants, include, clock=clock
        )
        if not record.title and not record.summary and not participant_ids:
            skipped += 1
            continue
        working = add_interaction(
            working,
            InteractionDraft(
                type=kind,
                at=record.at or now_iso(clock),
                title=record.title or fallback_title,
                summary=record.summary,
                participant_ids=participant_ids,
                source=Provenance(surface=surface, item_id=record.item_id),
                suggested_next_actions=tuple(next_actions),
            ),
            clock=clock,
        )
        imported += 1

    working = add_interaction(
        working,
        InteractionDraft(
            type=InteractionType.NOTE,
            at=now_iso(clock),
            title=summary_title,
            summary=summary_text,
            source=Provenance(surface=surface),
        ),
        clock=clock,
    )

    dropped = max(0, len(records) - limit)
    if dropped:
        log.warning(
            "Processed the first %d of %d records; %d were not imported",
            limit, len(records), dropped,
        )
    log.info("Imported %d %s interactions (%d skipped)", imported, kind.value, skipped)
    return IngestResult(
        state=working, imported=imported, skipped=skipped, total=len(records), dropped=dropped
    )


def import_email_export(
    state: AppState,
    emails: Sequence[OutlookEmail],
    *,
    surface: Surface,
    include: InclusionPredicate = include_all,
    limit: int = BATCH_LIMIT,
    clock: Clock | None = None,
) -> IngestResult:
    return ingest_records(
        state,
        [email_record(e) for e in emails],
        kind=InteractionType.EMAIL,
        surface=surface,
        include=include,
        fallback_title="Email",
        next_actions=EMAIL_NEXT_ACTIONS,
        summary_title="Outlook Inbox export imported",
        summary_text=f"Imported {len(emails)} emails from CSV.",
        limit=limit,
        clock=clock,
    )


def import_calendar_export(
    state: AppState,
    events: Sequence[OutlookEvent],
    *,
    surface: Surface,
    include: InclusionPredicate = include_all,
    limit: int = BATCH_LIMIT,
    clock: Clock | None = None,
) -> IngestResult:
    return ingest_records(
        state,
        [event_record(e) for e in events],
        kind=InteractionType.MEETING,
        surface=surface,
        include=include,
        fallback_title="Meeting",
        next_actions=MEETING_NEXT_ACTIONS,
        summary_title="Outlook Calendar export imported",
        summary_text=f"Imported {len(events)} events from CSV.",
        limit=limit,
        clock=clock,
    )


def capture_page(
    state: AppState,
    capture: PageCapture,
    *,
    surface: Surface,
    include: InclusionPredicate = include_all,
    clock: Clock | None = None,
) -> IngestResult:
    """Log a captured page as a note linking the addresses found on it."""
    working, participant_ids = link_participants(
        state,
        (Participant(address=e) for e in capture.extracted_emails),
        include,
        clock=clock,
    )
    summary = capture.extracted_text_sample.strip() or (
        f"Captured {len(participant_ids)} external emails from OneNote page."
    )
    working = add_interaction(
        working,
        InteractionDraft(
            type=InteractionType.NOTE,
            at=now_iso(clock),
            title=capture.title or "OneNote page",
            summary=summary,
            participant_ids=participant_ids,
            source=Provenance(surface=surface, item_id=capture.page_id),
            suggested_next_actions=PAGE_NEXT_ACTIONS,
        ),
        clock=clock,
    )
    return IngestResult(state=working, imported=1, total=1)


def capture_slide(
    state: AppState,
    capture: SlideCapture,
    *,
    surface: Surface,
    clock: Clock | None = None,
) -> IngestResult:
    working = add_interaction(
        state,
        InteractionDraft(
            type=InteractionType.NOTE,
            at=now_iso(clock),
            title="PowerPoint slide captured",
            summary=capture.slide_text[:500],
            source=Provenance(surface=surface, item_id=capture.slide_id),
            suggested_next_actions=SLIDE_NEXT_ACTIONS,
        ),
        clock=clock,
    )
    return IngestResult(state=working, imported=1, total=1)


def add_manual_note(
    state: AppState,
    stakeholder_id: str,
    text: str,
    *,
    clock: Clock | None = None,
) -> AppState:
    return add_note(state, stakeholder_id, text, clock=clock)
