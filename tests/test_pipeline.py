"""Tests for stakesync.pipeline — batch imports and captures."""

from __future__ import annotations

from stakesync.capture import capture_page_text, capture_slide_text
from stakesync.models import AppState, InteractionType, Provenance
from stakesync.outlook_export import (
    Address,
    OutlookEmail,
    OutlookEvent,
    parse_email_csv,
)
from stakesync.pipeline import (
    BATCH_LIMIT,
    EMAIL_NEXT_ACTIONS,
    MEETING_NEXT_ACTIONS,
    SLIDE_NEXT_ACTIONS,
    Participant,
    add_manual_note,
    capture_page,
    capture_slide,
    external_only,
    import_calendar_export,
    import_email_export,
    include_all,
    link_participants,
)
from stakesync.store import find_by_email, find_stakeholder
from stakesync.surface import Surface

INTERNAL = external_only(["bcg.com"])


def _email(n: int, sender: str | None = None, **kwargs) -> OutlookEmail:
    kwargs.setdefault("subject", f"Subject {n}")
    return OutlookEmail(
        id=f"email-{n}",
        sender=Address(address=sender or f"person{n}@acme.com", name=f"Person {n}"),
        **kwargs,
    )


def _inbox_csv(rows: int) -> str:
    lines = ["Subject,From,Received"]
    for n in range(1, rows + 1):
        lines.append(f"Update {n},Person {n} <person{n}@acme.com>,2024-01-05T10:00:00Z")
    return "\n".join(lines) + "\n"


class TestInclusion:
    def test_include_all(self):
        assert include_all("me@bcg.com")

    def test_external_only(self):
        assert INTERNAL("client@acme.com")
        assert not INTERNAL("me@bcg.com")
        assert not INTERNAL("me@eu.bcg.com")
        assert not INTERNAL("not-an-email")


class TestLinkParticipants:
    def test_filters_and_dedupes(self, clock):
        state, ids = link_participants(
            AppState(),
            [
                Participant("a@acme.com", "A"),
                Participant("me@bcg.com", "Me"),
                Participant("A@ACME.com", None),
            ],
            INTERNAL,
            clock=clock,
        )
        assert len(ids) == 1
        assert len(state.stakeholders) == 1
        assert state.stakeholders[0].display_name == "A"

    def test_existing_name_not_overwritten_by_bare_address(self, sample_state, clock):
        state, ids = link_participants(
            sample_state, [Participant("alice@acme.com")], include_all, clock=clock
        )
        assert ids == ("s-alice",)
        assert find_stakeholder(state, "s-alice").display_name == "Alice Smith"


class TestImportEmailExport:
    def test_inbox_row_with_display_name(self, clock):
        """One CSV row becomes a stakeholder, an email and a summary note."""
        emails = parse_email_csv(
            "Subject,From,Received\nKickoff,Jane Doe <jane@acme.com>,2024-01-05T10:00:00Z\n"
        )
        result = import_email_export(
            AppState(), emails, surface=Surface.WEB, include=INTERNAL, clock=clock
        )
        state = result.state

        assert len(state.stakeholders) == 1
        jane = state.stakeholders[0]
        assert jane.display_name == "Jane Doe"
        assert jane.email == "jane@acme.com"

        assert len(state.interactions) == 2
        summary, email = state.interactions
        assert email.type is InteractionType.EMAIL
        assert email.title == "Kickoff"
        assert email.at == "2024-01-05T10:00:00.000Z"
        assert email.participant_ids == (jane.id,)
        assert email.source == Provenance(surface=Surface.WEB, item_id="email-1")
        assert email.suggested_next_actions == EMAIL_NEXT_ACTIONS
        assert summary.type is InteractionType.NOTE
        assert summary.title == "Outlook Inbox export imported"
        assert summary.summary == "Imported 1 emails from CSV."
        assert summary.participant_ids == ()

        assert jane.last_interaction_at == "2024-01-05T10:00:00.000Z"
        assert (result.imported, result.skipped, result.total, result.dropped) == (1, 0, 1, 0)

    def test_internal_addresses_not_linked(self, clock):
        email = OutlookEmail(
            id="email-1",
            subject="Status",
            sender=Address("me@bcg.com", "Me"),
            to=(Address("client@acme.com", "Client"), Address("boss@bcg.com")),
        )
        state = import_email_export(
            AppState(), [email], surface=Surface.WEB, include=INTERNAL, clock=clock
        ).state
        assert [s.email for s in state.stakeholders] == ["client@acme.com"]

    def test_record_without_content_skipped(self, clock):
        empty = OutlookEmail(id="email-1", sender=Address("me@bcg.com"))
        result = import_email_export(
            AppState(), [empty], surface=Surface.WEB, include=INTERNAL, clock=clock
        )
        assert result.skipped == 1
        assert result.imported == 0
        # Only the summary note remains.
        assert [i.type for i in result.state.interactions] == [InteractionType.NOTE]
        assert result.state.interactions[0].summary == "Imported 1 emails from CSV."

    def test_missing_subject_uses_fallback_title(self, clock):
        email = OutlookEmail(id="email-1", sender=Address("x@acme.com"))
        state = import_email_export(AppState(), [email], surface=Surface.WEB, clock=clock).state
        assert state.interactions[1].title == "Email"

    def test_missing_date_uses_now(self, clock):
        state = import_email_export(AppState(), [_email(1)], surface=Surface.WEB, clock=clock).state
        assert state.interactions[1].at.startswith("2024-06-15T12:00:00")

    def test_batch_capped(self, clock):
        emails = [_email(n) for n in range(250)]
        result = import_email_export(AppState(), emails, surface=Surface.WEB, clock=clock)
        assert BATCH_LIMIT == 200
        assert result.imported == 200
        assert result.dropped == 50
        assert result.total == 250
        assert len(result.state.interactions) == 201
        assert len(result.state.stakeholders) == 200
        assert result.state.interactions[0].summary == "Imported 250 emails from CSV."

    def test_custom_limit(self, clock):
        emails = [_email(n) for n in range(5)]
        result = import_email_export(AppState(), emails, surface=Surface.WEB, limit=2, clock=clock)
        assert (result.imported, result.dropped) == (2, 3)

    def test_repeated_import_is_not_deduplicated(self, clock):
        """Importing the same export twice logs every row twice."""
        emails = parse_email_csv(_inbox_csv(200))
        first = import_email_export(AppState(), emails, surface=Surface.WEB, clock=clock)
        second = import_email_export(first.state, emails, surface=Surface.WEB, clock=clock)

        interactions = second.state.interactions
        email_rows = [i for i in interactions if i.type is InteractionType.EMAIL]
        assert len(email_rows) == 400
        assert len({i.id for i in email_rows}) == 400
        assert sorted(i.source.item_id for i in email_rows) == sorted(
            [f"email-{n}" for n in range(1, 201)] * 2
        )
        assert len([i for i in interactions if i.type is InteractionType.NOTE]) == 2
        # Stakeholders are still deduplicated by email.
        assert len(second.state.stakeholders) == 200

    def test_input_snapshot_untouched(self, sample_state, clock):
        before = sample_state.to_dict()
        import_email_export(sample_state, [_email(1)], surface=Surface.WEB, clock=clock)
        assert sample_state.to_dict() == before

    def test_existing_stakeholder_reused(self, sample_state, clock):
        email = _email(1, sender="alice@acme.com")
        state = import_email_export(sample_state, [email], surface=Surface.WEB, clock=clock).state
        assert len(state.stakeholders) == 2
        assert state.interactions[1].participant_ids == ("s-alice",)


class TestImportCalendarExport:
    def test_event_becomes_meeting(self, clock):
        event = OutlookEvent(
            id="event-1",
            subject="Steerco",
            start="2024-03-01T09:00:00.000Z",
            organizer=Address("pm@acme.com", "PM"),
            attendees=(Address("me@bcg.com"), Address("cfo@acme.com", "CFO")),
            body_preview="Agenda",
        )
        result = import_calendar_export(
            AppState(), [event], surface=Surface.ONENOTE, include=INTERNAL, clock=clock
        )
        summary, meeting = result.state.interactions
        assert meeting.type is InteractionType.MEETING
        assert meeting.title == "Steerco"
        assert meeting.summary == "Agenda"
        assert meeting.at == "2024-03-01T09:00:00.000Z"
        assert len(meeting.participant_ids) == 2
        assert meeting.suggested_next_actions == MEETING_NEXT_ACTIONS
        assert meeting.source.surface is Surface.ONENOTE
        assert summary.title == "Outlook Calendar export imported"
        assert summary.summary == "Imported 1 events from CSV."

    def test_untitled_event(self, clock):
        event = OutlookEvent(id="event-1", organizer=Address("pm@acme.com"))
        state = import_calendar_export(AppState(), [event], surface=Surface.WEB, clock=clock).state
        assert state.interactions[1].title == "Meeting"


class TestCapturePage:
    def test_external_addresses_only(self, clock):
        text = "Notes: bob@acme.com and again BOB@acme.com; cc alice@bcg.com"
        capture = capture_page_text(text, title="Weekly sync", page_id="page-1")
        state = capture_page(
            AppState(), capture, surface=Surface.ONENOTE, include=INTERNAL, clock=clock
        ).state

        assert len(state.stakeholders) == 1
        bob = state.stakeholders[0]
        assert bob.email == "bob@acme.com"
        assert find_by_email(state, "alice@bcg.com") is None

        note = state.interactions[0]
        assert note.type is InteractionType.NOTE
        assert note.title == "Weekly sync"
        assert note.summary == text
        assert note.participant_ids == (bob.id,)
        assert note.source == Provenance(surface=Surface.ONENOTE, item_id="page-1")
        assert len(state.interactions) == 1

    def test_page_without_addresses(self, clock):
        capture = capture_page_text("Just thoughts", title="Scratch")
        result = capture_page(AppState(), capture, surface=Surface.ONENOTE, clock=clock)
        assert result.state.stakeholders == ()
        assert result.state.interactions[0].participant_ids == ()
        assert result.imported == 1


class TestCaptureSlide:
    def test_slide_logged_as_note(self, clock):
        capture = capture_slide_text(["Title", "Body"], slide_id="slide-7")
        state = capture_slide(AppState(), capture, surface=Surface.POWERPOINT, clock=clock).state
        note = state.interactions[0]
        assert note.title == "PowerPoint slide captured"
        assert note.summary == "Title\n\nBody"
        assert note.source == Provenance(surface=Surface.POWERPOINT, item_id="slide-7")
        assert note.suggested_next_actions == SLIDE_NEXT_ACTIONS

    def test_long_slide_truncated(self, clock):
        capture = capture_slide_text(["x" * 800])
        state = capture_slide(AppState(), capture, surface=Surface.POWERPOINT, clock=clock).state
        assert len(state.interactions[0].summary) == 500


class TestAddManualNote:
    def test_delegates_to_store(self, sample_state, clock):
        state = add_manual_note(sample_state, "s-alice", "Met at offsite", clock=clock)
        assert find_stakeholder(state, "s-alice").notes[0].text == "Met at offsite"
        assert state.interactions == sample_state.interactions
