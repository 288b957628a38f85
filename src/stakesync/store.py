"""Entity store: pure functions from one AppState snapshot to the next.

Nothing here performs I/O or raises for structurally valid input. Every
operation returns a new snapshot (or the input itself when it is a no-op).
"""

from __future__ import annotations

import logging
from dataclasses import replace

from .clock import Clock, new_id, now_iso, parse_iso
from .models import AppState, Interaction, InteractionDraft, Note, Stakeholder

log = logging.getLogger(__name__)

UNKNOWN_STAKEHOLDER = "Unknown Stakeholder"
UNKNOWN_PARTICIPANT = "Unknown participant"


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def upsert_stakeholder_by_email(
    state: AppState,
    email: str | None,
    display_name: str | None,
    *,
    clock: Clock | None = None,
) -> tuple[AppState, Stakeholder]:
    """Return the stakeholder for ``email``, creating it if needed.

    Without an email there is no identity to dedupe on, so a new stakeholder
    is always created. An existing match keeps its email, notes and tags; only
    a non-empty ``display_name`` replaces its name.
    """
    clean_email = normalize_email(email)
    clean_name = (display_name or "").strip()
    now = now_iso(clock)

    if clean_email:
        for existing in state.stakeholders:
            if normalize_email(existing.email) == clean_email:
                updated = replace(
                    existing,
                    display_name=clean_name or existing.display_name,
                    updated_at=now,
                )
                stakeholders = tuple(
                    updated if s.id == existing.id else s for s in state.stakeholders
                )
                return replace(state, stakeholders=stakeholders), updated

    created = Stakeholder(
        id=new_id(),
        display_name=clean_name or clean_email or UNKNOWN_STAKEHOLDER,
        email=clean_email or None,
        created_at=now,
        updated_at=now,
    )
    log.debug("Created stakeholder %s (%s)", created.id, created.email or "no email")
    return replace(state, stakeholders=(created, *state.stakeholders)), created


def add_note(
    state: AppState,
    stakeholder_id: str,
    text: str | None,
    *,
    clock: Clock | None = None,
) -> AppState:
    clean = (text or "").strip()
    if not clean or find_stakeholder(state, stakeholder_id) is None:
        return state

    now = now_iso(clock)
    stakeholders = tuple(
        replace(s, updated_at=now, notes=(Note(at=now, text=clean), *s.notes))
        if s.id == stakeholder_id
        else s
        for s in state.stakeholders
    )
    return replace(state, stakeholders=stakeholders)


def add_interaction(
    state: AppState,
    draft: InteractionDraft,
    *,
    clock: Clock | None = None,
) -> AppState:
    """Append an interaction and touch the stakeholders it references.

    Participant ids that do not resolve are kept on the record but otherwise
    ignored.
    """
    participant_ids = tuple(dict.fromkeys(draft.participant_ids))
    interaction = Interaction.from_draft(
        new_id(), replace(draft, participant_ids=participant_ids)
    )

    now = now_iso(clock)
    linked = set(participant_ids)
    stakeholders = tuple(
        replace(s, last_interaction_at=interaction.at, updated_at=now)
        if s.id in linked
        else s
        for s in state.stakeholders
    )
    return replace(
        state,
        stakeholders=stakeholders,
        interactions=(interaction, *state.interactions),
    )


def reset_state(*, clock: Clock | None = None) -> AppState:
    return AppState(updated_at=now_iso(clock))


def find_stakeholder(state: AppState, stakeholder_id: str) -> Stakeholder | None:
    for s in state.stakeholders:
        if s.id == stakeholder_id:
            return s
    return None


def find_by_email(state: AppState, email: str | None) -> Stakeholder | None:
    needle = normalize_email(email)
    if not needle:
        return None
    for s in state.stakeholders:
        if normalize_email(s.email) == needle:
            return s
    return None


def stakeholders_by_recency(state: AppState) -> list[Stakeholder]:
    """Most recently touched first (last interaction, else last update)."""
    return sorted(
        state.stakeholders,
        key=lambda s: parse_iso(s.last_interaction_at or s.updated_at),
        reverse=True,
    )


def recent_interactions(state: AppState, limit: int | None = 15) -> list[Interaction]:
    ordered = sorted(state.interactions, key=lambda i: parse_iso(i.at), reverse=True)
    return ordered if limit is None else ordered[:limit]


def timeline(state: AppState, stakeholder_id: str) -> list[Interaction]:
    """All interactions involving one stakeholder, newest first."""
    return [
        i for i in recent_interactions(state, limit=None)
        if stakeholder_id in i.participant_ids
    ]


def resolve_participants(state: AppState, interaction: Interaction) -> list[str]:
    """Display names for an interaction's participants, in order."""
    names = []
    for pid in interaction.participant_ids:
        s = find_stakeholder(state, pid)
        names.append(s.display_name if s is not None else UNKNOWN_PARTICIPANT)
    return names
