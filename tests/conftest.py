"""Shared fixtures for stakesync tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from stakesync.clock import FixedClock
from stakesync.models import (
    AppState,
    Interaction,
    InteractionType,
    Note,
    Provenance,
    Stakeholder,
)
from stakesync.persistence import LocalStateStore
from stakesync.surface import Surface


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now: datetime) -> FixedClock:
    """Starts at 2024-06-15T12:00:00.000Z and advances 1 ms per call."""
    return FixedClock(fixed_now)


@pytest.fixture
def alice() -> Stakeholder:
    return Stakeholder(
        id="s-alice",
        display_name="Alice Smith",
        email="alice@acme.com",
        created_at="2024-01-01T09:00:00.000Z",
        updated_at="2024-01-02T09:00:00.000Z",
        tags=("client", "sponsor"),
        notes=(Note(at="2024-01-02T09:00:00.000Z", text="Prefers email"),),
    )


@pytest.fixture
def nameless() -> Stakeholder:
    return Stakeholder(
        id="s-nameless",
        display_name="Unknown Stakeholder",
        created_at="2024-01-03T09:00:00.000Z",
        updated_at="2024-01-03T09:00:00.000Z",
    )


@pytest.fixture
def kickoff() -> Interaction:
    return Interaction(
        id="i-kickoff",
        type=InteractionType.MEETING,
        at="2024-01-04T15:00:00.000Z",
        title="Kickoff",
        participant_ids=("s-alice",),
        source=Provenance(surface=Surface.WEB, item_id="event-1"),
        summary="Scope agreed",
        suggested_next_actions=("Send recap",),
    )


@pytest.fixture
def sample_state(alice: Stakeholder, nameless: Stakeholder, kickoff: Interaction) -> AppState:
    return AppState(
        stakeholders=(nameless, alice),
        interactions=(kickoff,),
        updated_at="2024-01-04T16:00:00.000Z",
    )


@pytest.fixture
def local_store(tmp_path: Path) -> LocalStateStore:
    return LocalStateStore(tmp_path / "state")
