"""Whole-snapshot, last-writer-wins arbitration between two copies of state."""

from __future__ import annotations

from .clock import parse_iso
from .models import AppState


def state_recency(state: AppState) -> float:
    """Latest timestamp found anywhere in the snapshot, in epoch millis.

    Missing or unparseable stamps count as zero.
    """
    latest = max(0.0, parse_iso(state.updated_at))
    for s in state.stakeholders:
        latest = max(latest, parse_iso(s.created_at), parse_iso(s.updated_at))
    for i in state.interactions:
        latest = max(latest, parse_iso(i.at))
    return latest


def should_adopt(local: AppState, remote: AppState | None) -> bool:
    """True only when ``remote`` is strictly newer; ties keep the local copy."""
    if remote is None:
        return False
    return state_recency(remote) > state_recency(local)


def choose(local: AppState, remote: AppState | None) -> AppState:
    return remote if should_adopt(local, remote) else local
