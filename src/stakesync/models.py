"""Data models for stakeholders, interactions and the persisted app state.

Snapshots are frozen dataclasses; the store derives new ones with
``dataclasses.replace`` and never mutates an existing snapshot. Timestamps are
kept as ISO-8601 strings exactly as persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .surface import Surface


class InteractionType(str, Enum):
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"

    @classmethod
    def coerce(cls, value: Any) -> InteractionType:
        try:
            return cls(value)
        except ValueError:
            return cls.NOTE


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v) for v in value if v is not None)


@dataclass(frozen=True)
class Note:
    at: str
    text: str

    def to_dict(self) -> dict:
        return {"at": self.at, "text": self.text}

    @classmethod
    def from_dict(cls, raw: dict) -> Note:
        return cls(at=str(raw.get("at", "")), text=str(raw.get("text", "")))


@dataclass(frozen=True)
class Stakeholder:
    id: str
    display_name: str
    created_at: str
    updated_at: str
    email: str | None = None
    tags: tuple[str, ...] = ()
    last_interaction_at: str | None = None
    notes: tuple[Note, ...] = ()  # newest first
    title: str | None = None
    company: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "id": self.id,
            "displayName": self.display_name,
            "tags": list(self.tags),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "notes": [n.to_dict() for n in self.notes],
        }
        if self.email is not None:
            data["email"] = self.email
        if self.last_interaction_at is not None:
            data["lastInteractionAt"] = self.last_interaction_at
        if self.title is not None:
            data["title"] = self.title
        if self.company is not None:
            data["company"] = self.company
        return data

    @classmethod
    def from_dict(cls, raw: dict) -> Stakeholder:
        notes = raw.get("notes") or []
        return cls(
            id=str(raw.get("id", "")),
            display_name=str(raw.get("displayName", "") or ""),
            created_at=str(raw.get("createdAt", "") or ""),
            updated_at=str(raw.get("updatedAt", "") or ""),
            email=_str_or_none(raw.get("email")),
            tags=tuple(dict.fromkeys(_str_tuple(raw.get("tags")))),
            last_interaction_at=_str_or_none(raw.get("lastInteractionAt")),
            notes=tuple(Note.from_dict(n) for n in notes if isinstance(n, dict)),
            title=_str_or_none(raw.get("title")),
            company=_str_or_none(raw.get("company")),
        )


# Keys older exports used for the source item id, one per surface.
_LEGACY_ITEM_KEYS = ("outlookItemId", "onenotePageId", "powerpointSlideId", "webContextId")


@dataclass(frozen=True)
class Provenance:
    """Which surface produced an interaction, and from which source item."""

    surface: Surface
    item_id: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"host": self.surface.value}
        if self.item_id is not None:
            data["itemId"] = self.item_id
        return data

    @classmethod
    def from_dict(cls, raw: dict | None) -> Provenance:
        raw = raw if isinstance(raw, dict) else {}
        try:
            surface = Surface.parse(raw.get("host", ""))
        except ValueError:
            surface = Surface.WEB
        item_id = raw.get("itemId")
        if item_id is None:
            for key in _LEGACY_ITEM_KEYS:
                if raw.get(key) is not None:
                    item_id = raw[key]
                    break
        return cls(surface=surface, item_id=_str_or_none(item_id))


@dataclass(frozen=True)
class InteractionDraft:
    """An interaction before the store has assigned it an id."""

    type: InteractionType
    at: str
    title: str
    source: Provenance
    participant_ids: tuple[str, ...] = ()
    summary: str | None = None
    suggested_next_actions: tuple[str, ...] = ()


@dataclass(frozen=True)
class Interaction:
    id: str
    type: InteractionType
    at: str
    title: str
    source: Provenance
    participant_ids: tuple[str, ...] = ()
    summary: str | None = None
    suggested_next_actions: tuple[str, ...] = ()

    @classmethod
    def from_draft(cls, interaction_id: str, draft: InteractionDraft) -> Interaction:
        return cls(
            id=interaction_id,
            type=draft.type,
            at=draft.at,
            title=draft.title,
            source=draft.source,
            participant_ids=draft.participant_ids,
            summary=draft.summary,
            suggested_next_actions=draft.suggested_next_actions,
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "at": self.at,
            "title": self.title,
            "participantIds": list(self.participant_ids),
            "source": self.source.to_dict(),
        }
        if self.summary is not None:
            data["summary"] = self.summary
        if self.suggested_next_actions:
            data["suggestedNextActions"] = list(self.suggested_next_actions)
        return data

    @classmethod
    def from_dict(cls, raw: dict) -> Interaction:
        return cls(
            id=str(raw.get("id", "")),
            type=InteractionType.coerce(raw.get("type")),
            at=str(raw.get("at", "") or ""),
            title=str(raw.get("title", "") or ""),
            source=Provenance.from_dict(raw.get("source")),
            participant_ids=_str_tuple(raw.get("participantIds")),
            summary=_str_or_none(raw.get("summary")),
            suggested_next_actions=_str_tuple(raw.get("suggestedNextActions")),
        )


@dataclass(frozen=True)
class AppState:
    """Aggregate root: the unit of persistence and of reconciliation."""

    stakeholders: tuple[Stakeholder, ...] = field(default_factory=tuple)
    interactions: tuple[Interaction, ...] = field(default_factory=tuple)
    updated_at: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "stakeholders": [s.to_dict() for s in self.stakeholders],
            "interactions": [i.to_dict() for i in self.interactions],
        }
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, raw: Any) -> AppState:
        """Tolerant read: absent or malformed collections become empty."""
        if not isinstance(raw, dict):
            return cls()
        stakeholders = raw.get("stakeholders")
        interactions = raw.get("interactions")
        if not isinstance(stakeholders, list):
            stakeholders = []
        if not isinstance(interactions, list):
            interactions = []
        return cls(
            stakeholders=tuple(
                Stakeholder.from_dict(s) for s in stakeholders if isinstance(s, dict)
            ),
            interactions=tuple(
                Interaction.from_dict(i) for i in interactions if isinstance(i, dict)
            ),
            updated_at=_str_or_none(raw.get("updatedAt")),
        )
