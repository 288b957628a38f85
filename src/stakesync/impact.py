"""Predicted stakeholder reactions to a slide, from the text-generation API.

The model's reasoning is not validated. Only two things are enforced on the
response: every row must name a known stakeholder, and the reaction is
``"red"`` only when the model said exactly that.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import ImpactAnalysisError
from .models import AppState, Stakeholder
from .outlook_export import OutlookEmail
from .store import find_stakeholder

log = logging.getLogger(__name__)

_IMPACT_ENDPOINT = "/api/openai/stakeholder-impact"


@dataclass(frozen=True)
class ImpactRow:
    stakeholder_id: str
    display_name: str
    reaction: str  # "green" | "red"
    email: str | None = None
    rationale: str | None = None


def resolve_impacts(state: AppState, response: Any) -> list[ImpactRow]:
    """Keep only impacts that reference a stakeholder in ``state``."""
    impacts = response.get("impacts") if isinstance(response, dict) else None
    if not isinstance(impacts, list):
        return []

    rows = []
    for item in impacts:
        if not isinstance(item, dict):
            continue
        stakeholder = find_stakeholder(state, str(item.get("stakeholderId", "")))
        if stakeholder is None:
            log.debug("Dropping impact for unknown stakeholder %r", item.get("stakeholderId"))
            continue
        rationale = item.get("rationale")
        rows.append(
            ImpactRow(
                stakeholder_id=stakeholder.id,
                display_name=stakeholder.display_name,
                email=stakeholder.email,
                reaction="red" if item.get("reaction") == "red" else "green",
                rationale=str(rationale) if rationale is not None else None,
            )
        )
    return rows


def _stakeholder_payload(s: Stakeholder) -> dict:
    return {
        "id": s.id,
        "displayName": s.display_name,
        "email": s.email,
        "notes": [n.to_dict() for n in s.notes],
        "tags": list(s.tags),
    }


class ImpactClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def analyze(
        self,
        stakeholders: Sequence[Stakeholder],
        slide_text: str,
        emails: Sequence[OutlookEmail] = (),
    ) -> dict:
        payload = {
            "stakeholders": [_stakeholder_payload(s) for s in stakeholders],
            "slideText": slide_text,
            "emails": [e.to_dict() for e in emails],
        }
        try:
            resp = self._client.post(f"{self.base_url}{_IMPACT_ENDPOINT}", json=payload)
        except httpx.HTTPError as e:
            raise ImpactAnalysisError(f"Impact request failed: {e}") from e
        if not resp.is_success:
            raise ImpactAnalysisError(f"API error {resp.status_code}: {resp.text}")
        try:
            data = resp.json()
        except ValueError:
            raise ImpactAnalysisError("API returned a non-JSON response") from None
        return data if isinstance(data, dict) else {}

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def analyze_slide_impact(
    state: AppState,
    slide_text: str,
    client: ImpactClient,
    emails: Sequence[OutlookEmail] = (),
) -> list[ImpactRow]:
    if not (slide_text or "").strip():
        raise ImpactAnalysisError("No slide text captured yet. Read the current slide first.")
    response = client.analyze(state.stakeholders, slide_text, emails)
    rows = resolve_impacts(state, response)
    log.info("Impact analysis returned %d rows", len(rows))
    return rows
