"""Exceptions surfaced to callers of the ingestion and import entry points."""

from __future__ import annotations


class StakesyncError(Exception):
    """Base class for user-visible failures."""


class StateImportError(StakesyncError):
    """An exported state file could not be parsed."""


class CsvImportError(StakesyncError):
    """A CSV export could not be read or one of its fields was unparseable."""


class CaptureError(StakesyncError):
    """A document or slide capture had nothing to read or failed."""


class ImpactAnalysisError(StakesyncError):
    """The stakeholder-impact request failed."""
