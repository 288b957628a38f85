"""Which surface the tool is running in, and what each surface offers."""

from __future__ import annotations

from enum import Enum


class Surface(str, Enum):
    WEB = "Web"
    OUTLOOK = "Outlook"
    ONENOTE = "OneNote"
    POWERPOINT = "PowerPoint"

    @classmethod
    def parse(cls, value: str) -> Surface:
        """Look up a surface by name or value, case-insensitively."""
        needle = str(value or "").strip().lower()
        for surface in cls:
            if needle in (surface.value.lower(), surface.name.lower()):
                return surface
        choices = ", ".join(s.value for s in cls)
        raise ValueError(f"Unknown surface {value!r} (expected one of: {choices})")


class Flow(str, Enum):
    """Ingestion flows a surface can expose."""

    CSV_IMPORT = "csv_import"
    PAGE_CAPTURE = "page_capture"
    SLIDE_CAPTURE = "slide_capture"
    IMPACT_ANALYSIS = "impact_analysis"


def surface_label(surface: Surface) -> str:
    match surface:
        case Surface.WEB:
            return "Web app"
        case Surface.OUTLOOK:
            return "Outlook"
        case Surface.ONENOTE:
            return "OneNote"
        case Surface.POWERPOINT:
            return "PowerPoint"
    raise ValueError(f"Unhandled surface: {surface!r}")


def capabilities(surface: Surface) -> frozenset[Flow]:
    match surface:
        case Surface.WEB:
            return frozenset({Flow.CSV_IMPORT})
        case Surface.OUTLOOK:
            return frozenset()
        case Surface.ONENOTE:
            return frozenset({Flow.CSV_IMPORT, Flow.PAGE_CAPTURE})
        case Surface.POWERPOINT:
            return frozenset({Flow.CSV_IMPORT, Flow.SLIDE_CAPTURE, Flow.IMPACT_ANALYSIS})
    raise ValueError(f"Unhandled surface: {surface!r}")


def supports(surface: Surface, flow: Flow) -> bool:
    return flow in capabilities(surface)
