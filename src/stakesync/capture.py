"""Normalize captured document and slide text into opaque records."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .errors import CaptureError

log = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
_SAMPLE_CHARS = 500


@dataclass(frozen=True)
class PageCapture:
    title: str
    extracted_text_sample: str
    extracted_emails: tuple[str, ...] = ()
    page_id: str | None = None


@dataclass(frozen=True)
class SlideCapture:
    slide_id: str | None
    slide_text: str


def extract_emails(text: str) -> list[str]:
    """Lower-cased addresses found in ``text``, first occurrence order, no repeats."""
    found = (m.lower() for m in _EMAIL_RE.findall(text or ""))
    return list(dict.fromkeys(found))


def capture_page_text(text: str, *, title: str | None = None, page_id: str | None = None) -> PageCapture:
    capture = PageCapture(
        title=(title or "").strip() or "(untitled page)",
        extracted_text_sample=(text or "").strip()[:_SAMPLE_CHARS],
        extracted_emails=tuple(extract_emails(text)),
        page_id=page_id,
    )
    log.debug("Captured page %r with %d emails", capture.title, len(capture.extracted_emails))
    return capture


def capture_slide_text(shape_texts: Iterable[str | None], *, slide_id: str | None = None) -> SlideCapture:
    """Join the non-blank text of every shape on a slide."""
    texts = [t.strip() for t in shape_texts if isinstance(t, str) and t.strip()]
    if not texts:
        raise CaptureError("No slide text found on the current slide.")
    return SlideCapture(slide_id=slide_id, slide_text="\n\n".join(texts))


def read_capture_file(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CaptureError(f"Cannot read {path}: {e}") from None
