"""Tests for stakesync.capture."""

from __future__ import annotations

import pytest

from stakesync.capture import (
    capture_page_text,
    capture_slide_text,
    extract_emails,
    read_capture_file,
)
from stakesync.errors import CaptureError


class TestExtractEmails:
    def test_lowercased_and_deduplicated_in_order(self):
        text = "Ping Bob@Acme.com, then alice@bcg.com, then bob@acme.com again."
        assert extract_emails(text) == ["bob@acme.com", "alice@bcg.com"]

    def test_none_found(self):
        assert extract_emails("no addresses here @ all") == []
        assert extract_emails("") == []

    def test_plus_and_subdomains(self):
        assert extract_emails("x+tag@mail.acme.co.uk") == ["x+tag@mail.acme.co.uk"]


class TestCapturePageText:
    def test_sample_and_emails(self):
        capture = capture_page_text("  hello bob@acme.com  ", title="Page", page_id="p1")
        assert capture.title == "Page"
        assert capture.extracted_text_sample == "hello bob@acme.com"
        assert capture.extracted_emails == ("bob@acme.com",)
        assert capture.page_id == "p1"

    def test_sample_truncated(self):
        capture = capture_page_text("a" * 2000)
        assert len(capture.extracted_text_sample) == 500

    def test_emails_beyond_sample_still_found(self):
        capture = capture_page_text("a" * 600 + " late@acme.com")
        assert capture.extracted_emails == ("late@acme.com",)

    def test_untitled(self):
        assert capture_page_text("x", title="  ").title == "(untitled page)"


class TestCaptureSlideText:
    def test_joins_non_blank_shapes(self):
        capture = capture_slide_text(["Title ", "", None, "  ", "Body"], slide_id="7")
        assert capture.slide_text == "Title\n\nBody"
        assert capture.slide_id == "7"

    def test_empty_slide_raises(self):
        with pytest.raises(CaptureError, match="No slide text"):
            capture_slide_text(["", "   "])


class TestReadCaptureFile:
    def test_reads(self, tmp_path):
        path = tmp_path / "page.txt"
        path.write_text("content", encoding="utf-8")
        assert read_capture_file(path) == "content"

    def test_missing(self, tmp_path):
        with pytest.raises(CaptureError, match="Cannot read"):
            read_capture_file(tmp_path / "missing.txt")
