"""Tests for the summarize-from-URL flow."""

import asyncio

import requests

from conftest import FakeGenerator

from rfp_triage.core.guarded_call import CauseKind, ResultKind
from rfp_triage.core.schemas import SummarizeRFPFromURLOutput, SummarizeRFPPromptInput
from rfp_triage.flows import summarize
from rfp_triage.flows.summarize import SUMMARY_FALLBACK, fetch_rfp_content, summarize_rfp_from_url

URL = "https://example.com/rfp-007.txt"


class FakeResponse:
    def __init__(self, text, status_error=None):
        self.text = text
        self._status_error = status_error

    def raise_for_status(self):
        if self._status_error:
            raise self._status_error


def test_fetch_rfp_content_truncates(monkeypatch):
    """Test that long documents are cut to the prompt limit."""
    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse("x" * 50_000))
    assert len(fetch_rfp_content(URL)) == summarize.MAX_DOCUMENT_CHARS


def test_fetch_rfp_content_reports_errors_as_text(monkeypatch):
    """Test that download failures come back as error text."""
    def not_found(url, timeout):
        return FakeResponse("", requests.exceptions.HTTPError("404 Client Error"))

    monkeypatch.setattr(requests, "get", not_found)
    assert fetch_rfp_content(URL) == "Error fetching RFP content: 404 Client Error"


def test_summary_passes_document_to_generator(monkeypatch):
    """Test that the downloaded text reaches the generator."""
    monkeypatch.setattr(summarize, "fetch_rfp_content", lambda url: "Scope: 40km of MV cable.")
    answer = SummarizeRFPFromURLOutput(summary="40km MV cable tender.")
    generator = FakeGenerator(value=answer)

    result = asyncio.run(summarize_rfp_from_url({"rfpUrl": URL}, generator))

    assert result.kind is ResultKind.SUCCESS
    assert result.value is answer
    call = generator.calls[0]
    assert call["input_schema"] is SummarizeRFPPromptInput
    assert call["variables"].document == "Scope: 40km of MV cable."
    assert call["variables"].rfp_url == URL


def test_summary_slow_download_counts_against_budget(monkeypatch):
    """Test that a slow download times out into the fallback."""
    def slow_fetch(url):
        import time

        time.sleep(0.2)
        return "late"

    monkeypatch.setattr(summarize, "fetch_rfp_content", slow_fetch)
    generator = FakeGenerator(value=SummarizeRFPFromURLOutput(summary="never seen"))

    result = asyncio.run(summarize_rfp_from_url({"rfpUrl": URL}, generator, timeout_ms=30))

    assert result.cause.kind is CauseKind.TIMEOUT
    assert result.value == SUMMARY_FALLBACK


def test_summary_invalid_url_falls_back():
    """Test that a non-http URL falls back without calling the model."""
    generator = FakeGenerator(value=SummarizeRFPFromURLOutput(summary="unused"))

    result = asyncio.run(summarize_rfp_from_url({"rfpUrl": "not-a-url"}, generator))

    assert result.cause.kind is CauseKind.OPERATION_ERROR
    assert generator.calls == []
