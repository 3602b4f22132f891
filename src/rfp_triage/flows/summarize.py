"""Summarize an RFP document fetched from a URL (10 s budget).

The download happens inside the guarded operation, so a slow server counts
against the same budget as the model.
"""

import asyncio
from typing import Any, Mapping, Union

import requests

from rfp_triage.config.settings import settings
from rfp_triage.core.guarded_call import guarded
from rfp_triage.core.logging import get_logger
from rfp_triage.core.schemas import (
    SummarizeRFPFromURLInput,
    SummarizeRFPFromURLOutput,
    SummarizeRFPPromptInput,
)
from rfp_triage.llm.generate import StructuredGenerator
from rfp_triage.prompts_loader import load_prompt

logger = get_logger(__name__)

# Keeps the bound prompt inside small local models' context windows.
MAX_DOCUMENT_CHARS = 20_000

SUMMARY_FALLBACK = SummarizeRFPFromURLOutput(
    summary=(
        "AI summary unavailable (timed out or failed). Open the RFP document "
        "to review its requirements manually."
    )
)


def fetch_rfp_content(url: str, timeout_s: int = settings.fetch_timeout_s) -> str:
    """Download the RFP text.

    Failures come back as an error string rather than an exception: the model
    still gets the URL and can say the document was unreadable.
    """
    try:
        response = requests.get(url, timeout=timeout_s)
        response.raise_for_status()
        return response.text[:MAX_DOCUMENT_CHARS]
    except requests.exceptions.RequestException as exc:
        logger.warning(f"Error fetching RFP content from {url}: {exc}")
        return f"Error fetching RFP content: {exc}"


@guarded(
    timeout_ms=settings.timeouts.summary_ms,
    fallback=SUMMARY_FALLBACK,
    output_schema=SummarizeRFPFromURLOutput,
    name="summary",
)
async def summarize_rfp_from_url(
    request: Union[SummarizeRFPFromURLInput, Mapping[str, Any]],
    generator: StructuredGenerator,
) -> SummarizeRFPFromURLOutput:
    if not isinstance(request, SummarizeRFPFromURLInput):
        request = SummarizeRFPFromURLInput.model_validate(request)
    document = await asyncio.to_thread(fetch_rfp_content, request.rfp_url)
    return await generator.invoke(
        load_prompt("summary"),
        SummarizeRFPPromptInput(rfp_url=request.rfp_url, document=document),
        SummarizeRFPPromptInput,
        SummarizeRFPFromURLOutput,
    )
