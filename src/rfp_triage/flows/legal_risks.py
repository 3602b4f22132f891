"""Legal-risk analysis of an RFP document (5 s budget)."""

from typing import Any, Mapping, Union

from rfp_triage.config.settings import settings
from rfp_triage.core.guarded_call import guarded
from rfp_triage.core.schemas import (
    AnalyzeRFPForLegalRisksInput,
    AnalyzeRFPForLegalRisksOutput,
    LegalRisk,
)
from rfp_triage.llm.generate import StructuredGenerator
from rfp_triage.prompts_loader import load_prompt

# Same list for every document type.
LEGAL_RISKS_FALLBACK = AnalyzeRFPForLegalRisksOutput(
    summary="AI analysis timed out. Showing typical risks for this document type.",
    legal_risks=[
        LegalRisk(
            clause="Indemnification Clause 12.4",
            risk_level="High",
            explanation="Unlimited liability for indirect damages.",
        ),
        LegalRisk(
            clause="Payment Terms 4.1",
            risk_level="Medium",
            explanation="Net 90 days payment terms exceed standard Net 30.",
        ),
        LegalRisk(
            clause="IP Rights 8.2",
            risk_level="Low",
            explanation="Ambiguous wording regarding pre-existing IP.",
        ),
    ],
)


@guarded(
    timeout_ms=settings.timeouts.legal_risks_ms,
    fallback=LEGAL_RISKS_FALLBACK,
    output_schema=AnalyzeRFPForLegalRisksOutput,
    name="legal_risks",
)
async def analyze_rfp_for_legal_risks(
    request: Union[AnalyzeRFPForLegalRisksInput, Mapping[str, Any]],
    generator: StructuredGenerator,
) -> AnalyzeRFPForLegalRisksOutput:
    """List risky clauses in the RFP at ``request.rfp_url``."""
    return await generator.invoke(
        load_prompt("legal_risks"),
        request,
        AnalyzeRFPForLegalRisksInput,
        AnalyzeRFPForLegalRisksOutput,
    )
