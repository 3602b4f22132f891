"""Guarded RFP analysis flows, keyed by the name used in logs, CLI and API."""

from typing import Dict, Type

from pydantic import BaseModel

from rfp_triage.core.guarded_call import GuardedFlow
from rfp_triage.core.schemas import (
    AdjustPricingInput,
    AnalyzeRFPForLegalRisksInput,
    GenerateComplianceMatrixInput,
    SummarizeRFPFromURLInput,
)

from .compliance_matrix import generate_compliance_matrix
from .legal_risks import analyze_rfp_for_legal_risks
from .pricing import adjust_pricing_based_on_win_loss_autopsy
from .summarize import summarize_rfp_from_url

FLOWS: Dict[str, GuardedFlow] = {
    "legal_risks": analyze_rfp_for_legal_risks,
    "pricing": adjust_pricing_based_on_win_loss_autopsy,
    "compliance_matrix": generate_compliance_matrix,
    "summary": summarize_rfp_from_url,
}

FLOW_INPUTS: Dict[str, Type[BaseModel]] = {
    "legal_risks": AnalyzeRFPForLegalRisksInput,
    "pricing": AdjustPricingInput,
    "compliance_matrix": GenerateComplianceMatrixInput,
    "summary": SummarizeRFPFromURLInput,
}

__all__ = [
    "FLOWS",
    "FLOW_INPUTS",
    "adjust_pricing_based_on_win_loss_autopsy",
    "analyze_rfp_for_legal_risks",
    "generate_compliance_matrix",
    "summarize_rfp_from_url",
]
