"""Compliance matrix: RFP requirements vs. product specs (8 s budget)."""

from typing import Any, Mapping, Union

from rfp_triage.config.settings import settings
from rfp_triage.core.guarded_call import guarded
from rfp_triage.core.schemas import (
    ComplianceResult,
    GenerateComplianceMatrixInput,
    GenerateComplianceMatrixOutput,
    MatchDetail,
)
from rfp_triage.llm.generate import StructuredGenerator
from rfp_triage.prompts_loader import load_prompt


def _detail(requirement: str, rfp_value: str, product_value: str) -> MatchDetail:
    return MatchDetail(
        requirement=requirement,
        rfp_value=rfp_value,
        product_value=product_value,
        match=rfp_value == product_value,
    )


COMPLIANCE_MATRIX_FALLBACK = GenerateComplianceMatrixOutput(
    top_matching_product=ComplianceResult(
        product_name="Phoenix-A1",
        spec_match_percentage=100,
        match_details=[],
    ),
    compliance_matrix=[
        ComplianceResult(
            product_name="Phoenix-A1",
            spec_match_percentage=100,
            match_details=[
                _detail("Conductor Material", "Copper", "Copper"),
                _detail("Voltage Rating", "1100V", "1100V"),
                _detail("Insulation Material", "XLPE", "XLPE"),
            ],
        ),
        ComplianceResult(
            product_name="Griffin-C2",
            spec_match_percentage=66,
            match_details=[
                _detail("Conductor Material", "Copper", "Copper"),
                _detail("Voltage Rating", "1100V", "800V"),
                _detail("Insulation Material", "XLPE", "XLPE"),
            ],
        ),
    ],
)


@guarded(
    timeout_ms=settings.timeouts.compliance_matrix_ms,
    fallback=COMPLIANCE_MATRIX_FALLBACK,
    output_schema=GenerateComplianceMatrixOutput,
    name="compliance_matrix",
)
async def generate_compliance_matrix(
    request: Union[GenerateComplianceMatrixInput, Mapping[str, Any]],
    generator: StructuredGenerator,
) -> GenerateComplianceMatrixOutput:
    """Score every product against the RFP requirements and pick the best fit."""
    return await generator.invoke(
        load_prompt("compliance_matrix"),
        request,
        GenerateComplianceMatrixInput,
        GenerateComplianceMatrixOutput,
    )
