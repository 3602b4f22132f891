"""
Pydantic models for API boundaries and structured outputs.
Why: contract-first design; both model answers and fallbacks must fit these.

Python attributes are snake_case; the JSON form (what the model is asked to
produce and what the API returns) uses camelCase aliases. Both spellings are
accepted on input.
"""

from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

RiskLevel = Literal["High", "Medium", "Low"]


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# --- legal risks -----------------------------------------------------------


class AnalyzeRFPForLegalRisksInput(_Schema):
    rfp_url: str = Field(..., min_length=1, description="URL of the RFP document to analyze.")


class LegalRisk(_Schema):
    clause: str = Field(..., description="The specific clause identified as a risk.")
    risk_level: RiskLevel
    explanation: str = Field(..., description="Why the clause is a risk.")


class AnalyzeRFPForLegalRisksOutput(_Schema):
    legal_risks: List[LegalRisk]
    summary: str


# --- pricing ---------------------------------------------------------------


def _number(value: float):
    return int(value) if float(value).is_integer() else value


class PastBidOutcome(_Schema):
    bid_price: float
    win: bool
    reason_for_loss: Optional[str] = None


class AdjustPricingInput(_Schema):
    rfp_summary: str
    past_bid_outcomes: List[PastBidOutcome]
    current_pricing_strategy: str = Field(
        ..., description="e.g. aggressive, balanced, premium"
    )

    def prompt_context(self) -> dict:
        lines = [
            f"- Price: {_number(bid.bid_price)}, Won: {str(bid.win).lower()}, "
            f"Loss Reason: {bid.reason_for_loss or ''}"
            for bid in self.past_bid_outcomes
        ]
        return {"past_bids": "\n".join(lines) or "- none"}


class AdjustPricingOutput(_Schema):
    adjusted_pricing_strategy: str
    suggested_price_adjustment_percentage: float
    reasoning: str


# --- compliance matrix -----------------------------------------------------


class RequirementSpec(_Schema):
    parameter: str = Field(..., description='e.g. "Voltage Rating"')
    value: str = Field(..., description='e.g. "1100V"')


class ProductSpec(_Schema):
    product_name: str
    specs: List[RequirementSpec]


class GenerateComplianceMatrixInput(_Schema):
    rfp_requirements: List[RequirementSpec]
    product_specs: List[ProductSpec]

    def prompt_context(self) -> dict:
        requirements = "\n".join(
            f"- {req.parameter}: {req.value}" for req in self.rfp_requirements
        )
        products = []
        for product in self.product_specs:
            products.append(f"- {product.product_name}:")
            products.extend(
                f"    - {spec.parameter}: {spec.value}" for spec in product.specs
            )
        return {
            "requirements": requirements or "- none",
            "products": "\n".join(products) or "- none",
        }


class MatchDetail(_Schema):
    requirement: str
    rfp_value: str
    product_value: str
    match: bool


class ComplianceResult(_Schema):
    product_name: str
    spec_match_percentage: float = Field(..., ge=0, le=100)
    match_details: List[MatchDetail]


class GenerateComplianceMatrixOutput(_Schema):
    top_matching_product: ComplianceResult
    compliance_matrix: List[ComplianceResult]


# --- summary ---------------------------------------------------------------


class SummarizeRFPFromURLInput(_Schema):
    rfp_url: str

    @field_validator("rfp_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("rfp_url must be an http(s) URL")
        return value


class SummarizeRFPPromptInput(_Schema):
    rfp_url: str
    document: str


class SummarizeRFPFromURLOutput(_Schema):
    summary: str


# --- API envelope ----------------------------------------------------------

OutputT = TypeVar("OutputT")


class GuardedResponse(_Schema, Generic[OutputT]):
    result: OutputT
    degraded: bool
    cause: Optional[str] = None
