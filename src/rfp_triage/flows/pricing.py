"""Pricing adjustment from a win/loss autopsy of past bids (4 s budget)."""

from typing import Any, Mapping, Union

from rfp_triage.config.settings import settings
from rfp_triage.core.guarded_call import guarded
from rfp_triage.core.schemas import AdjustPricingInput, AdjustPricingOutput
from rfp_triage.llm.generate import StructuredGenerator
from rfp_triage.prompts_loader import load_prompt

PRICING_FALLBACK = AdjustPricingOutput(
    adjusted_pricing_strategy="Aggressive (Fallback)",
    suggested_price_adjustment_percentage=-4.5,
    reasoning=(
        "AI analysis timed out or failed. Defaulting to aggressive strategy "
        "based on recent loss history."
    ),
)


@guarded(
    timeout_ms=settings.timeouts.pricing_ms,
    fallback=PRICING_FALLBACK,
    output_schema=AdjustPricingOutput,
    name="pricing",
)
async def adjust_pricing_based_on_win_loss_autopsy(
    request: Union[AdjustPricingInput, Mapping[str, Any]],
    generator: StructuredGenerator,
) -> AdjustPricingOutput:
    """Suggest a pricing strategy and adjustment from past wins and losses."""
    return await generator.invoke(
        load_prompt("pricing"),
        request,
        AdjustPricingInput,
        AdjustPricingOutput,
    )
