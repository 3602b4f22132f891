"""FastAPI backend exposing the guarded RFP flows."""

from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from rfp_triage.core.guarded_call import GuardedResult
from rfp_triage.core.logging import get_logger, setup_logging
from rfp_triage.core.metrics import metrics
from rfp_triage.core.middleware import ObservabilityMiddleware
from rfp_triage.core.schemas import (
    AdjustPricingInput,
    AdjustPricingOutput,
    AnalyzeRFPForLegalRisksInput,
    AnalyzeRFPForLegalRisksOutput,
    GenerateComplianceMatrixInput,
    GenerateComplianceMatrixOutput,
    GuardedResponse,
    SummarizeRFPFromURLInput,
    SummarizeRFPFromURLOutput,
)
from rfp_triage.flows import (
    adjust_pricing_based_on_win_loss_autopsy,
    analyze_rfp_for_legal_risks,
    generate_compliance_matrix,
    summarize_rfp_from_url,
)
from rfp_triage.llm.generate import StructuredGenerator

setup_logging()
logger = get_logger(__name__)


def get_generator(request: Request) -> StructuredGenerator:
    """Generator configured on the app; overridden in tests."""
    return request.app.state.generator


def _envelope(result: GuardedResult) -> dict:
    return {
        "result": result.value,
        "degraded": result.degraded,
        "cause": result.cause.kind.value if result.cause else None,
    }


def create_app(generator: Optional[StructuredGenerator] = None) -> FastAPI:
    app = FastAPI(title="RFP Triage", version="0.1.0")
    app.add_middleware(ObservabilityMiddleware)
    app.state.generator = generator or StructuredGenerator.from_settings()
    logger.info(f"Structured generator ready (provider={app.state.generator.provider})")

    @app.get("/health")
    async def health() -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse({"status": "ok", "service": "rfp-triage"})

    @app.get("/metrics")
    async def get_metrics() -> JSONResponse:
        """Metrics endpoint."""
        return JSONResponse(metrics.snapshot())

    @app.post(
        "/rfp/legal-risks",
        response_model=GuardedResponse[AnalyzeRFPForLegalRisksOutput],
    )
    async def legal_risks(
        body: AnalyzeRFPForLegalRisksInput,
        generator: StructuredGenerator = Depends(get_generator),
    ) -> dict:
        return _envelope(await analyze_rfp_for_legal_risks(body, generator))

    @app.post("/rfp/pricing", response_model=GuardedResponse[AdjustPricingOutput])
    async def pricing(
        body: AdjustPricingInput,
        generator: StructuredGenerator = Depends(get_generator),
    ) -> dict:
        return _envelope(await adjust_pricing_based_on_win_loss_autopsy(body, generator))

    @app.post(
        "/rfp/compliance-matrix",
        response_model=GuardedResponse[GenerateComplianceMatrixOutput],
    )
    async def compliance_matrix(
        body: GenerateComplianceMatrixInput,
        generator: StructuredGenerator = Depends(get_generator),
    ) -> dict:
        return _envelope(await generate_compliance_matrix(body, generator))

    @app.post("/rfp/summary", response_model=GuardedResponse[SummarizeRFPFromURLOutput])
    async def summary(
        body: SummarizeRFPFromURLInput,
        generator: StructuredGenerator = Depends(get_generator),
    ) -> dict:
        return _envelope(await summarize_rfp_from_url(body, generator))

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting RFP Triage API...")
    uvicorn.run(app, host="0.0.0.0", port=8000)
