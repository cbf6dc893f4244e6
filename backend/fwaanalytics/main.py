import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from fwaanalytics.agents import ClaimRiskAssessment, FraudAnalysisOrchestrator, ProviderRiskAssessment
from fwaanalytics.llm.providers import LLMProvider, get_llm_client
from fwaanalytics.models import Claim
from fwaanalytics.schemas import AnalyzeProviderRequest, AppStatus, ErrorResponse
from fwaanalytics.settings import Settings, settings

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

limiter = Limiter(key_func=get_remote_address)

# Provider analysis makes up to two LLM calls per sampled claim
REQUEST_TIMEOUT_SECONDS = 300


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce request timeout."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await asyncio.wait_for(
                call_next(request),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            return JSONResponse(
                status_code=504,
                content={"detail": f"Request timed out after {REQUEST_TIMEOUT_SECONDS} seconds"}
            )


def build_llm_client(cfg: Settings) -> LLMProvider | None:
    """Create the configured LLM provider, or None to run deterministically."""
    if not cfg.use_llm:
        logger.info("LLM disabled by configuration, using rule-based fallbacks")
        return None
    try:
        return get_llm_client(
            cfg.llm_provider.value,
            azure_api_version=cfg.azure_openai_api_version,
            ollama_base_url=cfg.ollama_base_url,
        )
    except ValueError as e:
        logger.warning("LLM provider %s unavailable (%s), using rule-based fallbacks", cfg.llm_provider.value, e)
        return None


def build_orchestrator(cfg: Settings) -> FraudAnalysisOrchestrator:
    return FraudAnalysisOrchestrator.from_settings(cfg, build_llm_client(cfg))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the orchestrator once per process."""
    try:
        logger.info("Starting FWA analytics API...")
        app.state.orchestrator = build_orchestrator(settings)
        logger.info(
            "FWA analytics API started (provider=%s, llm_configured=%s)",
            settings.llm_provider.value,
            app.state.orchestrator.llm is not None,
        )
    except Exception as e:
        logger.error(f"FATAL: Startup failed: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down FWA analytics API...")


app = FastAPI(title="FWA analytics", version=API_VERSION, lifespan=lifespan)

app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:5000", "http://localhost:5000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TimeoutMiddleware)


def get_orchestrator(request: Request) -> FraudAnalysisOrchestrator:
    return request.app.state.orchestrator


@app.get("/api/status", response_model=AppStatus)
@limiter.limit("60/minute")
def api_status(
    request: Request,
    orchestrator: FraudAnalysisOrchestrator = Depends(get_orchestrator),
) -> AppStatus:
    llm = orchestrator.llm
    return AppStatus(
        version=API_VERSION,
        llm_provider=llm.provider_type.value if llm else settings.llm_provider.value,
        llm_configured=llm is not None,
        model=orchestrator.model,
        provider_sample_cap=orchestrator.sample_cap,
        cost=orchestrator.cost_tracker.get_summary().to_dict(),
    )


@app.post(
    "/api/ai/analyze-claim",
    response_model=ClaimRiskAssessment,
    responses={500: {"model": ErrorResponse}},
)
@limiter.limit("30/minute")
async def api_analyze_claim(
    request: Request,
    claim: Claim,
    orchestrator: FraudAnalysisOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.analyze_claim_async(claim)
    except Exception:
        logger.exception("Error analyzing claim %s", claim.id)
        return JSONResponse(status_code=500, content={"error": "Failed to analyze claim"})


@app.post(
    "/api/ai/analyze-provider",
    response_model=ProviderRiskAssessment,
    responses={500: {"model": ErrorResponse}},
)
@limiter.limit("10/minute")
async def api_analyze_provider(
    request: Request,
    req: AnalyzeProviderRequest,
    orchestrator: FraudAnalysisOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.analyze_provider_async(req.provider, req.claims)
    except Exception:
        logger.exception("Error analyzing provider %s", req.provider.id)
        return JSONResponse(status_code=500, content={"error": "Failed to analyze provider"})
