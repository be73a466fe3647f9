"""Transcription gateway — HTTP entry point.

Thin surface over the STT core: reads the caller context from headers,
runs the transcription path and translates typed errors into responses.
Vendor names and diagnostics never leave the process on failure.
"""
from contextlib import asynccontextmanager
from pathlib import Path
import logging
import math
from typing import Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

# Load env before anything else
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / ".env")

from abuse.rate_limit import get_rate_limit_status
from auth.guard import STTAuthContext, validate_auth
from config.settings import get_settings
from config.validators import validate_startup_config
from core.exceptions import CopilotError, RateLimitExceededError, STTAllProvidersFailedError
from core.logging_config import setup_logging
from observability.metrics import get_stt_status
from observability.redaction import redact
from stt.orchestrator import build_error_chunk, get_stt_registry, transcribe_audio
from stt.registry import STTProviderRegistry

# ---- Setup logging ----
setup_logging()
logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Transcription is temporarily unavailable. Please try again shortly."


# ---- Lifespan ----
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("STT gateway starting — env=%s", settings.ENV)
    validate_startup_config(settings)
    registry = get_stt_registry()
    logger.info("STT gateway ready — chain=%s", registry.registered_providers)
    yield
    logger.info("STT gateway shutdown complete")


# ---- App ----
app = FastAPI(
    title="Interview Copilot STT Gateway",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api")


@app.exception_handler(CopilotError)
async def copilot_error_handler(request: Request, exc: CopilotError):
    headers = {}
    if isinstance(exc, RateLimitExceededError):
        headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after_ms / 1000)))
    if exc.status_code >= 500:
        logger.error("Request failed: path=%s code=%s", request.url.path, exc.code)
        message = "Internal error"
    else:
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": message},
        headers=headers,
    )


def get_auth_context(
    x_user_id: str = Header(default=""),
    x_tier: str = Header(default="free"),
    x_org_id: Optional[str] = Header(default=None),
) -> STTAuthContext:
    return STTAuthContext(user_id=x_user_id, tier=x_tier, org_id=x_org_id or None)


# =====================================================
#  REST Endpoints
# =====================================================

# ---- Health ----
@api_router.get("/health")
async def health(registry: STTProviderRegistry = Depends(get_stt_registry)):
    settings = get_settings()
    return {
        "status": "ok",
        "env": settings.ENV,
        "version": "0.1.0",
        "stt_providers": registry.registered_providers,
    }


# ---- Transcription ----
@api_router.post("/stt/sessions/{session_id}/transcribe", status_code=201)
async def transcribe(
    session_id: str,
    request: Request,
    language: Optional[str] = None,
    auth: STTAuthContext = Depends(get_auth_context),
    registry: STTProviderRegistry = Depends(get_stt_registry),
):
    audio = await request.body()
    try:
        chunk = await transcribe_audio(
            session_id, audio, auth=auth, language=language, registry=registry,
        )
    except STTAllProvidersFailedError as e:
        # Diagnostics stay in the logs; the client gets a placeholder chunk
        logger.error(
            "Transcription unavailable: session=%s attempts=%s",
            session_id,
            redact("; ".join(f"{pe.provider}: {pe.error}" for pe in e.provider_errors)),
        )
        return JSONResponse(
            status_code=503,
            content={
                "error": e.code,
                "message": UNAVAILABLE_MESSAGE,
                "chunk": build_error_chunk(session_id).to_doc(),
            },
        )
    return chunk.to_doc()


@api_router.get("/stt/status")
async def stt_status(
    probe: bool = False,
    registry: STTProviderRegistry = Depends(get_stt_registry),
):
    return await get_stt_status(registry, probe=probe)


@api_router.get("/stt/rate-limit")
async def rate_limit_status(auth: STTAuthContext = Depends(get_auth_context)):
    validate_auth(auth)
    return get_rate_limit_status(auth)


app.include_router(api_router)
