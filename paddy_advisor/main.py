import asyncio
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config_loader import StoreSettings, get_config, get_store_settings
from .errors import AdvisorError, InputError, UnknownDisease, UnknownLocation
from .fact_store import FactStore
from .logic.pipeline import AdvisoryPipeline
from .models import (
    ErrorResponse,
    HealthResponse,
    PurgeResponse,
    SubmitInputRequest,
    SubmitInputResponse,
    VocabularyResponse,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Paddy Treatment Advisor API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# FACT STORE
# =============================================================================

def create_fact_store(settings: Optional[StoreSettings] = None) -> FactStore:
    """Build the backend named by FACT_STORE_BACKEND (neo4j | memory)."""
    settings = settings or get_store_settings()
    if settings.backend == "memory":
        from .memory_store import InMemoryFactStore
        return InMemoryFactStore()
    if settings.backend == "neo4j":
        from .database import Neo4jConnection
        return Neo4jConnection(settings)
    raise ValueError(f"Unknown FACT_STORE_BACKEND: {settings.backend}")


_store: Optional[FactStore] = None
_cleanup_task: Optional[asyncio.Task] = None


def get_store() -> FactStore:
    global _store
    if _store is None:
        _store = create_fact_store()
    return _store


def get_pipeline(store: FactStore = Depends(get_store)) -> AdvisoryPipeline:
    return AdvisoryPipeline(store, get_config())


async def _cleanup_sessions_periodically(store: FactStore):
    """Background task to drop stale sessions every 30 minutes."""
    while True:
        await asyncio.sleep(1800)
        try:
            await asyncio.to_thread(store.cleanup_stale_sessions)
        except AdvisorError as e:
            logger.warning(f"Stale session cleanup failed: {e}")


@app.on_event("startup")
async def startup_event():
    """Warm up the fact store on server start."""
    global _cleanup_task
    logger.info("Starting server warmup...")
    store = get_store()
    store.warmup()
    _cleanup_task = asyncio.create_task(_cleanup_sessions_periodically(store))
    logger.info("Server ready")


@app.on_event("shutdown")
async def shutdown_event():
    global _cleanup_task
    if _cleanup_task is not None:
        _cleanup_task.cancel()
        _cleanup_task = None
    if _store is not None:
        _store.close()


# =============================================================================
# ERROR MAPPING
# =============================================================================

def status_for(error: AdvisorError) -> int:
    """Bad submissions are 400, except unknown vocabulary which (like store trouble) is 500."""
    if isinstance(error, (UnknownDisease, UnknownLocation)):
        return 500
    if isinstance(error, InputError):
        return 400
    return 500


@app.exception_handler(AdvisorError)
async def advisor_error_handler(request: Request, exc: AdvisorError):
    status = status_for(exc)
    log = logger.warning if status < 500 else logger.error
    log(f"{request.method} {request.url.path} -> {status} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status, content=ErrorResponse(error=exc.message, kind=exc.kind).model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are bad submissions: 400 with the same {error, kind} shape."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    )
    logger.warning(f"{request.method} {request.url.path} -> 400 InputError: {problems}")
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error=f"Invalid request: {problems}", kind=InputError.kind).model_dump(),
    )


# =============================================================================
# ROUTES
# =============================================================================

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


@app.get("/health", response_model=HealthResponse)
def health(store: FactStore = Depends(get_store)):
    try:
        connected = store.verify_connection()
    except AdvisorError as e:
        logger.warning(f"Health check failed: {e}")
        connected = False
    return HealthResponse(
        status="healthy" if connected else "degraded",
        backend=type(store).__name__,
        connected=connected,
    )


@app.get("/vocabulary", response_model=VocabularyResponse)
def vocabulary():
    """Accepted display names for diseases and locations."""
    config = get_config()
    return VocabularyResponse(
        tenant=config.tenant_id,
        diseases=list(config.diseases),
        locations=list(config.locations),
    )


@app.post("/submit-input", response_model=SubmitInputResponse, responses=ERROR_RESPONSES)
def submit_input(request: SubmitInputRequest, pipeline: AdvisoryPipeline = Depends(get_pipeline)):
    missing = request.missing_fields()
    if missing:
        raise InputError(f"Missing required fields: {', '.join(missing)}")

    report = pipeline.submit(
        request.disease,
        request.budget,
        request.location,
        request.control_method or "",
    )
    logger.info(f"Submission {report.session_id} derived {report.total_facts} fact(s)")
    return SubmitInputResponse(success=True, instance=report.session_id)


@app.get("/user/{user_id}/disease-details", responses=ERROR_RESPONSES)
def disease_details(user_id: str, store: FactStore = Depends(get_store)):
    return store.get_disease_details(user_id)


@app.get("/user/{user_id}/r-treatments-suitable", responses=ERROR_RESPONSES)
def suitable_treatments(user_id: str, store: FactStore = Depends(get_store)):
    return store.get_suitable_treatments(user_id)


@app.get("/user/{user_id}/general-treatments", responses=ERROR_RESPONSES)
def general_treatments(user_id: str, store: FactStore = Depends(get_store)):
    return store.get_general_treatments(user_id)


@app.delete("/user/{user_id}", response_model=PurgeResponse, responses=ERROR_RESPONSES)
def purge_session(user_id: str, store: FactStore = Depends(get_store)):
    store.purge_session(user_id)
    return PurgeResponse(success=True, instance=user_id)


@app.get("/disease-agent/{disease}", responses=ERROR_RESPONSES)
def disease_agent(disease: str, store: FactStore = Depends(get_store)):
    return store.get_disease_agent(disease)


@app.get("/disease-environment/{disease}", responses=ERROR_RESPONSES)
def disease_environment(disease: str, store: FactStore = Depends(get_store)):
    return store.get_disease_environment(disease)


@app.get("/general-guidelines", responses=ERROR_RESPONSES)
def general_guidelines(store: FactStore = Depends(get_store)):
    return store.get_general_guidelines()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("paddy_advisor.main:app", host="0.0.0.0", port=8000)
