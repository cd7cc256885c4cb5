from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from app.api.routes import router
from app.api.admin_routes import router as admin_router
from app.core.errors import EngineError, InvalidInput, VerificationOutOfSequence
from app.observability.logging import log
from app.settings import settings
from app.store.submission_repo import ProtocolCollision, SubmissionNotFound
from app.utils.lock import LockContention

app = FastAPI(title="Form Intake & Verification API")

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Form intake API is running. Use /health and POST /api/submissions."
    }


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Error mapping. Bodies only ever carry masked/redacted detail; raw request
# values are never echoed back.
# ---------------------------------------------------------------------------
def _status_for(exc: EngineError) -> int:
    if isinstance(exc, VerificationOutOfSequence):
        return 409
    if isinstance(exc, InvalidInput):
        return 400
    # Checksum failures
    return 422


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    log(event="engine_error", path=request.url.path, code=exc.code, detail=exc.detail)
    return JSONResponse(
        status_code=_status_for(exc),
        content={"success": False, "error": exc.to_dict()},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()})
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": {"code": InvalidInput.code, "message": "Invalid request", "detail": {"fields": fields}}},
    )


@app.exception_handler(SubmissionNotFound)
async def not_found_handler(request: Request, exc: SubmissionNotFound):
    return JSONResponse(status_code=404, content={"success": False, "error": {"code": "not_found", "message": "Submission not found"}})


@app.exception_handler(LockContention)
async def lock_contention_handler(request: Request, exc: LockContention):
    log(event="lock_contention", path=request.url.path)
    return JSONResponse(status_code=409, content={"success": False, "error": {"code": "busy", "message": "Submission is being updated, retry shortly"}})


@app.exception_handler(ProtocolCollision)
async def protocol_collision_handler(request: Request, exc: ProtocolCollision):
    log(event="protocol_collision", path=request.url.path)
    return JSONResponse(status_code=503, content={"success": False, "error": {"code": "protocol_unavailable", "message": "Could not allocate a protocol, retry shortly"}})


@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log(event="unhandled_exception", path=request.url.path, exc_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": {"code": "internal_error", "message": "Internal error"}},
    )
