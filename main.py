from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import uvicorn # For the if __name__ == "__main__": block
import os
from dotenv import load_dotenv
from routers import ingredient_router, recipe_router, i18n_router
from core.config import get_settings
from core.logs import json_log, now_iso
from app.services.errors import (
    AIServiceError,
    GenerationError,
    ParseError,
    ServiceNotConfiguredError,
)
from app.services.llm_service import create_gemini_service
import time, uuid
from contextlib import asynccontextmanager

load_dotenv() # Load environment variables from .env file

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    json_log("info", event="startup")
    # one service handle for the whole process
    app.state.gemini = create_gemini_service(get_settings())
    json_log("info", event="startup_finished", gemini_configured=app.state.gemini.configured)
    yield


app = FastAPI(title="Fridge-to-Feast API", lifespan=lifespan)
app.include_router(ingredient_router.router)
app.include_router(recipe_router.router)
app.include_router(i18n_router.router)


# central error shape
def _error_response(request: Request, *, status_code: int, error: str, code: str, message_key: str | None = None) -> JSONResponse:
    rid = getattr(request.state, "req_id", None) or "unknown"
    content = {"error": error, "code": code, "trace": rid}
    if message_key:
        content["messageKey"] = message_key
    return JSONResponse(status_code=status_code, content=content, headers={"X-Req-Id": rid})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*", "X-Req-Id"],
    expose_headers=["X-Req-Id"],
)


@app.middleware("http")
async def _reqid_and_access_log(request: Request, call_next):
    # 1) assign/propagate req-id
    req_id = request.headers.get("X-Req-Id") or str(uuid.uuid4())
    request.state.req_id = req_id

    # 2) timing  path/method
    start = time.perf_counter()
    path = request.url.path
    method = request.method
    status = 500
    response = None
    try:
        response = await call_next(request)
        status = getattr(response, "status_code", 500)
        response.headers["X-Req-Id"] = req_id
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000.0, 2)
        json_log("info", reqId=req_id, method=method, path=path, status=status, latency=latency_ms)


# ---------- exception handlers: consistent error shape ----------
@app.exception_handler(HTTPException)
async def _http_exc_handler(request: Request, exc: HTTPException):
    return _error_response(request, status_code=exc.status_code, error=str(exc.detail), code=f"HTTP_{exc.status_code}")


@app.exception_handler(RequestValidationError)
async def _validation_handler(request: Request, exc: RequestValidationError):
    json_log("warn", reqId=getattr(request.state, "req_id", None), path=request.url.path, status=422, validationErrors=exc.errors())
    return _error_response(request, status_code=422, error="Validation failed", code="VALIDATION_ERROR")


_AI_STATUS = (
    (ServiceNotConfiguredError, 503, "SERVICE_NOT_CONFIGURED"),
    (ParseError, 422, "AI_PARSE_ERROR"),
    (GenerationError, 502, "AI_GENERATION_ERROR"),
)


@app.exception_handler(AIServiceError)
async def _ai_service_handler(request: Request, exc: AIServiceError):
    status_code, code = 502, "AI_SERVICE_ERROR"
    for cls, sc, c in _AI_STATUS:
        if isinstance(exc, cls):
            status_code, code = sc, c
            break
    json_log("warn", reqId=getattr(request.state, "req_id", None), path=request.url.path, status=status_code, msg=exc.__class__.__name__)
    return _error_response(request, status_code=status_code, error=exc.message, code=code, message_key=exc.message_key)


@app.exception_handler(Exception)
async def _unhandled_handler(request: Request, exc: Exception):
    json_log("error", reqId=getattr(request.state, "req_id", None), path=request.url.path, status=500, msg=exc.__class__.__name__)
    return _error_response(request, status_code=500, error="Internal Server Error", code="INTERNAL_SERVER_ERROR", message_key="errorUnexpected")


# ---------------- Health & Readiness ----------------
@app.get("/healthz")
def healthz():
    return {
        "status": "ok",
        "app": "fridge-to-feast",
        "commit": os.getenv("GIT_SHA", "dev"),
        "time": now_iso(),
    }


def _deps_status(request: Request):
    deps = {}

    # Key presence only; avoids doing a network call here
    deps["gemini_key"] = "ok" if get_settings().GEMINI_API_KEY else "missing"

    service = getattr(request.app.state, "gemini", None)
    deps["gemini_client"] = "ok" if service is not None and service.configured else "not_initialized"
    return deps

@app.get("/readyz")
def readyz(request: Request):
    deps = _deps_status(request)
    overall = "ready" if all(v == "ok" for v in deps.values()) else "degraded"
    return {"status": overall, "app": "fridge-to-feast", "time": now_iso(), "deps": deps}


@app.get("/")
async def root():
    return {"message": "Welcome to Fridge-to-Feast API!"}


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000)) # Default to 8000 if PORT not set
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
