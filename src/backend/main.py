"""
FastAPI application entry point
"""
from dotenv import load_dotenv
from pathlib import Path
import os
import logging

# Environment: repository root .env first, then the current directory
root_env = Path(__file__).parent.parent.parent / ".env"
if root_env.exists():
    load_dotenv(root_env)
else:
    load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.api import admin, completions, continuation, progress, quiz
from app.core.admin_security import AdminIPWhitelistMiddleware
from app.core.config import get_session_idle_minutes
from app.core.exceptions import StoreError
from app.core.quiz_session import QuizSessionRegistry


def _get_cors_config() -> tuple[list[str], str | None]:
    """
    CORS configuration

    Returns:
        (allow_origins, allow_origin_regex)
        - production: exact origins from ALLOWED_ORIGINS (comma separated)
        - DEV_MODE=true: any local port
    """
    origins_str = os.getenv("ALLOWED_ORIGINS", "")
    if origins_str:
        origins = [origin.strip() for origin in origins_str.split(",") if origin.strip()]
        if origins:
            return origins, None

    if os.getenv("DEV_MODE", "false").lower() == "true":
        return [], r"http://(localhost|127\.0\.0\.1)(:\d+)?"

    logger.warning("ALLOWED_ORIGINS not set and DEV_MODE off: all cross-origin requests will be rejected")
    return [], None


app = FastAPI(
    title="VSK CPD API",
    description="Veterinary CPD - quiz attempts, completions and progress",
    version="0.1.0"
)

# One registry per process, reached by routers through app.state
app.state.quiz_sessions = QuizSessionRegistry(idle_minutes=get_session_idle_minutes())

allow_origins, allow_origin_regex = _get_cors_config()
logger.info(f"CORS: origins={allow_origins}, regex={allow_origin_regex}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# IP allowlist for /api/admin/*
app.add_middleware(AdminIPWhitelistMiddleware)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """Persistence failures surface as an opaque, retryable error"""
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(quiz.router, prefix="/api", tags=["Quiz sessions"])
app.include_router(continuation.router, prefix="/api", tags=["Quiz continuation"])
app.include_router(completions.router, prefix="/api", tags=["Quiz completions"])
app.include_router(progress.router, prefix="/api", tags=["User progress"])
app.include_router(admin.router, prefix="/api", tags=["Admin"])


@app.get("/")
async def root():
    return {"message": "VSK CPD API", "docs": "/docs"}


@app.get("/health")
async def health():
    """Health check"""
    return {
        "status": "healthy",
        "active_quiz_sessions": len(app.state.quiz_sessions),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
