# =====================================================
# app.py
# =====================================================
import os

# Force unbuffered output (Render needs this for real-time logs)
os.environ["PYTHONUNBUFFERED"] = "1"

from logging_setup import logger, capture_exception  # noqa: E402  (configures logging first)

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from config import CORS_ORIGINS  # noqa: E402
from db import check_connection  # noqa: E402
from errors import QuizServiceError  # noqa: E402
from handlers import leaderboard, payments, quiz  # noqa: E402
from tasks import start_background_tasks, stop_background_tasks  # noqa: E402


# -------------------------------------------------
# Initialize FastAPI
# -------------------------------------------------
app = FastAPI(title="Daily Quiz")

if CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", "X-Device-Fingerprint"],
    )

app.include_router(quiz.router)
app.include_router(leaderboard.router)
app.include_router(payments.router)


# -------------------------------------------------
# Error rendering
# -------------------------------------------------
@app.exception_handler(QuizServiceError)
async def quiz_service_error_handler(request: Request, exc: QuizServiceError):
    logger.info(f"↩️ {request.method} {request.url.path} -> {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "invalid_request",
            "message": "Request body is missing or malformed",
        },
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    capture_exception(exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "internal_error", "message": "Something went wrong"},
    )


# -------------------------------------------------
# Root route
# -------------------------------------------------
@app.get("/")
@app.head("/")
async def root():
    return {
        "status": "ok",
        "message": "Daily Quiz API is running ✅",
        "health": "Check /health for database status",
    }


@app.get("/health")
async def health():
    db_ok = await check_connection()
    return JSONResponse(
        status_code=200 if db_ok else 503,
        content={"status": "ok" if db_ok else "degraded", "database": db_ok},
    )


# -------------------------------------------------
# Startup / shutdown
# -------------------------------------------------
@app.on_event("startup")
async def on_startup():
    logger.info("🚀 Starting up Daily Quiz...")
    await start_background_tasks()


@app.on_event("shutdown")
async def on_shutdown():
    try:
        await stop_background_tasks()
    except Exception as e:
        logger.warning(f"⚠️ Error while shutting down: {e}")
