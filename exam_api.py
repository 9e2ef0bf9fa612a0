"""
Exam Engine API — Main Application
FastAPI application for variation-based exams: generation, timed attempts,
objective auto-grading and AI/manual grading of text answers.
"""

from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database.database import engine, Base
from database import models  # noqa: F401  (registers tables on Base)
from generation.gpt_client import GptClient
from grading.errors import EngineError
from routers import exams, attempts, grading

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(name)s  %(message)s")
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables + AI client. Shutdown: close the client."""
    Base.metadata.create_all(bind=engine)
    app.state.gpt_client = GptClient.from_env()
    yield
    await app.state.gpt_client.close()


app = FastAPI(
    title="Exam Engine API",
    description="Variation-based exam sessions with automatic and AI-assisted grading",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} → {exc.reason}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "reason": exc.reason},
    )


# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(exams.router)       # creator: /exams, /exams/all-submissions, ...
app.include_router(grading.router)     # creator: /exams/{id}/grade-text-batch, /exams/results/{id}/grade/...
app.include_router(attempts.router)    # taker:   /exams/{id}, /exams/{id}/start, /exams/{id}/submit


@app.get("/")
def root():
    return {
        "name": "Exam Engine API",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "exams": "/exams",
            "results": "/exams/results/{result_id}",
        },
    }


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "exam-engine-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
