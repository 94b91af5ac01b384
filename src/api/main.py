from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes.ingest import router as ingest_router
from src.api.routes.pending import router as pending_router
from src.config import configure_logging, settings
from src.errors import (
    AlreadyResolvedError,
    ConcurrentModificationError,
    DuplicateIngestionError,
    ExtractionValidationError,
    NotFoundError,
    TaskEngineError,
    UnrecordedTaskError,
    UpstreamUnavailableError,
)

configure_logging(settings.log_level)

app = FastAPI(
    title="Meeting Task Extraction API",
    description="Extract task candidates from meeting transcripts and track their approval",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:8501",
    ],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ingest_router)
app.include_router(pending_router)

# Most specific first; TaskEngineError catches the rest
ERROR_STATUS: dict[type[TaskEngineError], int] = {
    NotFoundError: 404,
    DuplicateIngestionError: 409,
    AlreadyResolvedError: 409,
    ConcurrentModificationError: 409,
    UnrecordedTaskError: 409,
    ExtractionValidationError: 502,
    UpstreamUnavailableError: 503,
}


@app.exception_handler(TaskEngineError)
async def handle_engine_error(request: Request, exc: TaskEngineError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Edits that fail task validation (e.g. a blank title)."""
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
