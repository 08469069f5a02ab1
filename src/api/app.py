"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.deps import build_service, create_session_factory
from src.api.responses import render
from src.api.routes import calculate, properties
from src.api.schemas import ErrorBody, ErrorMetadata, ErrorResponse
from src.config import settings
from src.data.resolver import generate_request_id
from src.data.zillow import ZillowScraper

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_HTTP_ERROR_CODES = {
    404: ("NOT_FOUND", "Endpoint not found"),
    405: ("METHOD_NOT_ALLOWED", "Only POST requests are accepted."),
}


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    engine, session_factory = create_session_factory(settings)
    scraper = ZillowScraper()
    service = build_service(settings, session_factory, scraper)
    try:
        await service.store.create_tables()
    except Exception:
        logger.exception("Cache schema bootstrap failed; lookups will miss until the store is reachable")
    if not settings.apify_api_key:
        logger.error("Missing required configuration: APIFY_API_KEY")

    app.state.service = service
    yield

    await scraper.aclose()
    await engine.dispose()


app = FastAPI(
    title="Property Tax Calculator",
    description="Property tax savings estimates from assessment and market data",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def cors(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(RequestValidationError)
async def invalid_body(request: Request, exc: RequestValidationError):
    return render(
        ErrorResponse(
            success=False,
            error=ErrorBody(code="INVALID_INPUT", message="Address is required"),
            metadata=ErrorMetadata(request_id=generate_request_id()),
        ),
        400,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    code, message = _HTTP_ERROR_CODES.get(exc.status_code, ("HTTP_ERROR", str(exc.detail)))
    if exc.status_code == 404:
        message = f"Endpoint '{request.url.path}' not found"
    return render(
        ErrorResponse(
            success=False,
            error=ErrorBody(code=code, message=message),
            metadata=ErrorMetadata(request_id=generate_request_id()),
        ),
        exc.status_code,
    )


app.include_router(calculate.router)
app.include_router(properties.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
