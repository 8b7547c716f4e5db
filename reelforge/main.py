import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from reelforge.api import video
from reelforge.config import get_settings
from reelforge.exceptions import InternalError, ReelforgeError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Request validation failed"
    first_error = errors[0]
    # Drop the leading "body" segment so paths read like the JSON the client sent
    loc = [str(x) for x in first_error.get("loc", []) if x != "body"]
    msg = first_error.get("msg", "Validation error")
    return f"{'.'.join(loc)}: {msg}" if loc else msg


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed bodies as 400 with an error message."""
    return JSONResponse(
        status_code=400,
        content={"error": _validation_message(exc), "code": "VALIDATION_ERROR"},
    )


@app.exception_handler(ReelforgeError)
async def reelforge_exception_handler(request: Request, exc: ReelforgeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=InternalError().to_dict(),
    )


# Routers
app.include_router(video.router, prefix="/api", tags=["video"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "version": settings.app_version, "git_hash": settings.git_hash}
