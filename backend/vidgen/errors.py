import json
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("vidgen-backend")

_BODY_SUMMARY_LIMIT = 300


class ServiceError(Exception):
    """Base for failures reported to the caller as ``{"error": message}``."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        if message:
            self.public_message = message


class ValidationError(ServiceError):
    status_code = 400
    public_message = "Invalid request"


class ConfigurationError(ServiceError):
    """A required server-side setting is missing. The caller never sees which."""

    status_code = 500
    public_message = "Server configuration error"

    def __init__(self, setting: str):
        super().__init__()
        self.setting = setting

    def __str__(self) -> str:
        return f"missing configuration: {self.setting}"


class UpstreamConfigurationError(ServiceError):
    status_code = 500
    public_message = "Failed to generate upload URL"


class UpstreamError(ServiceError):
    """The generation provider answered with a non-success status."""

    def __init__(self, status: int, summary: str):
        self.upstream_status = status
        self.summary = summary
        # 4xx is attributable to the caller's input; anything else is ours.
        self.status_code = status if 400 <= status < 500 else 502
        super().__init__(f"Generation provider error: {summary}" if summary else "Generation provider error")


class UpstreamUnavailableError(ServiceError):
    status_code = 502
    public_message = "Generation provider unavailable"


class UpstreamContractError(ServiceError):
    status_code = 502
    public_message = "Generation provider returned an unusable response"


def summarize_body(text: str | None, secret: str | None = None, limit: int = _BODY_SUMMARY_LIMIT) -> str:
    """Reduce an upstream body to a short, loggable, returnable summary.

    JSON bodies are reduced to their ``message``/``error`` field when one is
    present. The provider credential is redacted wherever it appears.
    """
    if not text:
        return ""
    summary = text.strip()
    try:
        parsed = json.loads(summary)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        for field in ("message", "error", "msg", "detail"):
            value = parsed.get(field)
            if isinstance(value, str) and value.strip():
                summary = value.strip()
                break
    if secret:
        summary = summary.replace(secret, "[redacted]")
    summary = " ".join(summary.split())
    if len(summary) > limit:
        summary = summary[: limit - 3] + "..."
    return summary


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": exc.public_message}, status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Report the first offending field only; raw inputs are not echoed back.
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        loc = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
        message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    return JSONResponse({"error": message}, status_code=400)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for anything outside ServiceError; details stay in the log."""
    logger.error("%s %s crashed: %s", request.method, request.url.path, type(exc).__name__, exc_info=exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)
