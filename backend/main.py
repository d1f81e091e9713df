import logging
from typing import Optional

import jwt
from fastapi import Depends, FastAPI, Query, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidgen import jobs, storage
from vidgen.config import Settings, get_settings
from vidgen.errors import (
    ServiceError,
    ValidationError,
    request_validation_handler,
    service_error_handler,
    unhandled_error_handler,
)
from vidgen.models import (
    GenerateVideoRequest,
    SessionRequest,
    UploadGrantRequest,
    status_response,
    submission_response,
)
from vidgen.provider import ProviderClient
from vidgen.session import (
    clear_session_cookies,
    decode_session_token,
    set_session_cookies,
    verify_session,
)

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger("vidgen-backend")

app = FastAPI()

app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_error_handler)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request, exc: StarletteHTTPException):
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)


# CORS: allow app origin; the session cookie requires credentials
allowed_origins = sorted({get_settings().app_origin, "http://localhost:3000", "http://127.0.0.1:3000"})
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def get_provider(settings: Settings = Depends(get_settings)) -> ProviderClient:
    return ProviderClient.from_settings(settings)


def get_storage(settings: Settings = Depends(get_settings)):
    return storage.get_s3_client(settings)


@app.get("/healthz")
def healthz(settings: Settings = Depends(get_settings)):
    return {
        "ok": True,
        "provider": bool(settings.provider_api_key),
        "storage": settings.storage_configured,
    }


@app.post("/api/upload-url", dependencies=[Depends(verify_session)])
def create_upload_url(
    req: UploadGrantRequest,
    settings: Settings = Depends(get_settings),
    s3=Depends(get_storage),
):
    grant = storage.issue_grant(s3, settings, req.content_type, folder=req.folder)
    return grant.to_response()


@app.post("/api/generate-video", dependencies=[Depends(verify_session)])
def generate_video(
    req: GenerateVideoRequest,
    settings: Settings = Depends(get_settings),
    provider: ProviderClient = Depends(get_provider),
):
    handle = jobs.submit(provider, settings, req.prompt, req.images)
    return submission_response(handle)


@app.get("/api/check-video-status", dependencies=[Depends(verify_session)])
def check_video_status(
    id: Optional[str] = Query(default=None),
    task_id: Optional[str] = Query(default=None, alias="taskId"),
    provider: ProviderClient = Depends(get_provider),
):
    handle = jobs.poll(provider, id if id is not None else task_id)
    return status_response(handle)


@app.post("/auth/session")
def create_session(req: SessionRequest, response: Response, settings: Settings = Depends(get_settings)):
    if not req.token:
        raise ValidationError("Token is required")
    if settings.session_secret:
        try:
            decode_session_token(req.token, settings.session_secret)
        except jwt.PyJWTError:
            return JSONResponse({"error": "Invalid session"}, status_code=401)
    set_session_cookies(response, settings, req.token, req.username)
    return {"success": True}


@app.delete("/auth/session")
def delete_session(response: Response, settings: Settings = Depends(get_settings)):
    clear_session_cookies(response, settings)
    return {"success": True}
