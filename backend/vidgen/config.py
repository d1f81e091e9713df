import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("vidgen-backend")

UPLOAD_URL_EXPIRES = 300


def _parse_bool(raw: str | None, default: bool = False) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _optional_str(raw: str | None) -> str | None:
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def _parse_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    provider_api_key: str | None = None
    provider_base_url: str = "https://pollo.ai/api/platform"
    provider_model_path: str = "generation/google/veo3-1"
    provider_resolution: str = "720p"
    provider_generate_audio: bool = False
    provider_timeout_seconds: float = 20.0
    s3_bucket: str | None = None
    s3_endpoint: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_region: str = "auto"
    s3_public_base_url: str | None = None
    upload_prefix: str = "temp"
    upload_url_expires: int = UPLOAD_URL_EXPIRES
    session_secret: str | None = None
    session_cookie_name: str = "auth-token"
    session_max_age: int = 60 * 60 * 24 * 7
    cookie_secure: bool = False
    app_origin: str = "http://localhost:3000"
    log_level: str = "INFO"

    @property
    def storage_configured(self) -> bool:
        return bool(
            self.s3_bucket
            and self.s3_endpoint
            and self.s3_access_key
            and self.s3_secret_key
            and self.s3_public_base_url
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        provider_api_key=_optional_str(os.getenv("POLLO_AI_API_KEY")),
        provider_base_url=os.getenv("PROVIDER_BASE_URL", "https://pollo.ai/api/platform").rstrip("/"),
        provider_model_path=os.getenv("PROVIDER_MODEL_PATH", "generation/google/veo3-1").strip("/"),
        provider_resolution=os.getenv("PROVIDER_RESOLUTION", "720p"),
        provider_generate_audio=_parse_bool(os.getenv("PROVIDER_GENERATE_AUDIO")),
        provider_timeout_seconds=_parse_number("PROVIDER_TIMEOUT_SECONDS", 20.0, float),
        s3_bucket=_optional_str(os.getenv("S3_BUCKET")),
        s3_endpoint=_optional_str(os.getenv("S3_ENDPOINT")),
        s3_access_key=_optional_str(os.getenv("S3_ACCESS_KEY")),
        s3_secret_key=_optional_str(os.getenv("S3_SECRET_KEY")),
        s3_region=os.getenv("S3_REGION", "auto"),
        s3_public_base_url=_optional_str(os.getenv("S3_PUBLIC_BASE_URL")),
        upload_prefix=os.getenv("UPLOAD_PREFIX", "temp").strip("/") or "temp",
        upload_url_expires=_parse_number("UPLOAD_URL_EXPIRES", UPLOAD_URL_EXPIRES, int),
        session_secret=_optional_str(os.getenv("SESSION_SECRET")),
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "auth-token"),
        session_max_age=_parse_number("SESSION_MAX_AGE", 60 * 60 * 24 * 7, int),
        cookie_secure=_parse_bool(os.getenv("COOKIE_SECURE")),
        app_origin=os.getenv("APP_ORIGIN", "http://localhost:3000"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
