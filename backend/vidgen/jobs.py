import ipaddress
import logging
import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from pydantic import ValidationError as PydanticValidationError

from .config import Settings
from .errors import UpstreamContractError, ValidationError
from .provider import ProviderClient
from .state import CanonicalState, Generation, JobHandle, translate_status

logger = logging.getLogger("vidgen-backend")

# The provider accepts exactly one source image per job.
MAX_IMAGES_PER_JOB = 1

_JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")

_BLOCKED_HOSTS = frozenset(
    [
        "localhost",
        "127.0.0.1",
        "::1",
        "0.0.0.0",
        "169.254.169.254",  # AWS/GCP/Azure metadata
        "metadata.google.internal",
        "metadata.goog",
    ]
)


def _is_private_ip(host: str) -> bool:
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved or ip.is_multicast


def validate_image_reference(ref: Optional[str]) -> str:
    """Accept only absolute http(s) URLs that do not name an internal host.

    The provider fetches the image itself, so internal addresses are refused
    here. Hostnames are not resolved.
    """
    if not isinstance(ref, str) or not ref.strip():
        raise ValidationError("Image URL and prompt are required")
    ref = ref.strip()
    parsed = urlparse(ref)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError("Image reference must be an absolute http(s) URL")
    host = parsed.hostname.lower()
    if host in _BLOCKED_HOSTS or _is_private_ip(host):
        raise ValidationError("Image reference points to a disallowed host")
    return ref


def validate_job_id(job_id: Optional[str]) -> str:
    if not isinstance(job_id, str) or not job_id.strip():
        raise ValidationError("taskId is required")
    job_id = job_id.strip()
    if not _JOB_ID_PATTERN.match(job_id):
        raise ValidationError("taskId is malformed")
    return job_id


def build_generation_request(settings: Settings, prompt: str, images: Sequence[str]) -> Dict[str, Any]:
    return {
        "input": {
            "images": list(images[:MAX_IMAGES_PER_JOB]),
            "prompt": prompt,
            "resolution": settings.provider_resolution,
            "generateAudio": settings.provider_generate_audio,
        }
    }


def submit(
    provider: ProviderClient,
    settings: Settings,
    prompt: Optional[str],
    images: Optional[Sequence[Optional[str]]],
) -> JobHandle:
    """Validate and forward one generation request, returning its handle.

    All validation happens before the provider is contacted. Every call starts
    a new provider job; identical submissions are not merged.
    """
    if not images or not prompt or not prompt.strip():
        raise ValidationError("Image URL and prompt are required")
    image = validate_image_reference(images[0])

    body = build_generation_request(settings, prompt.strip(), [image])
    data = provider.create_generation(body)

    task_id = data.get("taskId")
    if not isinstance(task_id, str) or not task_id:
        logger.error("Provider accepted generation but returned no taskId (keys: %s)", sorted(data))
        raise UpstreamContractError()

    logger.info("Submitted generation job %s", task_id)
    return JobHandle(id=task_id, state=CanonicalState.SUBMITTED)


def _parse_generations(data: Dict[str, Any]) -> List[Generation]:
    raw = data.get("generations")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise UpstreamContractError()
    try:
        return [Generation.model_validate(item) for item in raw]
    except PydanticValidationError as e:
        raise UpstreamContractError() from e


def poll(provider: ProviderClient, job_id: Optional[str]) -> JobHandle:
    """Report the current canonical state of a provider job.

    State is derived from the provider's answer on every call and never
    cached. An answer that cannot be interpreted marks the job failed; the
    request itself still succeeds.
    """
    job_id = validate_job_id(job_id)

    try:
        data = provider.get_status(job_id)
        generations = _parse_generations(data)
    except UpstreamContractError:
        logger.error("Provider status payload for %s is malformed", job_id)
        return JobHandle(
            id=job_id,
            state=CanonicalState.FAILED,
            error_detail="Provider returned an unreadable status payload",
        )

    handle = translate_status(job_id, generations)
    logger.info("Job %s is %s", job_id, handle.state.value)
    return handle
