import logging
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger("vidgen-backend")


class CanonicalState(str, Enum):
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Provider status vocabulary. Anything not listed here is reported as
# PROCESSING so clients keep polling; see canonical_state().
PROVIDER_STATUSES: Dict[str, CanonicalState] = {
    "waiting": CanonicalState.SUBMITTED,
    "pending": CanonicalState.SUBMITTED,
    "queued": CanonicalState.SUBMITTED,
    "processing": CanonicalState.PROCESSING,
    "running": CanonicalState.PROCESSING,
    "generating": CanonicalState.PROCESSING,
    "succeed": CanonicalState.SUCCEEDED,
    "succeeded": CanonicalState.SUCCEEDED,
    "success": CanonicalState.SUCCEEDED,
    "completed": CanonicalState.SUCCEEDED,
    "failed": CanonicalState.FAILED,
    "fail": CanonicalState.FAILED,
    "error": CanonicalState.FAILED,
    "cancelled": CanonicalState.FAILED,
    "canceled": CanonicalState.FAILED,
}


class Generation(BaseModel):
    """One entry of the provider's ``generations`` list."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: Optional[str] = None
    url: Optional[str] = None
    fail_msg: Optional[str] = Field(default=None, alias="failMsg")


class JobHandle(BaseModel):
    id: str
    state: CanonicalState
    result_reference: Optional[str] = None
    error_detail: Optional[str] = None
    generations: List[Generation] = Field(default_factory=list)

    @property
    def terminal(self) -> bool:
        return self.state in (CanonicalState.SUCCEEDED, CanonicalState.FAILED)


def canonical_state(raw_status: Optional[str]) -> CanonicalState:
    if not raw_status:
        return CanonicalState.PROCESSING
    state = PROVIDER_STATUSES.get(raw_status.strip().lower())
    if state is None:
        logger.warning("Unrecognized provider status %r; reporting processing", raw_status)
        return CanonicalState.PROCESSING
    return state


def translate_status(job_id: str, generations: List[Generation]) -> JobHandle:
    """Map a provider status payload onto a JobHandle.

    Only the first generation decides the state. A job with no generations
    yet has been accepted but not started. A success without a usable url is
    reported as a failure.
    """
    if not generations:
        return JobHandle(id=job_id, state=CanonicalState.SUBMITTED)

    first = generations[0]
    state = canonical_state(first.status)

    if state is CanonicalState.SUCCEEDED:
        url = (first.url or "").strip()
        if not url:
            return JobHandle(
                id=job_id,
                state=CanonicalState.FAILED,
                error_detail="Provider reported success without a result url",
                generations=generations,
            )
        return JobHandle(id=job_id, state=state, result_reference=url, generations=generations)

    if state is CanonicalState.FAILED:
        return JobHandle(
            id=job_id,
            state=state,
            error_detail=first.fail_msg or "Unknown error",
            generations=generations,
        )

    return JobHandle(id=job_id, state=state, generations=generations)
