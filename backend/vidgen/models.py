from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .state import JobHandle


class UploadGrantRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content_type: Optional[str] = Field(default=None, alias="contentType")
    folder: Optional[str] = None


class UploadGrant(BaseModel):
    object_key: str
    write_url: str
    public_reference: str
    expires_in: int

    def to_response(self) -> Dict[str, Any]:
        return {
            "writeUrl": self.write_url,
            "publicReference": self.public_reference,
            "objectKey": self.object_key,
            "expiresIn": self.expires_in,
        }


class GenerateVideoRequest(BaseModel):
    images: Optional[List[Optional[str]]] = None
    prompt: Optional[str] = None


class SessionRequest(BaseModel):
    token: Optional[str] = None
    username: Optional[str] = None


def submission_response(handle: JobHandle) -> Dict[str, Any]:
    return {"taskId": handle.id}


def status_response(handle: JobHandle) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "taskId": handle.id,
        "status": handle.state.value,
        "generations": [
            g.model_dump(by_alias=True, exclude_none=True) for g in handle.generations
        ],
    }
    if handle.result_reference:
        body["url"] = handle.result_reference
    if handle.error_detail:
        body["errorDetail"] = handle.error_detail
    return body
