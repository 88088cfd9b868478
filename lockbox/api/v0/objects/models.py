from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field


class ObjectSummary(BaseModel):
    """One entry of the object listing"""

    name: str = Field(..., description="Storage key")
    size: int = Field(..., description="Object size in bytes")
    created: datetime = Field(..., description="Upload timestamp")
    original_name: str = Field(..., description="Filename as uploaded")
    content_type: str = Field(..., description="MIME content type")


class ListResponse(BaseModel):
    status: str = "success"
    message: str = ""
    objects: list[ObjectSummary]


class UploadResponse(BaseModel):
    """Response schema for successful upload"""

    status: str = "success"
    message: str = "Content uploaded successfully"
    key: str = Field(..., description="Storage key assigned to the upload")
    size: int = Field(..., description="Stored size in bytes")
    filename: str = Field(..., description="Original filename")


class DeleteResponse(BaseModel):
    status: str = "success"
    message: str = "Object deleted successfully"


class BackendStatusModel(BaseModel):
    backend: str
    objects: int
    size: int
    details: dict[str, Any] = {}


class StatusResponse(BaseModel):
    status: str = "success"
    backend: BackendStatusModel


# Upload types accepted in the optional "type" form field
UPLOAD_KINDS = {"file", "text", "url"}
