from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status, File, Form, UploadFile
from fastapi.responses import StreamingResponse

from lockbox.api.deps import get_gateway
from lockbox.api.v0.objects.models import (
    BackendStatusModel,
    DeleteResponse,
    ListResponse,
    ObjectSummary,
    StatusResponse,
    UploadResponse,
    UPLOAD_KINDS,
)
from lockbox.core.errors import (
    BackendError,
    InvalidKeyError,
    ObjectNotFoundError,
    PayloadTooLargeError,
)
from lockbox.core.logger import get_logger
from lockbox.core.config import MIB
from lockbox.storage.gateway import ObjectGateway

# Initialize logger
logger = get_logger(__name__)

router = APIRouter()


def _require_key(key: str) -> str:
    key = key.strip()
    if not key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No key provided",
        )
    return key


@router.get("/list", response_model=ListResponse)
def list_objects(gateway: ObjectGateway = Depends(get_gateway)):
    """List every stored object with its metadata."""
    try:
        refs = gateway.list()
    except BackendError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list objects",
        )

    return ListResponse(
        objects=[
            ObjectSummary(
                name=ref.key,
                size=ref.size,
                created=ref.created_at,
                original_name=ref.original_name,
                content_type=ref.content_type,
            )
            for ref in refs
        ]
    )


@router.post("/upload", response_model=UploadResponse)
def upload_object(
    file: UploadFile = File(...),
    kind: str = Form("file", alias="type"),
    gateway: ObjectGateway = Depends(get_gateway),
):
    """
    Store an uploaded file, text snippet or URL under a new key.

    The multipart field "file" carries the content; the optional "type"
    field (file, text, url) picks the default name and content type.
    """
    if kind not in UPLOAD_KINDS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported type. Allowed types: {', '.join(sorted(UPLOAD_KINDS))}",
        )

    try:
        ref = gateway.upload(file.file, file.filename, file.content_type, kind=kind)
    except PayloadTooLargeError as e:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {e.limit // MIB}MB",
        )
    except InvalidKeyError as e:
        logger.error(f"Key invariant violated during upload: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store file",
        )
    except BackendError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store file",
        )

    return UploadResponse(key=ref.key, size=ref.size, filename=ref.original_name)


@router.delete("/delete/{key:path}", response_model=DeleteResponse)
def delete_object(key: str, gateway: ObjectGateway = Depends(get_gateway)):
    """Delete an object by key."""
    key = _require_key(key)
    try:
        gateway.remove(key)
    except ObjectNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Object not found",
        )
    except BackendError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete object",
        )

    return DeleteResponse()


@router.get("/download/{key:path}")
def download_object(key: str, gateway: ObjectGateway = Depends(get_gateway)):
    """Stream an object's bytes as an attachment."""
    key = _require_key(key)
    try:
        chunks, ref = gateway.fetch(key)
    except ObjectNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Object not found",
        )
    except BackendError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to download file",
        )

    return StreamingResponse(
        chunks,
        media_type=ref.content_type,
        headers={
            # Keys only contain [A-Za-z0-9._-], so they are safe to quote here
            "Content-Disposition": f'attachment; filename="{ref.key}"',
            "Content-Length": str(ref.size),
        },
    )


@router.get("/status", response_model=StatusResponse)
def backend_status(gateway: ObjectGateway = Depends(get_gateway)):
    """Report object count and total size from the backend."""
    try:
        backend = gateway.status()
    except BackendError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read backend status",
        )
    return StatusResponse(backend=BackendStatusModel(**asdict(backend)))
