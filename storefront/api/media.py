"""Media upload endpoints.

Images are re-encoded as WebP before they are stored; the returned URL is
what product, profile and chat payloads reference.
"""

from typing import Annotated
from uuid import uuid4

import structlog
from fastapi import APIRouter, File, HTTPException, Path, Request, UploadFile, status
from fastapi.responses import Response

from storefront.api.dependencies import CurrentUser, DbSession
from storefront.api.schemas import ErrorResponse, UploadResponse
from storefront.application.chat_service import get_chat_service
from storefront.infrastructure.config import settings
from storefront.infrastructure.images import OptimizedImage, optimize_image
from storefront.infrastructure.storage import get_media_storage

logger = structlog.get_logger()

router = APIRouter(prefix="/media", tags=["Media"])

UPLOAD_FOLDERS = ("products", "avatars", "slides")

_UPLOAD_RESPONSES = {
    401: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


async def _read_upload(file: UploadFile) -> OptimizedImage:
    """Read an upload within the size limit and optimise it.

    Raises:
        HTTPException: 413 when the file exceeds the upload limit.
    """
    data = await file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={
                "error_code": "FILE_TOO_LARGE",
                "message": "File exceeds the upload limit",
                "details": {"max_bytes": settings.max_upload_bytes},
            },
        )
    return optimize_image(data)


def _store(prefix: str, image: OptimizedImage) -> UploadResponse:
    path = f"{prefix}/{uuid4()}.webp"
    url = get_media_storage().put(path, image.data, image.content_type)
    logger.info(
        "Image uploaded",
        path=path,
        original_size=image.original_size,
        size=image.size,
        quality=image.quality,
    )
    return UploadResponse(
        url=url,
        size=image.size,
        original_size=image.original_size,
        quality=image.quality,
        width=image.width,
        height=image.height,
        content_type=image.content_type,
    )


@router.post(
    "/chats/{chat_id}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_UPLOAD_RESPONSES, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Upload a chat attachment",
)
async def upload_chat_media(
    chat_id: str,
    request: Request,
    user: CurrentUser,
    file: Annotated[UploadFile, File(description="Image file")],
    session: DbSession,
) -> UploadResponse:
    """Store an image for a chat the caller takes part in."""
    service = get_chat_service(session, getattr(request.state, "request_id", None))
    chat, _ = await service.load_chat(chat_id, user, write=True)
    image = await _read_upload(file)
    return _store(f"chat_media/{chat.id}", image)


@router.post(
    "/{folder}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_UPLOAD_RESPONSES,
    summary="Upload an image",
)
async def upload_image(
    folder: Annotated[str, Path(pattern="^(" + "|".join(UPLOAD_FOLDERS) + ")$")],
    user: CurrentUser,
    file: Annotated[UploadFile, File(description="Image file")],
) -> UploadResponse:
    """Store a product photo, avatar or slide image under the caller's folder."""
    image = await _read_upload(file)
    return _store(f"{folder}/{user.id}", image)


@router.get(
    "/{path:path}",
    responses={404: {"model": ErrorResponse}},
    summary="Serve a stored image",
)
async def get_media(path: str) -> Response:
    """Return a stored object."""
    try:
        data = get_media_storage().get(path)
    except (FileNotFoundError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "MEDIA_NOT_FOUND",
                "message": "Media not found",
                "details": {"path": path},
            },
        ) from None
    return Response(content=data, media_type="image/webp")
