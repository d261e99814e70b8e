import io
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel
from PIL import Image, UnidentifiedImageError

from mywish.api.deps import OptionalUserDep
from mywish.core import errors
from mywish.core.audit import AuditAction, audit_log
from mywish.core.config import settings
from mywish.core.media import blob_store, ensure_media_dirs
from mywish.core.security import create_upload_token, decode_upload_token


logger = logging.getLogger("mywish.uploads")

router = APIRouter(prefix="/uploads", tags=["uploads"])


class UploadTarget(BaseModel):
    upload_url: str
    expires_in: int


class UploadImageResponse(BaseModel):
    ref: str
    url: str | None
    width: int
    height: int


_FORMAT_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "WEBP": "webp",
}
_ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}


def _max_bytes() -> int:
    return int(settings.image_upload_max_mb) * 1024 * 1024


def _validate_upload(file: UploadFile, data: bytes) -> tuple[str, Image.Image]:
    if file.content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Apenas imagens JPEG, PNG ou WebP são aceitas.",
        )

    if len(data) > _max_bytes():
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"O arquivo deve ter no máximo {settings.image_upload_max_mb} MB.",
        )

    try:
        img = Image.open(io.BytesIO(data))
        img.verify()
        img = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="O arquivo não é uma imagem válida.",
        ) from exc

    ext = _FORMAT_EXTENSIONS.get((img.format or "").upper())
    if ext is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Apenas imagens JPEG, PNG ou WebP são aceitas.",
        )
    return ext, img


@router.post("/target", response_model=UploadTarget)
async def generate_upload_target(current_user: OptionalUserDep) -> UploadTarget:
    """Hand out a short-lived URL the client posts the image bytes to."""
    if current_user is None:
        raise errors.Unauthenticated()
    token = create_upload_token(str(current_user.id))
    upload_url = f"{settings.backend_url.rstrip('/')}/uploads/images?{urlencode({'token': token})}"
    return UploadTarget(upload_url=upload_url, expires_in=settings.upload_token_expire_minutes * 60)


@router.post("/images", response_model=UploadImageResponse)
async def upload_image(
    token: str = Query(...),
    file: UploadFile = File(...),
) -> UploadImageResponse:
    subject = decode_upload_token(token)
    if subject is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid upload token")

    ensure_media_dirs()
    data = await file.read(_max_bytes() + 1)
    ext, img = _validate_upload(file, data)

    ref = blob_store.store(data, ext)
    audit_log(AuditAction.IMAGE_UPLOAD, user_id=subject, details={"ref": ref, "bytes": len(data)})
    return UploadImageResponse(
        ref=ref,
        url=blob_store.resolve(ref),
        width=int(img.width),
        height=int(img.height),
    )
