import logging
import re
from pathlib import Path
from uuid import uuid4

from mywish.core.config import settings
from mywish.core import errors


logger = logging.getLogger("mywish.media")

_BACKEND_DIR = Path(__file__).resolve().parents[2]
_REF_RE = re.compile(r"^images/[0-9a-f]{32}\.(jpg|png|webp)$")


def get_media_root() -> Path:
    root = Path(settings.media_root)
    if root.is_absolute():
        return root
    return _BACKEND_DIR / root


def ensure_media_dirs() -> None:
    (get_media_root() / "images").mkdir(parents=True, exist_ok=True)


def build_media_url(relative_path: str) -> str:
    base = settings.backend_url.rstrip("/")
    rel = relative_path.lstrip("/")
    return f"{base}{settings.media_path.rstrip('/')}/{rel}"


class BlobStore:
    """Local blob store: bytes go under the media root, references are relative paths."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root or get_media_root()

    @staticmethod
    def is_valid_ref(ref: str | None) -> bool:
        return bool(ref) and _REF_RE.match(ref) is not None

    def validate_ref(self, ref: str | None) -> str | None:
        if ref is None:
            return None
        if not self.is_valid_ref(ref):
            raise errors.ValidationError("Referência de imagem inválida")
        return ref

    def _path(self, ref: str) -> Path:
        return self.root / ref

    def store(self, data: bytes, ext: str) -> str:
        ref = f"images/{uuid4().hex}.{ext}"
        path = self._path(ref)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as f:
            f.write(data)
        logger.info("Blob stored ref=%s bytes=%d", ref, len(data))
        return ref

    def resolve(self, ref: str | None) -> str | None:
        if not self.is_valid_ref(ref):
            return None
        if not self._path(ref).is_file():
            return None
        return build_media_url(ref)

    def release(self, ref: str | None) -> None:
        if not self.is_valid_ref(ref):
            return
        self._path(ref).unlink(missing_ok=True)
        logger.info("Blob released ref=%s", ref)


blob_store = BlobStore()
