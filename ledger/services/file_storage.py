# ledger/services/file_storage.py
#
# Voice Attachments
# Stores the PDFs attached to voices under <root>/voices/<voice_id>/<slug>,
# serves them from a stable public path, and deletes them idempotently.

"""
File storage for voice attachments.

Public API:
    FileStorage          interface every backend implements
    LocalFileStorage     filesystem backend (the default)
    build_storage(...)   pick a backend by name

Layout on disk:
    <root>/tmp/<uuid>                  staged upload
    <root>/voices/<voice_id>/<slug>    final location

Uploads to the same (voice_id, slug) overwrite each other: last write wins,
there is no versioning and no locking between concurrent uploads.
"""

import logging
import os
import shutil
import uuid
from abc import ABC, abstractmethod
from typing import BinaryIO, Dict, Optional
from urllib.parse import quote

from ledger.errors import StorageFault, ValidationError
from ledger.services.slugify import slugify

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

# Name used when the client didn't send one
DEFAULT_FILE_NAME = "file.pdf"


def clean_path_component(value, field: str) -> str:
    """
    Validate one path component (voice id or stored file name).
    Anything that could escape the voice folder is rejected.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field} is required")

    if "/" in text or "\\" in text or "\x00" in text or text in (".", ".."):
        raise ValidationError(f"{field} {text!r} is not a valid path component")

    return text


def storage_name(filename: Optional[str]) -> str:
    """
    Name an upload is stored under: its slug, or "file" + extension when
    nothing of the base name survives slugifying ("!!!" -> "file.pdf",
    "€€.pdf" -> "file.pdf").
    """
    slug = slugify(filename or DEFAULT_FILE_NAME)
    if not slug or slug.startswith("."):
        ext = slug if len(slug) > 1 else ".pdf"
        slug = "file" + ext
    return slug


class FileStorage(ABC):
    """
    Contract shared by every attachment backend.

    save() returns {"file_url": ..., "file_name": ...}; file_name is the
    slug the object was stored under and is what delete() expects back.
    """

    def __init__(self, url_prefix: str = "/files"):
        self.url_prefix = "/" + url_prefix.strip("/")

    def public_url(self, voice_id, file_name: str) -> str:
        voice_part = quote(str(voice_id), safe="")
        return f"{self.url_prefix}/voices/{voice_part}/{quote(file_name, safe='')}"

    @abstractmethod
    def save(
        self,
        stream: Optional[BinaryIO],
        voice_id,
        filename: Optional[str],
        content_type: Optional[str],
    ) -> Dict[str, str]:
        ...

    @abstractmethod
    def delete(self, voice_id, file_name: str) -> None:
        ...

    @abstractmethod
    def exists(self, voice_id, file_name: str) -> bool:
        ...


class LocalFileStorage(FileStorage):
    """
    Attachments on the local filesystem.

    The upload is written to <root>/tmp first and then renamed into place.
    os.replace is atomic on a single volume; when it fails (e.g. tmp and
    voices live on different devices) the file is copied and the staged
    copy removed. That fallback is NOT atomic: a crash mid-copy can leave a
    partial file at the destination.
    """

    def __init__(self, root: str, url_prefix: str = "/files"):
        super().__init__(url_prefix)
        self.root = os.path.abspath(root)
        self.tmp_dir = os.path.join(self.root, "tmp")
        self.voices_dir = os.path.join(self.root, "voices")

        os.makedirs(self.tmp_dir, exist_ok=True)
        os.makedirs(self.voices_dir, exist_ok=True)

    # ---- paths ----

    def voice_dir(self, voice_id) -> str:
        return os.path.join(self.voices_dir, clean_path_component(voice_id, "voiceId"))

    def path_for(self, voice_id, file_name: str) -> str:
        return os.path.join(self.voice_dir(voice_id), clean_path_component(file_name, "file_name"))

    def exists(self, voice_id, file_name: str) -> bool:
        return os.path.isfile(self.path_for(voice_id, file_name))

    # ---- upload ----

    def save(
        self,
        stream: Optional[BinaryIO],
        voice_id,
        filename: Optional[str],
        content_type: Optional[str],
    ) -> Dict[str, str]:
        """
        Store one uploaded PDF for a voice.

        Responsibilities:
        - Validate voice id, payload and declared content type
        - Slugify the original name
        - Stage the payload in <root>/tmp, then move it over any existing
          object at <root>/voices/<voice_id>/<slug>
        - Return the public URL and stored name
        """
        voice_key = clean_path_component(voice_id, "voiceId")
        if stream is None:
            raise ValidationError("file is required")
        if (content_type or "").split(";")[0].strip().lower() != PDF_CONTENT_TYPE:
            raise ValidationError("Only PDF files are allowed")

        slug = clean_path_component(storage_name(filename), "file_name")

        target_dir = self.voice_dir(voice_key)
        target_path = os.path.join(target_dir, slug)
        staged_path = os.path.join(self.tmp_dir, uuid.uuid4().hex)

        try:
            os.makedirs(target_dir, exist_ok=True)
            with open(staged_path, "wb") as fh:
                shutil.copyfileobj(stream, fh)
        except OSError as exc:
            self._discard(staged_path)
            raise StorageFault(f"Upload failed: {exc}")

        self._move_into_place(staged_path, target_path)

        logger.info("[upload] stored voice=%s name=%s", voice_key, slug)
        return {"file_url": self.public_url(voice_key, slug), "file_name": slug}

    def _move_into_place(self, staged_path: str, target_path: str) -> None:
        try:
            os.replace(staged_path, target_path)
            return
        except OSError as exc:
            logger.warning(
                "[upload] rename %s -> %s failed (%s), falling back to copy",
                staged_path, target_path, exc,
            )

        try:
            shutil.copyfile(staged_path, target_path)
        except OSError as exc:
            raise StorageFault(f"Upload failed: {exc}")
        finally:
            self._discard(staged_path)

    def _discard(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("[upload] could not remove staged file %s: %s", path, exc)

    # ---- delete ----

    def delete(self, voice_id, file_name: str) -> None:
        """
        Remove a stored attachment.

        A missing file counts as deleted, so calling this twice is fine.
        Other OS errors (permissions, I/O) raise StorageFault.
        """
        target_path = self.path_for(voice_id, file_name)
        try:
            os.remove(target_path)
        except FileNotFoundError:
            logger.info("[delete] already gone: voice=%s name=%s", voice_id, file_name)
            return
        except OSError as exc:
            raise StorageFault(f"Delete failed: {exc}")

        logger.info("[delete] removed voice=%s name=%s", voice_id, file_name)


def build_storage(backend: str, root: str, url_prefix: str = "/files") -> FileStorage:
    """
    Return the storage backend configured by LEDGER_STORAGE_BACKEND.
    Only "local" ships today; other object stores plug in behind FileStorage.
    """
    if backend == "local":
        return LocalFileStorage(root, url_prefix=url_prefix)
    raise ValueError(f"Unknown storage backend: {backend!r}")
