"""Disk storage for user uploads under ``settings.upload_dir``."""

from __future__ import annotations

import logging
import os
import re
import uuid
from typing import Optional

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from academy.core.errors import DomainError, NotFoundError
from academy.core.settings import settings

logger = logging.getLogger(__name__)

# subdir -> allowed extensions (None accepts any)
UPLOAD_SUBDIRS: dict[str, Optional[frozenset[str]]] = {
    "submissions": frozenset({".pdf", ".doc", ".docx"}),
    "images": frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp"}),
    "resources": None,
}

SAFE_FILENAME = re.compile(r"^[A-Za-z0-9\-_.]+$")
PDF_FILENAME = re.compile(r"^[A-Za-z0-9\-_.]+\.pdf$")


def upload_root() -> str:
    return os.path.abspath(settings.upload_dir)


def subdir_path(subdir: str) -> str:
    return os.path.join(upload_root(), subdir)


def save_upload(file: FileStorage | None, subdir: str) -> dict:
    if subdir not in UPLOAD_SUBDIRS:
        raise NotFoundError("Unknown upload folder")
    if file is None or not file.filename:
        raise DomainError("No file provided")

    original = secure_filename(file.filename) or "upload"
    ext = os.path.splitext(original)[1].lower()
    allowed = UPLOAD_SUBDIRS[subdir]
    if allowed is not None and ext not in allowed:
        raise DomainError(
            "File type not allowed. Accepted: " + ", ".join(sorted(allowed))
        )

    content = file.read()
    if len(content) > settings.max_upload_bytes:
        raise DomainError("File is too large")
    if not content:
        raise DomainError("File is empty")

    filename = f"{uuid.uuid4().hex}{ext}"
    target_dir = subdir_path(subdir)
    os.makedirs(target_dir, exist_ok=True)
    with open(os.path.join(target_dir, filename), "wb") as fh:
        fh.write(content)
    logger.info("Stored upload %s/%s (%d bytes)", subdir, filename, len(content))
    return {
        "filename": filename,
        "original_name": original,
        "size": len(content),
        "url": f"/uploads/{subdir}/{filename}",
    }


def resolve_upload(subdir: str, filename: str) -> str:
    """Return the directory holding ``filename`` or raise NotFoundError."""
    if subdir not in UPLOAD_SUBDIRS or not SAFE_FILENAME.match(filename or ""):
        raise NotFoundError("File not found")
    directory = subdir_path(subdir)
    if not os.path.isfile(os.path.join(directory, filename)):
        raise NotFoundError("File not found")
    return directory
