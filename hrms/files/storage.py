"""Local disk storage under ``settings.UPLOAD_DIR``."""

from __future__ import annotations

import hashlib
import os
import uuid
from typing import Optional

from hrms.common.exceptions import BadRequestException, NotFoundException
from hrms.config import settings


def extension_of(filename: Optional[str]) -> str:
    """Lower-case extension without the dot ("" when there is none)."""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def md5_checksum(content: bytes) -> str:
    return hashlib.md5(content).hexdigest()


def validate_upload(
    filename: Optional[str],
    content: bytes,
    *,
    allowed: Optional[set[str]] = None,
    max_bytes: Optional[int] = None,
) -> str:
    """Check a file against name, size and extension rules; returns its extension."""
    if not content:
        raise BadRequestException("File is empty", errors={"file": ["File is empty"]})
    if not filename:
        raise BadRequestException("File name is required", errors={"file": ["File name is required"]})
    if ".." in filename:
        raise BadRequestException(
            "File name contains an invalid path sequence",
            errors={"file": ["Invalid file name"]},
        )
    limit = max_bytes if max_bytes is not None else settings.max_upload_bytes
    if len(content) > limit:
        raise BadRequestException(
            f"File size exceeds the maximum of {limit // (1024 * 1024)} MB",
            errors={"file": ["File too large"]},
        )
    ext = extension_of(filename)
    allowed = allowed if allowed is not None else settings.allowed_extensions
    if allowed and ext not in allowed:
        raise BadRequestException(
            f"File type '{ext or 'unknown'}' is not allowed",
            errors={"file": [f"Allowed types: {', '.join(sorted(allowed))}"]},
        )
    return ext


def store(subdir: str, ext: str, content: bytes) -> tuple[str, str]:
    """Write *content* under a random name. Returns ``(stored_name, path)``."""
    upload_dir = os.path.join(settings.UPLOAD_DIR, subdir)
    os.makedirs(upload_dir, exist_ok=True)

    # original names never reach the filesystem
    stored_name = f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex
    path = os.path.join(upload_dir, stored_name)
    with open(path, "wb") as f:
        f.write(content)
    return stored_name, path


def read(path: str, *, entity_type: str, entity_id: str) -> bytes:
    if not os.path.isfile(path):
        raise NotFoundException(entity_type, entity_id)
    with open(path, "rb") as f:
        return f.read()
