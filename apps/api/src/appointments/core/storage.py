"""
CV Document Storage

Stores uploaded CV files on local disk under ``settings.upload_dir``.
Application records only keep the relative path returned by ``save_document``.
Blocking filesystem calls run in a worker thread.
"""

import asyncio
import logging
import re
import uuid
from pathlib import Path

from appointments.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_CV_MIME_TYPES: dict[str, str] = {
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class DocumentNotFoundError(FileNotFoundError):
    """Raised when a stored document is missing from disk."""


def _upload_root() -> Path:
    return Path(settings.upload_dir).expanduser().resolve()


def _safe_filename(filename: str) -> str:
    name = Path(filename).name
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("._")
    return cleaned or "document"


def _write_bytes(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


async def save_document(content: bytes, filename: str, prefix: str = "cv") -> str:
    """
    Persist an uploaded document.

    Args:
        content: Raw file bytes
        filename: Original client filename (sanitized before use)
        prefix: Filename prefix for the stored copy

    Returns:
        Path of the stored file, relative to the upload directory
    """
    stored_name = f"{prefix}-{uuid.uuid4().hex}-{_safe_filename(filename)}"
    await asyncio.to_thread(_write_bytes, _upload_root() / stored_name, content)
    logger.info(f"Stored document {stored_name} ({len(content)} bytes)")
    return stored_name


def resolve_document(relative_path: str) -> Path:
    """
    Resolve a stored relative path to an absolute file path.

    Raises:
        DocumentNotFoundError: If the path escapes the upload directory or
            the file no longer exists
    """
    root = _upload_root()
    path = (root / relative_path).resolve()
    if root not in path.parents or not path.is_file():
        raise DocumentNotFoundError(relative_path)
    return path


async def delete_document(relative_path: str) -> None:
    """Remove a stored document if it exists."""
    try:
        path = resolve_document(relative_path)
    except DocumentNotFoundError:
        return
    await asyncio.to_thread(path.unlink, missing_ok=True)
