"""
Request helpers shared by the routers.

Services are built once at startup and stored on the application state;
routers reach them through the get_services dependency so tests can swap in
fakes with create_app(container=...).
"""

import logging
from typing import Iterable

from fastapi import Request, UploadFile

from services.container import ServiceContainer
from utils.errors import InvalidInputError, UploadTooLargeError

logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE = 50 * 1024 * 1024  # 50MB in bytes

_MIME_EXTENSIONS = {
    "text/plain": "txt",
    "text/vtt": "vtt",
}


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def resolve_file_type(file: UploadFile, allowed_extensions: Iterable[str]) -> str:
    """
    Decide which supported type an upload is, by extension first, then MIME type.

    Returns:
        The file type ("txt" or "vtt")

    Raises:
        InvalidInputError: If neither the extension nor the MIME type is allowed
    """
    allowed = set(allowed_extensions)
    filename = (file.filename or "").lower()
    extension = filename.rsplit(".", 1)[-1] if "." in filename else ""
    if extension in allowed:
        return extension

    mime_type = (file.content_type or "").split(";")[0].strip().lower()
    mapped = _MIME_EXTENSIONS.get(mime_type)
    if mapped in allowed:
        return mapped

    logger.warning(
        f"Unsupported upload rejected: filename={file.filename}, content_type={file.content_type}"
    )
    raise InvalidInputError(
        f"Invalid file type. Allowed: {', '.join('.' + e for e in sorted(allowed))}",
        code="UNSUPPORTED_FILE_TYPE",
        details={"filename": file.filename, "content_type": file.content_type},
    )


async def read_text_upload(file: UploadFile, max_size: int = MAX_UPLOAD_SIZE) -> str:
    """
    Read an uploaded transcript as text, enforcing the size bound.

    Raises:
        UploadTooLargeError: If the file exceeds max_size
        InvalidInputError: If the file is empty
    """
    if file.size is not None and file.size > max_size:
        logger.warning(f"Upload too large: filename={file.filename}, size={file.size}, max={max_size}")
        raise UploadTooLargeError(file.size, max_size)

    # Read one byte past the bound so an unsized stream cannot slip through
    content = await file.read(max_size + 1)
    if len(content) > max_size:
        logger.warning(f"Upload too large: filename={file.filename}, max={max_size}")
        raise UploadTooLargeError(len(content), max_size)

    text = content.decode("utf-8", errors="replace")
    if not text.strip():
        raise InvalidInputError("Uploaded file is empty", code="EMPTY_UPLOAD")
    return text
