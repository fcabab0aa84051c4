# Upload checks for identity documents: declared type, size, then the file's own signature.
import logging
from typing import Dict, NamedTuple

from member_trust_service.app.service.exceptions import (
    FileTooLargeError,
    InvalidFileContentError,
    InvalidFileTypeError,
)

logger = logging.getLogger(__name__)


class AcceptedType(NamedTuple):
    canonical_mime_type: str
    extension: str
    magic: bytes


_JPEG = AcceptedType("image/jpeg", "jpg", b"\xff\xd8\xff")
_PNG = AcceptedType("image/png", "png", b"\x89PNG")
_PDF = AcceptedType("application/pdf", "pdf", b"%PDF")

ACCEPTED_TYPES: Dict[str, AcceptedType] = {
    "image/jpeg": _JPEG,
    "image/jpg": _JPEG, # Non-standard alias some browsers send
    "image/png": _PNG,
    "application/pdf": _PDF,
}


def validate_upload(data: bytes, mime_type: str, max_bytes: int) -> AcceptedType:
    """
    Checks an uploaded identity document and returns its accepted type.

    Order matters: the declared type is checked first, then the size, then the
    leading bytes against the declared type's signature.
    """
    accepted = ACCEPTED_TYPES.get((mime_type or "").strip().lower())
    if accepted is None:
        logger.info(f"Rejected upload with unsupported MIME type '{mime_type}'.")
        raise InvalidFileTypeError(mime_type)

    if len(data) > max_bytes:
        logger.info(f"Rejected upload of {len(data)} bytes (limit {max_bytes}).")
        raise FileTooLargeError(len(data), max_bytes)

    if not data.startswith(accepted.magic):
        logger.info(f"Rejected upload declared as {mime_type}: content signature does not match.")
        raise InvalidFileContentError(mime_type)

    return accepted
