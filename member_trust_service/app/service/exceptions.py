"""
Custom exceptions for the Member Trust service.

Every error carries a stable ``user_message`` that is safe to show to the
caller: it never embeds record ids. Ids are kept as attributes for logging.
"""
from typing import Optional


class BaseTrustServiceError(Exception):
    """Base class for exceptions in this module."""
    user_message = "The operation could not be completed."

    def __init__(self, user_message: Optional[str] = None):
        if user_message is not None:
            self.user_message = user_message
        super().__init__(self.user_message)


# --- Validation (bad input, not retryable without correction) ---

class ValidationError(BaseTrustServiceError):
    user_message = "Invalid input."

class InvalidFileTypeError(ValidationError):
    user_message = "Unsupported file type. Only JPEG, PNG, and PDF are allowed."

    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__()

class FileTooLargeError(ValidationError):
    def __init__(self, size_bytes: int, max_bytes: int):
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        super().__init__(f"File size exceeds the maximum limit of {max_bytes // (1024 * 1024)}MB.")

class InvalidFileContentError(ValidationError):
    user_message = "Invalid file content."

    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__()

class SelfRequestError(ValidationError):
    user_message = "Cannot request access to your own contact information."

class InvalidPaginationError(ValidationError):
    pass


# --- Not found ---

class NotFoundError(BaseTrustServiceError):
    user_message = "Resource not found."

class DocumentNotFoundError(NotFoundError):
    """Raised when a verification document is not found."""
    user_message = "Verification document not found."

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__()

class TargetNotFoundError(NotFoundError):
    user_message = "Target member not found."

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__()

class RequestNotFoundError(NotFoundError):
    user_message = "Request not found."

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__()

class AuditEntryNotFoundError(NotFoundError):
    user_message = "Audit entry not found."

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__()


# --- Conflicts (retry only after state changes) ---

class ConflictError(BaseTrustServiceError):
    user_message = "The resource is not in a state that allows this operation."

class DuplicateSubmissionError(ConflictError):
    user_message = "A verification document is already being processed. Please wait for approval or contact support."

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__()

class DocumentNotPendingError(ConflictError):
    """Raised when a review is attempted on a document that is not awaiting review."""
    user_message = "Document is not in pending review status."

    def __init__(self, document_id: str, current_status: Optional[str] = None):
        self.document_id = document_id
        self.current_status = current_status
        super().__init__()

class BlockedError(ConflictError):
    user_message = "Already blocked."

    def __init__(self, requester_id: str, target_id: str):
        self.requester_id = requester_id
        self.target_id = target_id
        super().__init__()

class DuplicatePendingError(ConflictError):
    user_message = "You already have a pending request to this member."

    def __init__(self, requester_id: str, target_id: str):
        self.requester_id = requester_id
        self.target_id = target_id
        super().__init__()

class AlreadyResolvedError(ConflictError):
    user_message = "Request already processed."

    def __init__(self, resource_id: str, current_status: Optional[str] = None):
        self.resource_id = resource_id
        self.current_status = current_status
        super().__init__()


# --- Authorization ---

class ForbiddenError(BaseTrustServiceError):
    user_message = "You are not authorized to perform this operation."

class NoApprovedAccessError(ForbiddenError):
    user_message = "No approved access to this member's contact information."

    def __init__(self, viewer_id: str, subject_id: str):
        self.viewer_id = viewer_id
        self.subject_id = subject_id
        super().__init__()


# --- Collaborator failures ---

class StorageFailure(BaseTrustServiceError):
    """Raised when the object store cannot complete an operation. Safe to retry with backoff."""
    user_message = "File storage is temporarily unavailable. Please try again later."

class NotificationFailure(BaseTrustServiceError):
    """Never surfaced to callers of a primary operation; recorded as a side-effect outcome."""
    user_message = "Notification could not be delivered."

class ConfigurationError(BaseTrustServiceError):
    """Raised when a configuration issue is detected."""
    pass
