"""
Error taxonomy for the import pipeline.

Every failure a caller can observe is one of the classes below. Each
carries a stable ``kind`` string, the pipeline ``stage`` it belongs to and
the ``recovery`` action the caller should offer:

- text-stage errors (``reupload``) end the session; no text is kept
- structure-stage errors (``retry`` / ``pay``) end the draft but keep the
  extracted text so a regenerate can reuse it
"""

from __future__ import annotations

STAGE_TEXT = "text"
STAGE_STRUCTURE = "structure"
STAGE_SESSION = "session"

RECOVERY_REUPLOAD = "reupload"
RECOVERY_RETRY = "retry"
RECOVERY_PAY = "pay"
RECOVERY_NONE = "none"


class CVImportError(Exception):
    """Base class for all typed import failures."""

    kind = "import_error"
    stage = STAGE_SESSION
    recovery = RECOVERY_NONE

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    def default_message(self) -> str:
        return self.kind.replace("_", " ")


# ------------------------- Text stage -------------------------

class UnsupportedFormat(CVImportError):
    kind = "unsupported_format"
    stage = STAGE_TEXT
    recovery = RECOVERY_REUPLOAD

    def default_message(self) -> str:
        return "only .pdf and .docx files can be imported"


class CorruptFile(CVImportError):
    kind = "corrupt_file"
    stage = STAGE_TEXT
    recovery = RECOVERY_REUPLOAD

    def default_message(self) -> str:
        return "corrupt or renamed file"


class InvalidPdf(CorruptFile):
    kind = "invalid_pdf"

    def default_message(self) -> str:
        return "not a valid PDF stream"


class EncryptedPdf(CorruptFile):
    kind = "encrypted_pdf"

    def default_message(self) -> str:
        return "PDF is password-protected"


class EmptyOrInsufficientText(CVImportError):
    kind = "insufficient_text"
    stage = STAGE_TEXT
    recovery = RECOVERY_REUPLOAD

    def default_message(self) -> str:
        return "file is empty or too little text could be extracted"


class NoExtractableText(EmptyOrInsufficientText):
    """The document has pages but no text layer (e.g. a scanned image)."""

    kind = "no_extractable_text"

    def default_message(self) -> str:
        return "no extractable text (scanned document?)"


# ------------------------- Structure stage -------------------------

class SchemaViolation(CVImportError):
    kind = "schema_violation"
    stage = STAGE_STRUCTURE
    recovery = RECOVERY_RETRY

    def __init__(self, message: str = "", errors: list[str] | None = None):
        super().__init__(message)
        self.errors = list(errors or [])

    def default_message(self) -> str:
        return "extraction service response does not match the CV schema"


class ServiceRateLimited(CVImportError):
    kind = "rate_limited"
    stage = STAGE_STRUCTURE
    recovery = RECOVERY_RETRY

    def default_message(self) -> str:
        return "extraction service rate limit reached, try again later"


class ServicePaymentRequired(CVImportError):
    kind = "payment_required"
    stage = STAGE_STRUCTURE
    recovery = RECOVERY_PAY

    def default_message(self) -> str:
        return "extraction service credits exhausted"


class ServiceUnavailable(CVImportError):
    kind = "service_unavailable"
    stage = STAGE_STRUCTURE
    recovery = RECOVERY_RETRY

    def default_message(self) -> str:
        return "extraction service unavailable"


# ------------------------- Session -------------------------

class SessionCancelled(CVImportError):
    kind = "session_cancelled"

    def default_message(self) -> str:
        return "import session was discarded"


class InvalidTransition(CVImportError):
    """Raised when an operation is not allowed in the session's current state."""

    kind = "invalid_transition"


__all__ = [
    "CVImportError",
    "UnsupportedFormat",
    "CorruptFile",
    "InvalidPdf",
    "EncryptedPdf",
    "EmptyOrInsufficientText",
    "NoExtractableText",
    "SchemaViolation",
    "ServiceRateLimited",
    "ServicePaymentRequired",
    "ServiceUnavailable",
    "SessionCancelled",
    "InvalidTransition",
    "STAGE_TEXT",
    "STAGE_STRUCTURE",
]
