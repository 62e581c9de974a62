"""
Claims Desk - Domain Errors

Every error here is scoped to a single case/token operation and is surfaced
to the caller as-is. Nothing in this module is retried internally.
Expiry is deliberately absent: an expired token is a normal state.
"""

from typing import Optional


class ClaimsDeskError(Exception):
    """Base class for signature workflow errors."""


class UnsupportedDocumentType(ClaimsDeskError):
    """The document type has no mapping table or form configured."""

    def __init__(self, document_type):
        self.document_type = document_type
        super().__init__(f"Unsupported document type: {document_type}")


class TokenNotFound(ClaimsDeskError):
    """Lookup or update against a token that does not exist."""

    def __init__(self, token: Optional[str] = None, token_id: Optional[int] = None):
        self.token = token
        self.token_id = token_id
        ref = f"id {token_id}" if token_id is not None else "string"
        super().__init__(f"Signature token not found (by {ref})")


class TokenAlreadyFinalized(ClaimsDeskError):
    """Attempted mutation of a completed token."""

    def __init__(self, token_id: int, detail: str = "Signature token is already completed"):
        self.token_id = token_id
        super().__init__(detail)


class InvalidWebhookPayload(ClaimsDeskError):
    """Malformed provider callback, or one missing a required identifier."""

    def __init__(self, error: str, missing_field: Optional[str] = None):
        self.error = error
        self.missing_field = missing_field
        super().__init__(error)


class JotFormError(ClaimsDeskError):
    """The form provider's API could not be reached or refused the call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
