# Claims Desk - Models Package

from claimsdesk.models.case import Case
from claimsdesk.models.signature_token import SignatureToken, TokenStatus
from claimsdesk.models.audit import AuditLog, AuditEventType

__all__ = [
    "Case",
    "SignatureToken",
    "TokenStatus",
    "AuditLog",
    "AuditEventType",
]
