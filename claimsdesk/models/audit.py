"""
Claims Desk - Audit Log Model

Append-only record of what happened to each signature request, with a
hash chain so edits to past entries can be detected.
"""

import hashlib
import json
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column
from claimsdesk.database import Base
from claimsdesk.timestamps import now_utc


class AuditLog(Base):
    """
    Immutable audit log entry with hash-chain integrity.

    Each entry contains a hash of itself and the previous entry's hash,
    creating a tamper-evident chain.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Event details
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Optional JSON metadata for additional event-specific data
    metadata_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Related entities (optional)
    case_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    token_id: Mapped[Optional[int]] = mapped_column(ForeignKey("signature_tokens.id"), nullable=True, index=True)

    # Request context
    ip_address: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Hash chain for integrity verification
    previous_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # SHA-256 hex
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)  # SHA-256 hex

    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_utc, index=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.id}: {self.event_type}>"

    @property
    def event_metadata(self) -> Optional[dict]:
        """Parse metadata_json as dictionary."""
        if self.metadata_json:
            try:
                return json.loads(self.metadata_json)
            except json.JSONDecodeError:
                return None
        return None

    @staticmethod
    def compute_hash(
        event_type: str,
        description: str,
        case_id: Optional[str],
        token_id: Optional[int],
        metadata_json: Optional[str],
        ip_address: Optional[str],
        previous_hash: Optional[str],
        created_at: datetime,
    ) -> str:
        """Compute SHA-256 hash of the audit entry data."""
        data = {
            "event_type": event_type,
            "description": description,
            "case_id": case_id,
            "token_id": token_id,
            "metadata_json": metadata_json,
            "ip_address": ip_address,
            "previous_hash": previous_hash or "",
            "created_at": created_at.isoformat(),
        }

        # Sort keys for deterministic ordering
        canonical_string = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical_string.encode("utf-8")).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that this entry's hash is valid."""
        computed = self.compute_hash(
            event_type=self.event_type,
            description=self.description,
            case_id=self.case_id,
            token_id=self.token_id,
            metadata_json=self.metadata_json,
            ip_address=self.ip_address,
            previous_hash=self.previous_hash,
            created_at=self.created_at,
        )
        return computed == self.entry_hash


# Event type constants
class AuditEventType:
    """Audit event types for the signature workflow."""

    # Token lifecycle
    TOKEN_ISSUED = "token.issued"
    TOKEN_ACCESSED = "token.accessed"
    TOKEN_SIGNED = "token.signed"
    TOKEN_COMPLETED = "token.completed"
    TOKEN_EXPIRED = "token.expired"

    # Signature requests
    SIGNATURE_REQUEST_SENT = "signature.request_sent"
    SIGNATURE_REQUEST_FAILED = "signature.request_failed"

    # Provider callbacks
    WEBHOOK_RECEIVED = "webhook.received"
    WEBHOOK_REJECTED = "webhook.rejected"

    # Documents
    SIGNED_PDF_STORED = "document.signed_pdf_stored"
