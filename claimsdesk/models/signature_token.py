"""
Claims Desk - Signature Token Model

A signature token is the capability a client uses to fill in and sign one
document for one case. The stored status is an audit record of what has
happened; whether the token may still be used is decided by
``token_lifecycle.is_token_valid``.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from sqlalchemy import String, DateTime, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column
from claimsdesk.database import Base
from claimsdesk.timestamps import now_utc


class TokenStatus(str, Enum):
    """Signature token states."""
    PENDING = "pending"      # Issued, link sent
    ACCESSED = "accessed"    # Client opened the signature portal
    SIGNED = "signed"        # Client submitted through the portal
    COMPLETED = "completed"  # Provider confirmed the submission (terminal)
    EXPIRED = "expired"      # Validity window passed (terminal)


class SignatureToken(Base):
    """Signature request for one document on one case."""

    __tablename__ = "signature_tokens"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # External-facing capability string (64 hex chars)
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    # Owning case (lives in the case store; not a foreign key)
    case_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    document_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Snapshot of the case fields at issuance
    form_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    form_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TokenStatus.PENDING.value)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # JotForm submission ID, used to pull the signed PDF later
    external_submission_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_utc, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_utc)

    def __repr__(self) -> str:
        return f"<SignatureToken {self.id}: {self.document_type} for case {self.case_id} ({self.status})>"

    @property
    def token_status(self) -> TokenStatus:
        return TokenStatus(self.status)

    @property
    def short_token(self) -> str:
        """Abbreviated token for logs."""
        return f"{self.token[:8]}..."

    @property
    def client_name(self) -> Optional[str]:
        """Client name as captured in the form data snapshot."""
        data = self.form_data or {}
        return data.get("clientName") or data.get("naf_name")
